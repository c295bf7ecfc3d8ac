from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from src.database import models

class IViewStateRepository(ABC):
    @abstractmethod
    def find_by_user(self, user_id: str) -> Optional[models.UserViewState]:
        """사용자의 화면 상태를 조회합니다."""
        pass

    @abstractmethod
    def upsert(self, user_id: str, state: Dict[str, Any]) -> models.UserViewState:
        """사용자의 화면 상태를 저장합니다. 이미 있으면 덮어씁니다."""
        pass
