from abc import ABC, abstractmethod
from typing import List
from src.database import models

class IAccessLogRepository(ABC):
    @abstractmethod
    def create(self, log_model: models.UserAccessLog) -> models.UserAccessLog:
        """접근 이벤트를 기록합니다."""
        pass

    @abstractmethod
    def list_by_user(self, user_id: str, limit: int = 50) -> List[models.UserAccessLog]:
        """사용자의 접근 기록을 최신순으로 조회합니다."""
        pass
