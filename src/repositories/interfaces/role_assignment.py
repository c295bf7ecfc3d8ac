from abc import ABC, abstractmethod
from typing import List, Optional
from src.database import models

class IRoleAssignmentRepository(ABC):
    """(user_id, project, role) 역할 할당 저장소"""

    @abstractmethod
    def find(self, user_id: str, project: str) -> Optional[models.UserProjectRole]:
        """사용자의 특정 프로젝트 범위(정확히 일치하는 project 값) 역할 할당을 조회합니다."""
        pass

    @abstractmethod
    def upsert(self, user_id: str, project: str, role: str) -> models.UserProjectRole:
        """
        역할을 부여합니다. 같은 (user_id, project) 할당이 이미 있으면 역할만 교체합니다.

        Returns:
            저장된 역할 할당 모델.
        """
        pass

    @abstractmethod
    def delete(self, user_id: str, project: str) -> bool:
        """역할 할당을 삭제합니다. 삭제된 행이 있으면 True를 반환합니다."""
        pass

    @abstractmethod
    def count_for_user(self, user_id: str) -> int:
        """사용자에게 남아 있는 역할 할당의 개수를 조회합니다."""
        pass

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[models.UserProjectRole]:
        """사용자의 모든 역할 할당을 프로젝트 이름순으로 조회합니다."""
        pass

    @abstractmethod
    def list_all(self) -> List[models.UserProjectRole]:
        """모든 역할 할당을 프로젝트 이름순으로 조회합니다."""
        pass

    @abstractmethod
    def list_user_ids_for_project(self, project: str) -> List[str]:
        """해당 프로젝트 또는 'ALL' 범위의 역할을 가진 사용자 ID 목록(중복 제거)을 조회합니다."""
        pass

    @abstractmethod
    def list_all_user_ids(self) -> List[str]:
        """역할이 하나 이상 할당된 모든 사용자 ID 목록(중복 제거)을 조회합니다."""
        pass
