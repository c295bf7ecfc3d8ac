from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from src.database import models

class IBacklogItemRepository(ABC):
    @abstractmethod
    def create(self, item_model: models.BacklogItem) -> models.BacklogItem:
        """새로운 스토리를 데이터베이스에 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, item_id: str) -> Optional[models.BacklogItem]:
        """ID로 스토리를 조회합니다."""
        pass

    @abstractmethod
    def find_by_id_and_project(self, item_id: str, project: str) -> Optional[models.BacklogItem]:
        """프로젝트 내에서 ID로 스토리를 조회합니다."""
        pass

    @abstractmethod
    def list_by_project(self, project: str, filters: Optional[Dict[str, Any]] = None,
                        search: Optional[str] = None, limit: Optional[int] = None) -> List[models.BacklogItem]:
        """
        프로젝트의 스토리 목록을 display_order 순으로 조회합니다.

        Args:
            project: 조회할 프로젝트 이름.
            filters: 컬럼 이름과 값이 정확히 일치해야 하는 조건들. (예: {'status': 'BLOCKED'})
            search: user_story 본문에 대한 대소문자 무시 부분 일치 검색어.
            limit: 최대 반환 개수.
        """
        pass

    @abstractmethod
    def list_projects(self) -> List[str]:
        """스토리에 등장하는 프로젝트 이름 목록(중복 제거)을 조회합니다."""
        pass

    @abstractmethod
    def next_id(self) -> str:
        """숫자 ID 중 가장 큰 값에 1을 더한 다음 스토리 ID를 반환합니다."""
        pass

    @abstractmethod
    def next_display_order(self, project: str) -> int:
        """프로젝트 내 다음 display_order 값을 반환합니다. (비어 있으면 0)"""
        pass

    @abstractmethod
    def update(self, item: models.BacklogItem, updates: Dict[str, Any]) -> models.BacklogItem:
        """스토리의 필드를 갱신합니다."""
        pass

    @abstractmethod
    def delete(self, item: models.BacklogItem) -> bool:
        """스토리를 데이터베이스에서 삭제합니다."""
        pass
