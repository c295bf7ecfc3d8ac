from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from src.database import models

class ITaskRepository(ABC):
    @abstractmethod
    def create(self, task_model: models.Task) -> models.Task:
        """새로운 태스크를 데이터베이스에 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, task_id: str) -> Optional[models.Task]:
        """ID로 태스크를 조회합니다. 소속 스토리(backlog_item)도 함께 로드됩니다."""
        pass

    @abstractmethod
    def list_by_story(self, story_id: str) -> List[models.Task]:
        """스토리에 속한 태스크 목록을 display_order 순으로 조회합니다."""
        pass

    @abstractmethod
    def next_display_order(self, story_id: str) -> int:
        """스토리 내 다음 display_order 값을 반환합니다. (비어 있으면 0)"""
        pass

    @abstractmethod
    def update(self, task: models.Task, updates: Dict[str, Any]) -> models.Task:
        """태스크의 필드를 갱신합니다."""
        pass
