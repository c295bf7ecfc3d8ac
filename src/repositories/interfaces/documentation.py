from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
from src.database import models

class IDocumentationRepository(ABC):
    @abstractmethod
    def create(self, doc_model: models.Documentation) -> models.Documentation:
        """새로운 문서(또는 새 버전)를 데이터베이스에 생성합니다."""
        pass

    @abstractmethod
    def find_by_id(self, doc_id: str) -> Optional[models.Documentation]:
        """ID로 문서를 조회합니다."""
        pass

    @abstractmethod
    def list_documents(self, story_id: Optional[str] = None, doc_type: Optional[str] = None,
                       latest_only: bool = True, limit: int = 50, offset: int = 0,
                       projects: Optional[List[str]] = None) -> Tuple[List[models.Documentation], int]:
        """
        조건에 맞는 문서를 최신순(created_at 내림차순)으로 조회합니다.

        Args:
            projects: 주어지면 해당 프로젝트들에 속한 스토리의 문서로 제한합니다.

        Returns:
            (현재 페이지의 문서 목록, 조건에 맞는 전체 개수) 튜플.
        """
        pass

    @abstractmethod
    def create_version(self, previous: models.Documentation, new_version: models.Documentation) -> models.Documentation:
        """이전 버전의 is_latest를 해제하고 새 버전을 저장합니다."""
        pass
