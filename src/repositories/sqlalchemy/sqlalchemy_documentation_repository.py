from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IDocumentationRepository

class SqlalchemyDocumentationRepository(IDocumentationRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, doc_model: models.Documentation) -> models.Documentation:
        self.db.add(doc_model)
        self.db.commit()
        self.db.refresh(doc_model)
        return doc_model

    def find_by_id(self, doc_id: str) -> Optional[models.Documentation]:
        return self.db.query(models.Documentation).filter(models.Documentation.id == doc_id).first()

    def list_documents(self, story_id: Optional[str] = None, doc_type: Optional[str] = None,
                       latest_only: bool = True, limit: int = 50, offset: int = 0,
                       projects: Optional[List[str]] = None) -> Tuple[List[models.Documentation], int]:
        query = self.db.query(models.Documentation)
        if story_id:
            query = query.filter(models.Documentation.story_id == story_id)
        if doc_type:
            query = query.filter(models.Documentation.doc_type == doc_type)
        if latest_only:
            query = query.filter(models.Documentation.is_latest.is_(True))
        if projects is not None:
            query = query.join(models.BacklogItem).filter(models.BacklogItem.project.in_(projects))

        total = query.count()
        docs = query.order_by(models.Documentation.created_at.desc()).offset(offset).limit(limit).all()
        return docs, total

    def create_version(self, previous: models.Documentation, new_version: models.Documentation) -> models.Documentation:
        # 두 변경을 하나의 커밋으로 묶어 최신 버전이 둘이 되는 상태를 남기지 않습니다.
        previous.is_latest = False
        self.db.add(new_version)
        self.db.commit()
        self.db.refresh(new_version)
        return new_version
