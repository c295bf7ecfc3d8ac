from typing import List, Optional, Dict, Any
from sqlalchemy import func
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IBacklogItemRepository

class SqlalchemyBacklogItemRepository(IBacklogItemRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, item_model: models.BacklogItem) -> models.BacklogItem:
        self.db.add(item_model)
        self.db.commit()
        self.db.refresh(item_model)
        return item_model

    def find_by_id(self, item_id: str) -> Optional[models.BacklogItem]:
        return self.db.query(models.BacklogItem).filter(models.BacklogItem.id == item_id).first()

    def find_by_id_and_project(self, item_id: str, project: str) -> Optional[models.BacklogItem]:
        return self.db.query(models.BacklogItem).filter(
            models.BacklogItem.id == item_id,
            models.BacklogItem.project == project
        ).first()

    def list_by_project(self, project: str, filters: Optional[Dict[str, Any]] = None,
                        search: Optional[str] = None, limit: Optional[int] = None) -> List[models.BacklogItem]:
        query = self.db.query(models.BacklogItem).filter(models.BacklogItem.project == project)
        for column, value in (filters or {}).items():
            query = query.filter(getattr(models.BacklogItem, column) == value)
        if search:
            query = query.filter(models.BacklogItem.user_story.ilike(f"%{search}%"))
        query = query.order_by(models.BacklogItem.display_order.asc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def list_projects(self) -> List[str]:
        rows = self.db.query(models.BacklogItem.project).distinct().order_by(models.BacklogItem.project.asc()).all()
        return [row.project for row in rows]

    def next_id(self) -> str:
        # id는 문자열 컬럼이므로 숫자로 해석 가능한 값만 골라 최댓값을 구합니다.
        numeric_ids = [int(row.id) for row in self.db.query(models.BacklogItem.id).all() if row.id.isdigit()]
        return str(max(numeric_ids, default=0) + 1)

    def next_display_order(self, project: str) -> int:
        current = self.db.query(func.max(models.BacklogItem.display_order)).filter(
            models.BacklogItem.project == project
        ).scalar()
        return 0 if current is None else current + 1

    def update(self, item: models.BacklogItem, updates: Dict[str, Any]) -> models.BacklogItem:
        for column, value in updates.items():
            setattr(item, column, value)
        self.db.commit()
        self.db.refresh(item)
        return item

    def delete(self, item: models.BacklogItem) -> bool:
        if item:
            self.db.delete(item)
            self.db.commit()
            return True
        return False
