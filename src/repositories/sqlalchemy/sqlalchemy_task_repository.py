from typing import List, Optional, Dict, Any
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from src.database import models
from src.repositories.interfaces import ITaskRepository

class SqlalchemyTaskRepository(ITaskRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, task_model: models.Task) -> models.Task:
        self.db.add(task_model)
        self.db.commit()
        self.db.refresh(task_model)
        return task_model

    def find_by_id(self, task_id: str) -> Optional[models.Task]:
        return self.db.query(models.Task).options(joinedload(models.Task.backlog_item)).filter(
            models.Task.id == task_id
        ).first()

    def list_by_story(self, story_id: str) -> List[models.Task]:
        return self.db.query(models.Task).filter(
            models.Task.backlog_item_id == story_id
        ).order_by(models.Task.display_order.asc()).all()

    def next_display_order(self, story_id: str) -> int:
        current = self.db.query(func.max(models.Task.display_order)).filter(
            models.Task.backlog_item_id == story_id
        ).scalar()
        return 0 if current is None else current + 1

    def update(self, task: models.Task, updates: Dict[str, Any]) -> models.Task:
        for column, value in updates.items():
            setattr(task, column, value)
        self.db.commit()
        self.db.refresh(task)
        return task
