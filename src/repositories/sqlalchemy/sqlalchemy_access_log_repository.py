from typing import List
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IAccessLogRepository

class SqlalchemyAccessLogRepository(IAccessLogRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def create(self, log_model: models.UserAccessLog) -> models.UserAccessLog:
        self.db.add(log_model)
        self.db.commit()
        self.db.refresh(log_model)
        return log_model

    def list_by_user(self, user_id: str, limit: int = 50) -> List[models.UserAccessLog]:
        return self.db.query(models.UserAccessLog).filter(
            models.UserAccessLog.user_id == user_id
        ).order_by(models.UserAccessLog.created_at.desc()).limit(limit).all()
