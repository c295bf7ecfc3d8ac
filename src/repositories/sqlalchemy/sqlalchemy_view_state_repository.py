from typing import Optional, Dict, Any
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IViewStateRepository

class SqlalchemyViewStateRepository(IViewStateRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def find_by_user(self, user_id: str) -> Optional[models.UserViewState]:
        return self.db.query(models.UserViewState).filter(models.UserViewState.user_id == user_id).first()

    def upsert(self, user_id: str, state: Dict[str, Any]) -> models.UserViewState:
        view_state = models.UserViewState(user_id=user_id, **state)
        view_state = self.db.merge(view_state) # user_id 기준 INSERT OR UPDATE
        self.db.commit()
        self.db.refresh(view_state)
        return view_state
