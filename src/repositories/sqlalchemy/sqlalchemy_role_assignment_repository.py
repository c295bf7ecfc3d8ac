from typing import List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from src.database import models
from src.repositories.interfaces import IRoleAssignmentRepository
from src.services.permissions import ALL_PROJECTS

class SqlalchemyRoleAssignmentRepository(IRoleAssignmentRepository):
    def __init__(self, db_session: Session):
        self.db = db_session

    def find(self, user_id: str, project: str) -> Optional[models.UserProjectRole]:
        return self.db.query(models.UserProjectRole).filter(
            models.UserProjectRole.user_id == user_id,
            models.UserProjectRole.project == project
        ).first()

    def upsert(self, user_id: str, project: str, role: str) -> models.UserProjectRole:
        assignment = self.find(user_id, project)
        if assignment:
            assignment.role = role
        else:
            assignment = models.UserProjectRole(user_id=user_id, project=project, role=role)
            self.db.add(assignment)
        self.db.commit()
        self.db.refresh(assignment)
        return assignment

    def delete(self, user_id: str, project: str) -> bool:
        deleted = self.db.query(models.UserProjectRole).filter(
            models.UserProjectRole.user_id == user_id,
            models.UserProjectRole.project == project
        ).delete(synchronize_session=False)
        self.db.commit()
        return deleted > 0

    def count_for_user(self, user_id: str) -> int:
        return self.db.query(models.UserProjectRole).filter(models.UserProjectRole.user_id == user_id).count()

    def list_for_user(self, user_id: str) -> List[models.UserProjectRole]:
        return self.db.query(models.UserProjectRole).filter(
            models.UserProjectRole.user_id == user_id
        ).order_by(models.UserProjectRole.project.asc()).all()

    def list_all(self) -> List[models.UserProjectRole]:
        return self.db.query(models.UserProjectRole).order_by(models.UserProjectRole.project.asc()).all()

    def list_user_ids_for_project(self, project: str) -> List[str]:
        rows = self.db.query(models.UserProjectRole.user_id).filter(
            or_(models.UserProjectRole.project == project, models.UserProjectRole.project == ALL_PROJECTS)
        ).distinct().all()
        return [row.user_id for row in rows]

    def list_all_user_ids(self) -> List[str]:
        rows = self.db.query(models.UserProjectRole.user_id).distinct().all()
        return [row.user_id for row in rows]
