from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint, func
from ..database import Base

class UserProjectRole(Base):
    """
    사용자(외부 인증 시스템의 계정)가 특정 프로젝트 범위에서 가지는 역할을 나타냅니다.
    project 값은 실제 프로젝트 이름이거나, 모든 프로젝트를 뜻하는 예약어 'ALL'입니다.
    (user_id, project) 쌍마다 최대 하나의 역할만 존재합니다.
    """
    __tablename__ = "user_project_roles"
    __table_args__ = (UniqueConstraint("user_id", "project", name="uq_user_project"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    project = Column(String, nullable=False, index=True)
    role = Column(String, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
