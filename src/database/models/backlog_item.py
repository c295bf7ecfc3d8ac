from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, JSON, func
from sqlalchemy.orm import relationship
from ..database import Base

class BacklogItem(Base):
    """
    프로젝트 백로그에 올라가는 사용자 스토리(Story)입니다.
    id는 전체 백로그에서 순차적으로 증가하는 숫자 문자열('1', '2', ...)입니다.
    """
    __tablename__ = "backlog_items"
    id = Column(String, primary_key=True)
    project = Column(String, nullable=False, index=True)
    epic = Column(String)
    priority = Column(String, nullable=False, default="MEDIUM")
    status = Column(String, nullable=False, default="NOT_STARTED")
    user_story = Column(Text, nullable=False)
    acceptance_criteria = Column(JSON, default=list)
    effort = Column(Integer)
    business_value = Column(Integer)
    dependencies = Column(JSON, default=list)
    technical_notes = Column(Text, default="")
    assigned_to = Column(String)
    is_next = Column(Boolean, default=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_by = Column(String)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    tasks = relationship("Task", back_populates="backlog_item", cascade="all, delete-orphan")
    documentation = relationship("Documentation", back_populates="story", cascade="all, delete-orphan")
