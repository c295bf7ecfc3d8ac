from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from ..database import Base

class Task(Base):
    """
    스토리를 구현하기 위한 하위 작업입니다.
    태스크는 자신이 속한 스토리의 프로젝트에 종속됩니다.
    """
    __tablename__ = "tasks"
    id = Column(String, primary_key=True)
    backlog_item_id = Column(String, ForeignKey("backlog_items.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text)
    status = Column(String, nullable=False, default="To Do")
    effort = Column(Integer)
    assigned_to = Column(String)
    progress = Column(Integer, nullable=False, default=0)
    display_order = Column(Integer, nullable=False, default=0)
    created_by = Column(String)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    backlog_item = relationship("BacklogItem", back_populates="tasks")
