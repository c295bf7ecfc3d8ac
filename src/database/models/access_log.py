from sqlalchemy import Column, Integer, String, DateTime, JSON, func
from ..database import Base

class UserAccessLog(Base):
    """로그인 성공/실패 이벤트 기록"""
    __tablename__ = "user_access_logs"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True)
    email = Column(String, nullable=False)
    event_type = Column(String, nullable=False)
    ip_address = Column(String)
    user_agent = Column(String)
    event_metadata = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime, server_default=func.now())
