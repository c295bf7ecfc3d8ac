from sqlalchemy import Column, String, Boolean, DateTime, JSON, func
from ..database import Base

class UserViewState(Base):
    """
    사용자별 백로그 화면 상태(현재 프로젝트, 정렬, 필터 등)를 저장합니다.
    사용자당 하나의 행만 존재합니다.
    """
    __tablename__ = "user_view_state"
    user_id = Column(String, primary_key=True)
    current_project = Column(String)
    sort_by = Column(String)
    sort_direction = Column(String)
    filter_epic = Column(String)
    filter_priority = Column(String)
    filter_status = Column(String)
    is_custom_order = Column(Boolean, default=False)
    expanded_items = Column(JSON, default=list)
    context_menu_filters = Column(JSON, default=dict)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
