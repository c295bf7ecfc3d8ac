from typing import Dict, Any, Optional

from src.database import models
from src.repositories.interfaces import IViewStateRepository

VIEW_STATE_FIELDS = (
    "current_project", "sort_by", "sort_direction", "filter_epic", "filter_priority",
    "filter_status", "is_custom_order", "expanded_items", "context_menu_filters",
)


def view_state_to_dict(state: models.UserViewState) -> Dict[str, Any]:
    data = {field: getattr(state, field) for field in VIEW_STATE_FIELDS}
    data["user_id"] = state.user_id
    data["updated_at"] = state.updated_at.isoformat() if state.updated_at else None
    return data


class ViewStateService:
    """사용자별 백로그 화면 상태 저장/조회"""

    def __init__(self, view_state_repo: IViewStateRepository):
        self.view_state_repo = view_state_repo

    def get_view_state(self, user_id: str) -> Optional[Dict[str, Any]]:
        """저장된 상태가 없으면 None을 반환합니다."""
        state = self.view_state_repo.find_by_user(user_id)
        return view_state_to_dict(state) if state else None

    def save_view_state(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        state = {field: data.get(field) for field in VIEW_STATE_FIELDS}
        return view_state_to_dict(self.view_state_repo.upsert(user_id, state))
