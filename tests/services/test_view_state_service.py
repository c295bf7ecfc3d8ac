# tests/services/test_view_state_service.py
import pytest
from unittest.mock import MagicMock

from src.services.view_state_service import ViewStateService, VIEW_STATE_FIELDS
from src.repositories.interfaces import IViewStateRepository
from src.database import models

@pytest.fixture
def mock_view_state_repo() -> MagicMock:
    return MagicMock(spec=IViewStateRepository)

@pytest.fixture
def view_state_service(mock_view_state_repo: MagicMock) -> ViewStateService:
    return ViewStateService(mock_view_state_repo)


class TestViewState:
    def test_missing_state_returns_none(self, view_state_service: ViewStateService, mock_view_state_repo: MagicMock):
        mock_view_state_repo.find_by_user.return_value = None
        assert view_state_service.get_view_state("user-1") is None

    def test_save_ignores_unknown_fields(self, view_state_service: ViewStateService,
                                         mock_view_state_repo: MagicMock):
        # === Arrange ===
        mock_view_state_repo.upsert.side_effect = lambda user_id, state: models.UserViewState(user_id=user_id, **state)

        # === Act ===
        result = view_state_service.save_view_state(
            "user-1", {"current_project": "Alpha", "sort_by": "priority", "user_id": "someone-else"}
        )

        # === Assert ===
        assert result["user_id"] == "user-1"
        assert result["current_project"] == "Alpha"
        state = mock_view_state_repo.upsert.call_args.args[1]
        assert set(state) == set(VIEW_STATE_FIELDS)
