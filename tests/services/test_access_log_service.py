# tests/services/test_access_log_service.py
import pytest
from unittest.mock import MagicMock, ANY

from src.services.access_log_service import AccessLogService
from src.services.authorization_service import AuthorizationService, AuthContext
from src.services.permissions import Role, resolve
from src.services.exceptions import *
from src.repositories.interfaces import IAccessLogRepository

@pytest.fixture
def mock_log_repo() -> MagicMock:
    repo = MagicMock(spec=IAccessLogRepository)
    repo.create.side_effect = lambda log: log
    repo.list_by_user.return_value = []
    return repo

@pytest.fixture
def mock_authorization() -> MagicMock:
    return MagicMock(spec=AuthorizationService)

@pytest.fixture
def access_log_service(mock_log_repo, mock_authorization) -> AccessLogService:
    return AccessLogService(mock_log_repo, mock_authorization)

@pytest.fixture
def context() -> AuthContext:
    return AuthContext(user_id="user-1", user_email="user1@example.com", role=None, project=None)


class TestAccessLog:
    def test_record_login_failure(self, access_log_service: AccessLogService, mock_log_repo: MagicMock):
        log = access_log_service.record_event(
            {"email": "user1@example.com", "eventType": "login_failure", "metadata": {"reason": "bad password"}},
            ip_address="10.0.0.1", user_agent="pytest",
        )

        assert log["event_type"] == "login_failure"
        assert log["user_id"] is None
        assert log["ip_address"] == "10.0.0.1"
        assert log["metadata"] == {"reason": "bad password"}
        mock_log_repo.create.assert_called_once_with(ANY)

    def test_record_rejects_unknown_event_type(self, access_log_service: AccessLogService, mock_log_repo: MagicMock):
        with pytest.raises(BadRequestError):
            access_log_service.record_event({"email": "user1@example.com", "eventType": "logout"})
        mock_log_repo.create.assert_not_called()

    def test_user_can_list_own_events(self, access_log_service: AccessLogService, context: AuthContext,
                                      mock_log_repo: MagicMock, mock_authorization: MagicMock):
        access_log_service.list_events(context, "user-1", 20)

        mock_log_repo.list_by_user.assert_called_once_with("user-1", 20)
        mock_authorization.get_permissions.assert_not_called()

    def test_listing_other_users_events_requires_manage_users(self, access_log_service: AccessLogService,
                                                              context: AuthContext, mock_log_repo: MagicMock,
                                                              mock_authorization: MagicMock):
        mock_authorization.get_permissions.return_value = (Role.EDITOR, resolve(Role.EDITOR))

        with pytest.raises(ForbiddenError):
            access_log_service.list_events(context, "user-2")
        mock_authorization.get_permissions.assert_called_once_with("user-1", "ALL")
        mock_log_repo.list_by_user.assert_not_called()

    def test_global_admin_can_list_other_users_events(self, access_log_service: AccessLogService,
                                                      context: AuthContext, mock_log_repo: MagicMock,
                                                      mock_authorization: MagicMock):
        mock_authorization.get_permissions.return_value = (Role.ADMIN, resolve(Role.ADMIN))

        access_log_service.list_events(context, "user-2")

        mock_log_repo.list_by_user.assert_called_once_with("user-2", 50)
