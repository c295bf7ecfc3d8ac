# tests/services/test_user_admin_service.py
import re
import pytest
from unittest.mock import MagicMock, call, ANY

from src.services.user_admin_service import UserAdminService
from src.services.authorization_service import AuthorizationService, AuthContext
from src.services.permissions import Role
from src.services.exceptions import *
from src.repositories.interfaces import IRoleAssignmentRepository, IIdentityProvider, Identity
from src.database import models

# ===================================================================
#  Fixture 설정
# ===================================================================

@pytest.fixture
def mock_role_repo() -> MagicMock:
    """IRoleAssignmentRepository에 대한 모의 객체를 생성합니다."""
    return MagicMock(spec=IRoleAssignmentRepository)

@pytest.fixture
def mock_identity_provider() -> MagicMock:
    """IIdentityProvider에 대한 모의 객체를 생성합니다."""
    return MagicMock(spec=IIdentityProvider)

@pytest.fixture
def mock_authorization() -> MagicMock:
    """권한 검사는 기본적으로 통과하는 AuthorizationService 모의 객체입니다."""
    authorization = MagicMock(spec=AuthorizationService)
    authorization.require_project_capability.return_value = Role.ADMIN
    return authorization

@pytest.fixture
def admin_context() -> AuthContext:
    return AuthContext(user_id="admin-1", user_email="admin@example.com", role=Role.ADMIN, project=None)

@pytest.fixture
def user_admin_service(mock_role_repo: MagicMock, mock_identity_provider: MagicMock,
                       mock_authorization: MagicMock) -> UserAdminService:
    """테스트에 사용될 UserAdminService 인스턴스를 생성하고, 의존성을 주입합니다."""
    return UserAdminService(mock_role_repo, mock_identity_provider, mock_authorization)

# ===================================================================
#  역할 회수 및 계정 정리(Cascading Revoke) 테스트
# ===================================================================
class TestRevokeRole:
    def test_revoking_last_role_deletes_account(self, user_admin_service: UserAdminService, admin_context: AuthContext,
                                                mock_role_repo: MagicMock, mock_identity_provider: MagicMock):
        """시나리오 D: 마지막 역할을 회수하면 계정 삭제가 정확히 한 번 호출됩니다."""
        # === Arrange (테스트 준비) ===
        mock_role_repo.delete.return_value = True
        mock_role_repo.count_for_user.return_value = 0

        # === Act (실제 테스트 대상 실행) ===
        result = user_admin_service.revoke_role(admin_context, "user-9", "Alpha")

        # === Assert (결과 검증) ===
        assert result == {"success": True, "accountDeleted": True}
        mock_role_repo.delete.assert_called_once_with("user-9", "Alpha")
        mock_identity_provider.delete_account.assert_called_once_with("user-9")

    def test_revoking_non_last_role_keeps_account(self, user_admin_service: UserAdminService,
                                                  admin_context: AuthContext, mock_role_repo: MagicMock,
                                                  mock_identity_provider: MagicMock):
        # === Arrange ===
        # 시나리오: 다른 프로젝트의 역할이 하나 남아 있음
        mock_role_repo.count_for_user.return_value = 1

        # === Act ===
        result = user_admin_service.revoke_role(admin_context, "user-9", "Alpha")

        # === Assert ===
        assert result["accountDeleted"] is False
        assert "warning" not in result
        mock_identity_provider.delete_account.assert_not_called()

    def test_account_delete_failure_returns_warning(self, user_admin_service: UserAdminService,
                                                    admin_context: AuthContext, mock_role_repo: MagicMock,
                                                    mock_identity_provider: MagicMock):
        """역할 삭제 이후 계정 삭제가 실패해도 요청은 성공으로 응답하고 경고를 담습니다."""
        mock_role_repo.count_for_user.return_value = 0
        mock_identity_provider.delete_account.side_effect = InfrastructureError("provider down")

        result = user_admin_service.revoke_role(admin_context, "user-9", "Alpha")

        assert result["success"] is True
        assert result["accountDeleted"] is False
        assert result["warning"] == "Role deleted but failed to remove user from auth system"
        mock_role_repo.delete.assert_called_once_with("user-9", "Alpha")

    def test_count_failure_does_not_delete_account(self, user_admin_service: UserAdminService,
                                                   admin_context: AuthContext, mock_role_repo: MagicMock,
                                                   mock_identity_provider: MagicMock):
        """남은 역할 수를 알 수 없으면 계정을 삭제하지 않습니다."""
        mock_role_repo.count_for_user.side_effect = RuntimeError("db down")

        result = user_admin_service.revoke_role(admin_context, "user-9", "Alpha")

        assert "warning" in result
        mock_identity_provider.delete_account.assert_not_called()

    def test_account_already_gone_is_not_an_error(self, user_admin_service: UserAdminService,
                                                  admin_context: AuthContext, mock_role_repo: MagicMock,
                                                  mock_identity_provider: MagicMock):
        mock_role_repo.count_for_user.return_value = 0
        mock_identity_provider.delete_account.side_effect = AccountNotFoundError("gone")

        result = user_admin_service.revoke_role(admin_context, "user-9", "Alpha")

        assert result == {"success": True, "accountDeleted": False}

    def test_revoke_requires_manage_users_on_target_project(self, user_admin_service: UserAdminService,
                                                            admin_context: AuthContext, mock_role_repo: MagicMock,
                                                            mock_authorization: MagicMock):
        mock_authorization.require_project_capability.side_effect = ForbiddenError("no")

        with pytest.raises(ForbiddenError):
            user_admin_service.revoke_role(admin_context, "user-9", "Alpha")

        mock_authorization.require_project_capability.assert_called_once_with(admin_context, "Alpha", "can_manage_users")
        mock_role_repo.delete.assert_not_called()

    def test_revoke_requires_user_and_project(self, user_admin_service: UserAdminService, admin_context: AuthContext):
        with pytest.raises(BadRequestError):
            user_admin_service.revoke_role(admin_context, "user-9", "")

    def test_cleanup_deletes_only_accounts_without_roles(self, user_admin_service: UserAdminService,
                                                         admin_context: AuthContext, mock_role_repo: MagicMock,
                                                         mock_identity_provider: MagicMock):
        # === Arrange ===
        mock_role_repo.list_all_user_ids.return_value = ["user-1"]
        mock_identity_provider.list_accounts.return_value = [
            Identity(id="user-1", email="one@example.com"),
            Identity(id="user-2", email="two@example.com"),
            Identity(id="user-3", email="three@example.com"),
        ]
        mock_identity_provider.delete_account.side_effect = [None, InfrastructureError("timeout")]

        # === Act ===
        result = user_admin_service.cleanup_orphaned_accounts(admin_context)

        # === Assert ===
        assert result["deleted"] == [{"id": "user-2", "email": "two@example.com"}]
        assert [f["id"] for f in result["failed"]] == ["user-3"]
        assert mock_identity_provider.delete_account.call_args_list == [call("user-2"), call("user-3")]

# ===================================================================
#  역할 부여 테스트
# ===================================================================
class TestAssignRole:
    def test_assign_role_upserts_canonical_role(self, user_admin_service: UserAdminService,
                                                admin_context: AuthContext, mock_role_repo: MagicMock):
        mock_role_repo.upsert.return_value = models.UserProjectRole(
            id=3, user_id="user-9", project="Alpha", role="contributor"
        )

        result = user_admin_service.assign_role(admin_context, "user-9", "Alpha", "read_write")

        assert result["role"] == "contributor"
        mock_role_repo.upsert.assert_called_once_with("user-9", "Alpha", "contributor")

    def test_assign_unknown_role_is_rejected(self, user_admin_service: UserAdminService,
                                             admin_context: AuthContext, mock_role_repo: MagicMock):
        with pytest.raises(BadRequestError):
            user_admin_service.assign_role(admin_context, "user-9", "Alpha", "owner")
        mock_role_repo.upsert.assert_not_called()

    def test_list_role_assignments_requires_global_manage_users(self, user_admin_service: UserAdminService,
                                                                admin_context: AuthContext,
                                                                mock_authorization: MagicMock,
                                                                mock_role_repo: MagicMock):
        mock_role_repo.list_for_user.return_value = []

        user_admin_service.list_role_assignments(admin_context, "user-9")

        mock_authorization.require_project_capability.assert_called_once_with(admin_context, "ALL", "can_manage_users")
        mock_role_repo.list_for_user.assert_called_once_with("user-9")

    def test_list_project_users_filters_accounts(self, user_admin_service: UserAdminService,
                                                 mock_role_repo: MagicMock, mock_identity_provider: MagicMock):
        mock_role_repo.list_user_ids_for_project.return_value = ["user-2"]
        mock_identity_provider.list_accounts.return_value = [
            Identity(id="user-1", email="one@example.com"),
            Identity(id="user-2", email="two@example.com"),
        ]

        assert user_admin_service.list_project_users("Alpha") == [{"id": "user-2", "email": "two@example.com"}]

# ===================================================================
#  초대 및 비밀번호 재설정 테스트
# ===================================================================
class TestInviteAndReset:
    def test_invite_assigns_role_on_every_project(self, user_admin_service: UserAdminService,
                                                  admin_context: AuthContext, mock_role_repo: MagicMock,
                                                  mock_identity_provider: MagicMock):
        # === Arrange ===
        mock_identity_provider.create_account.return_value = Identity(id="new-1", email="new@example.com")

        # === Act ===
        result = user_admin_service.invite_user(
            admin_context, {"email": "new@example.com", "role": "editor", "projects": ["Alpha", "Beta"]}
        )

        # === Assert ===
        assert result["userId"] == "new-1"
        assert "warning" not in result
        mock_identity_provider.create_account.assert_called_once_with("new@example.com", ANY)
        assert mock_role_repo.upsert.call_args_list == [
            call("new-1", "Alpha", "editor"),
            call("new-1", "Beta", "editor"),
        ]
        mock_identity_provider.send_recovery_email.assert_called_once_with("new@example.com")

    def test_invite_checks_every_project_before_creating_account(self, user_admin_service: UserAdminService,
                                                                 admin_context: AuthContext,
                                                                 mock_authorization: MagicMock,
                                                                 mock_identity_provider: MagicMock):
        mock_authorization.require_project_capability.side_effect = [Role.ADMIN, ForbiddenError("no")]

        with pytest.raises(ForbiddenError):
            user_admin_service.invite_user(
                admin_context, {"email": "new@example.com", "role": "editor", "projects": ["Alpha", "Beta"]}
            )
        mock_identity_provider.create_account.assert_not_called()

    def test_invite_discards_account_when_role_assignment_fails(self, user_admin_service: UserAdminService,
                                                                admin_context: AuthContext,
                                                                mock_role_repo: MagicMock,
                                                                mock_identity_provider: MagicMock):
        mock_identity_provider.create_account.return_value = Identity(id="new-1", email="new@example.com")
        mock_role_repo.upsert.side_effect = RuntimeError("db down")

        with pytest.raises(InfrastructureError):
            user_admin_service.invite_user(admin_context, {"email": "new@example.com", "role": "editor", "project": "Alpha"})

        mock_identity_provider.delete_account.assert_called_once_with("new-1")
        mock_identity_provider.send_recovery_email.assert_not_called()

    def test_invite_email_failure_returns_warning(self, user_admin_service: UserAdminService,
                                                  admin_context: AuthContext, mock_identity_provider: MagicMock):
        mock_identity_provider.create_account.return_value = Identity(id="new-1", email="new@example.com")
        mock_identity_provider.send_recovery_email.side_effect = InfrastructureError("smtp")

        result = user_admin_service.invite_user(
            admin_context, {"email": "new@example.com", "role": "editor", "project": "Alpha"}
        )

        assert result["userId"] == "new-1"
        assert "warning" in result

    def test_invite_requires_project(self, user_admin_service: UserAdminService, admin_context: AuthContext):
        with pytest.raises(BadRequestError):
            user_admin_service.invite_user(admin_context, {"email": "new@example.com", "role": "editor"})

    def test_manual_reset_sets_temporary_password(self, user_admin_service: UserAdminService,
                                                  admin_context: AuthContext, mock_identity_provider: MagicMock):
        # === Arrange ===
        mock_identity_provider.list_accounts.return_value = [Identity(id="user-2", email="two@example.com")]

        # === Act ===
        result = user_admin_service.manual_reset(admin_context, "two@example.com")

        # === Assert ===
        assert re.fullmatch(r"Reset\d{4}[A-Z0-9]{8}!", result["tempPassword"])
        mock_identity_provider.update_account.assert_called_once_with(
            "user-2", password=result["tempPassword"], user_metadata=ANY
        )
        metadata = mock_identity_provider.update_account.call_args.kwargs["user_metadata"]
        assert metadata["requires_password_change"] is True

    def test_manual_reset_unknown_email(self, user_admin_service: UserAdminService, admin_context: AuthContext,
                                        mock_identity_provider: MagicMock):
        mock_identity_provider.list_accounts.return_value = []

        with pytest.raises(AccountNotFoundError):
            user_admin_service.manual_reset(admin_context, "nobody@example.com")
        mock_identity_provider.update_account.assert_not_called()

    def test_recovery_link(self, user_admin_service: UserAdminService, admin_context: AuthContext,
                           mock_identity_provider: MagicMock):
        mock_identity_provider.generate_recovery_link.return_value = "https://auth.example.com/verify?token=abc"

        result = user_admin_service.recovery_link(admin_context, "two@example.com")

        assert result == {"email": "two@example.com", "link": "https://auth.example.com/verify?token=abc"}
