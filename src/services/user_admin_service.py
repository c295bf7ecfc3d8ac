import logging
import secrets
import string
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from src.repositories.interfaces import IRoleAssignmentRepository, IIdentityProvider
from src.services.authorization_service import AuthorizationService, AuthContext
from src.services.permissions import Role, ALL_PROJECTS
from src.services.exceptions import (
    BadRequestError, AccountNotFoundError, InfrastructureError, NotFoundError
)

logger = logging.getLogger(__name__)

MANAGE_USERS = "can_manage_users"


def assignment_to_dict(assignment) -> Dict[str, Any]:
    return {
        "id": assignment.id,
        "user_id": assignment.user_id,
        "project": assignment.project,
        "role": assignment.role,
        "created_at": assignment.created_at.isoformat() if assignment.created_at else None,
    }


class UserAdminService:
    """사용자 초대, 역할 부여/회수, 비밀번호 재설정 등 관리자 기능을 제공합니다."""

    def __init__(self, role_repo: IRoleAssignmentRepository, identity_provider: IIdentityProvider,
                 authorization: AuthorizationService):
        """
        UserAdminService를 초기화합니다.

        Args:
            role_repo: 역할 할당 저장소.
            identity_provider: 계정 생성/삭제/재설정을 처리하는 외부 인증 시스템.
            authorization: 대상 프로젝트별 관리 권한을 확인하기 위한 서비스.
        """
        self.role_repo = role_repo
        self.identity_provider = identity_provider
        self.authorization = authorization

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    def list_users(self) -> List[Dict[str, Any]]:
        """외부 인증 시스템의 모든 계정 목록을 조회합니다."""
        return [{"id": a.id, "email": a.email} for a in self.identity_provider.list_accounts()]

    def list_project_users(self, project: str) -> List[Dict[str, Any]]:
        """해당 프로젝트 또는 'ALL' 범위의 역할을 가진 계정 목록을 조회합니다."""
        user_ids = set(self.role_repo.list_user_ids_for_project(project))
        if not user_ids:
            return []
        return [{"id": a.id, "email": a.email} for a in self.identity_provider.list_accounts() if a.id in user_ids]

    def list_role_assignments(self, context: AuthContext, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        역할 할당 목록을 조회합니다. 전체 프로젝트('ALL') 범위의 사용자 관리 권한이 필요합니다.
        """
        self.authorization.require_project_capability(context, ALL_PROJECTS, MANAGE_USERS)
        assignments = self.role_repo.list_for_user(user_id) if user_id else self.role_repo.list_all()
        return [assignment_to_dict(a) for a in assignments]

    # ------------------------------------------------------------------
    # 역할 부여 / 회수
    # ------------------------------------------------------------------

    def assign_role(self, context: AuthContext, user_id: str, project: str, role_name: str) -> Dict[str, Any]:
        """
        사용자에게 프로젝트 역할을 부여합니다. 이미 역할이 있으면 새 역할로 교체합니다.

        Raises:
            BadRequestError: 필수 값이 없거나 역할 이름을 해석할 수 없을 때.
            ForbiddenError: 요청자가 대상 프로젝트의 사용자 관리 권한이 없을 때.
        """
        if not user_id or not project or not role_name:
            raise BadRequestError("userId, project, and role are required")
        role = Role.parse(role_name)
        if role is None:
            raise BadRequestError("Role must be admin, editor, contributor, or read_only")

        self.authorization.require_project_capability(context, project, MANAGE_USERS)
        assignment = self.role_repo.upsert(user_id, project, role.value)
        logger.info("Role %s on %s assigned to %s by %s", role.value, project, user_id, context.user_id)
        return assignment_to_dict(assignment)

    def revoke_role(self, context: AuthContext, user_id: str, project: str) -> Dict[str, Any]:
        """
        사용자의 프로젝트 역할을 회수합니다. 마지막 역할이었다면 외부 인증 시스템의 계정도 삭제합니다.

        역할 저장소와 인증 시스템은 하나의 트랜잭션으로 묶을 수 없으므로, 역할 삭제 이후 단계가
        실패하면 성공 응답에 warning을 담아 반환합니다. 남은 계정은 cleanup_orphaned_accounts로
        다시 정리할 수 있습니다.

        Raises:
            BadRequestError: userId 또는 project가 없을 때.
            ForbiddenError: 요청자가 대상 프로젝트의 사용자 관리 권한이 없을 때.
        """
        if not user_id or not project:
            raise BadRequestError("userId and project are required")
        self.authorization.require_project_capability(context, project, MANAGE_USERS)

        self.role_repo.delete(user_id, project)
        logger.info("Role on %s revoked from %s by %s", project, user_id, context.user_id)

        result: Dict[str, Any] = {"success": True, "accountDeleted": False}
        try:
            result["accountDeleted"] = self.delete_account_if_orphaned(user_id)
        except (InfrastructureError, NotFoundError) as e:
            logger.error("Role deleted but account cleanup failed for %s: %s", user_id, e)
            result["warning"] = "Role deleted but failed to remove user from auth system"
        return result

    def delete_account_if_orphaned(self, user_id: str) -> bool:
        """
        남은 역할이 없으면 계정을 삭제합니다. 여러 번 호출해도 안전합니다.

        Returns:
            계정을 삭제했으면 True.

        Raises:
            InfrastructureError: 남은 역할 확인 또는 계정 삭제에 실패했을 때.
        """
        try:
            remaining = self.role_repo.count_for_user(user_id)
        except Exception as e:
            logger.exception("Failed to check remaining roles for %s", user_id)
            raise InfrastructureError("Failed to check remaining roles.") from e

        if remaining > 0:
            return False

        try:
            self.identity_provider.delete_account(user_id)
        except AccountNotFoundError:
            logger.info("Account %s already removed from auth system", user_id)
            return False
        logger.info("Account %s deleted after its last role was revoked", user_id)
        return True

    def cleanup_orphaned_accounts(self, context: AuthContext) -> Dict[str, Any]:
        """
        역할이 하나도 없는 계정을 찾아 삭제합니다. (역할 회수 후 계정 삭제가 실패한 경우의 재시도)
        """
        self.authorization.require_project_capability(context, ALL_PROJECTS, MANAGE_USERS)

        user_ids_with_roles = set(self.role_repo.list_all_user_ids())
        orphaned = [a for a in self.identity_provider.list_accounts() if a.id not in user_ids_with_roles]

        deleted, failed = [], []
        for account in orphaned:
            try:
                self.identity_provider.delete_account(account.id)
                deleted.append({"id": account.id, "email": account.email})
            except (InfrastructureError, AccountNotFoundError) as e:
                logger.error("Failed to delete orphaned account %s: %s", account.email, e)
                failed.append({"id": account.id, "email": account.email, "error": str(e)})
        logger.info("Orphaned account cleanup: %d deleted, %d failed", len(deleted), len(failed))
        return {"deleted": deleted, "failed": failed}

    # ------------------------------------------------------------------
    # 초대 / 비밀번호 재설정
    # ------------------------------------------------------------------

    def invite_user(self, context: AuthContext, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        임시 비밀번호로 계정을 만들고, 선택한 프로젝트들에 역할을 부여한 뒤 비밀번호 설정 메일을 보냅니다.

        Args:
            data: email, role, 그리고 project(단일) 또는 projects(목록).

        Raises:
            BadRequestError: email, role, 프로젝트가 없거나 역할을 해석할 수 없을 때.
            ForbiddenError: 요청자가 대상 프로젝트 중 하나라도 사용자 관리 권한이 없을 때.
            InfrastructureError: 역할 부여에 실패했을 때. (생성된 계정은 삭제를 시도합니다)
        """
        email = data.get("email")
        projects = data.get("projects")
        if not (isinstance(projects, list) and projects):
            projects = [data["project"]] if data.get("project") else []
        if not email or not data.get("role") or not projects:
            raise BadRequestError("Missing required fields: email, role, and at least one project")
        role = Role.parse(data["role"])
        if role is None:
            raise BadRequestError("Role must be admin, editor, contributor, or read_only")

        for project in projects:
            self.authorization.require_project_capability(context, project, MANAGE_USERS)

        account = self.identity_provider.create_account(email, self._temporary_password())

        try:
            for project in projects:
                self.role_repo.upsert(account.id, project, role.value)
        except Exception as e:
            logger.exception("Failed to assign roles to invited user %s", email)
            self._discard_account(account.id)
            raise InfrastructureError("Failed to assign roles to the invited user.") from e

        result = {
            "message": "User invited successfully! They will receive an email to set their password.",
            "userId": account.id,
            "email": email,
        }
        try:
            self.identity_provider.send_recovery_email(email)
        except InfrastructureError as e:
            logger.error("Failed to send invite email to %s: %s", email, e)
            result["message"] = "User created successfully but failed to send invite email."
            result["warning"] = 'Use the "Reset Password" action to give the user access.'
        return result

    def manual_reset(self, context: AuthContext, email: Optional[str]) -> Dict[str, Any]:
        """
        계정의 비밀번호를 임시 비밀번호로 바꾸고, 다음 로그인 때 변경하도록 표시합니다.

        Raises:
            BadRequestError: email이 없을 때.
            AccountNotFoundError: 해당 이메일의 계정이 없을 때.
        """
        if not email:
            raise BadRequestError("Email is required")
        self.authorization.require_project_capability(context, ALL_PROJECTS, MANAGE_USERS)

        account = next((a for a in self.identity_provider.list_accounts() if a.email == email), None)
        if not account:
            raise AccountNotFoundError("User not found")

        now = datetime.now(timezone.utc)
        random_part = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(8))
        temp_password = f"Reset{now.year}{random_part}!"
        self.identity_provider.update_account(
            account.id,
            password=temp_password,
            user_metadata={"requires_password_change": True, "temp_password_created_at": now.isoformat()},
        )
        logger.info("Password manually reset for %s by %s", email, context.user_id)
        return {
            "message": "Password reset successfully",
            "email": email,
            "tempPassword": temp_password,
            "warning": "Share this temporary password securely with the user. They must change it on first login.",
        }

    def recovery_link(self, context: AuthContext, email: Optional[str]) -> Dict[str, Any]:
        """메일 발송 없이 비밀번호 재설정 링크를 생성합니다."""
        if not email:
            raise BadRequestError("Email is required")
        self.authorization.require_project_capability(context, ALL_PROJECTS, MANAGE_USERS)
        return {"email": email, "link": self.identity_provider.generate_recovery_link(email)}

    def _discard_account(self, user_id: str) -> None:
        try:
            self.identity_provider.delete_account(user_id)
        except (InfrastructureError, NotFoundError) as e:
            logger.error("Failed to remove account %s after role assignment failure: %s", user_id, e)

    @staticmethod
    def _temporary_password() -> str:
        alphabet = string.ascii_letters + string.digits
        return "".join(secrets.choice(alphabet) for _ in range(12)) + "A1!"
