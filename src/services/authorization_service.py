import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, Iterable, List, Tuple

from src.repositories.interfaces import IRoleAssignmentRepository, IIdentityProvider, Identity
from src.services.permissions import Role, CapabilitySet, ALL_PROJECTS, resolve
from src.services.exceptions import (
    UnauthenticatedError, BadRequestError, ForbiddenError, InfrastructureError
)

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class AuthContext:
    """인증/인가를 통과한 요청의 사용자 정보와 유효 역할"""
    user_id: str
    user_email: str
    role: Optional[Role]
    project: Optional[str]

    @property
    def capabilities(self) -> CapabilitySet:
        return resolve(self.role)


def check_ownership(context: AuthContext, created_by: Optional[str], role: Optional[Role] = None) -> None:
    """
    contributor 역할은 자신이 만든 항목만 수정할 수 있습니다.

    role을 주지 않으면 요청 컨텍스트의 역할을 기준으로 합니다.
    권한 표(CapabilitySet)의 can_edit는 항목과 무관한 플래그이므로, 기존 항목을 수정하는
    모든 경로에서 이 검사를 추가로 수행해야 합니다. admin/editor는 항상 통과합니다.

    Raises:
        ForbiddenError: contributor가 다른 사용자가 만든 항목을 수정하려 할 때.
    """
    effective_role = role if role is not None else context.role
    if effective_role == Role.CONTRIBUTOR and created_by != context.user_id:
        raise ForbiddenError("Contributors can only edit items they created.")


class AuthorizationService:
    """요청 인증, 프로젝트별 유효 역할 결정, 권한 검사를 담당합니다."""

    def __init__(self, role_repo: IRoleAssignmentRepository, identity_provider: IIdentityProvider):
        """
        AuthorizationService를 초기화합니다.

        Args:
            role_repo: (user_id, project, role) 역할 할당 저장소.
            identity_provider: Bearer 토큰을 검증하는 외부 인증 시스템.
        """
        self.role_repo = role_repo
        self.identity_provider = identity_provider

    def identify(self, authorization_header: Optional[str]) -> Identity:
        """
        Authorization 헤더의 Bearer 토큰을 외부 인증 시스템으로 검증합니다.
        헤더가 없거나 형식이 틀리면 인증 시스템을 호출하지 않고 바로 거부합니다.

        Raises:
            UnauthenticatedError: 헤더 형식이 틀렸거나 토큰이 거부되었을 때.
        """
        token = self._extract_bearer_token(authorization_header)
        return self.identity_provider.verify_credential(token)

    def lookup_effective_role(self, user_id: str, project: str) -> Optional[Role]:
        """
        사용자가 프로젝트에서 실제로 가지는 역할을 결정합니다.

        해당 프로젝트에 대한 할당이 있으면 그 역할을, 없으면 'ALL' 할당의 역할을 사용합니다.
        'ALL' 할당이 더 높은 권한이더라도 프로젝트 할당이 항상 우선합니다.

        Returns:
            유효 역할. 어느 할당도 없거나 저장된 역할 값을 해석할 수 없으면 None.

        Raises:
            InfrastructureError: 역할 저장소 조회에 실패했을 때.
        """
        assignment = self._find_assignment(user_id, project)
        if assignment is None and project != ALL_PROJECTS:
            assignment = self._find_assignment(user_id, ALL_PROJECTS)

        if assignment is None:
            logger.debug("No role assignment for user %s on project %s", user_id, project)
            return None

        role = Role.parse(assignment.role)
        if role is None:
            logger.warning("Unrecognized role '%s' stored for user %s on %s", assignment.role, user_id, assignment.project)
        return role

    def get_permissions(self, user_id: str, project: str) -> Tuple[Optional[Role], CapabilitySet]:
        role = self.lookup_effective_role(user_id, project)
        return role, resolve(role)

    def authenticate(self, authorization_header: Optional[str], query: Optional[Dict[str, Any]] = None,
                     body: Optional[Dict[str, Any]] = None, required_roles: Iterable = (),
                     require_project: bool = True) -> AuthContext:
        """
        Bearer 토큰을 검증하고, 요청 대상 프로젝트에서의 역할을 확인해 AuthContext를 반환합니다.

        프로젝트는 쿼리 파라미터에서 먼저 찾고, 없으면 JSON 본문의 'project' 필드를 사용합니다.
        프로젝트가 없는 요청은 'ALL' 범위(전체 프로젝트 권한)의 역할만 확인합니다.

        Args:
            authorization_header: 'Authorization' 헤더 값.
            query: 쿼리 파라미터 딕셔너리.
            body: JSON 요청 본문.
            required_roles: 허용할 역할 목록. 비어 있으면 프로젝트에 대해 어떤 역할이든 있으면 통과합니다.
            require_project: 프로젝트 지정이 필수인지 여부.

        Raises:
            UnauthenticatedError: 헤더가 없거나 형식이 틀렸거나, 토큰이 거부되었을 때.
            BadRequestError: require_project인데 프로젝트를 찾을 수 없을 때.
            ForbiddenError: 역할이 required_roles에 포함되지 않을 때.
            InfrastructureError: 인증 시스템 또는 역할 저장소에 오류가 있을 때.
        """
        identity = self.identify(authorization_header)

        project = self._extract_project(query, body)
        if require_project and not project:
            raise BadRequestError("Project parameter is required")

        role = self.lookup_effective_role(identity.id, project or ALL_PROJECTS)

        allowed = [parsed for parsed in (Role.parse(r) for r in required_roles) if parsed is not None]
        if allowed and role not in allowed:
            raise ForbiddenError(
                f"Insufficient permissions. Required roles: {', '.join(r.value for r in allowed)}. "
                f"Your role: {role.value if role else 'none'}"
            )
        if not allowed and project and role is None:
            raise ForbiddenError(f"No access to project '{project}'. Your role: none")

        return AuthContext(
            user_id=identity.id,
            user_email=identity.email or "unknown",
            role=role,
            project=project,
        )

    def require_capability(self, context: AuthContext, capability: str) -> None:
        """
        Raises:
            ForbiddenError: 컨텍스트의 역할에 capability 권한이 없을 때.
        """
        if not context.capabilities.allows(capability):
            role = context.role.value if context.role else "none"
            raise ForbiddenError(f"Insufficient permissions. Your role: {role}. Required: {capability}")

    def require_project_capability(self, context: AuthContext, project: str, capability: str) -> Optional[Role]:
        """
        요청 컨텍스트와 다른 프로젝트(예: 스토리의 프로젝트, 초대 대상 프로젝트)에 대해 권한을 확인합니다.

        Returns:
            해당 프로젝트에서의 유효 역할.
        """
        role = self.lookup_effective_role(context.user_id, project)
        if not resolve(role).allows(capability):
            raise ForbiddenError(
                f"Insufficient permissions on project '{project}'. "
                f"Your role: {role.value if role else 'none'}. Required: {capability}"
            )
        return role

    def list_authorized_projects(self, user_id: str) -> List[str]:
        """
        사용자가 접근할 수 있는 프로젝트 목록을 반환합니다.
        'ALL' 할당이 있으면 ['ALL']만 반환합니다.
        """
        try:
            assignments = self.role_repo.list_for_user(user_id)
        except Exception as e:
            logger.exception("Role store lookup failed for user %s", user_id)
            raise InfrastructureError("Failed to look up role assignments.") from e

        if any(a.project == ALL_PROJECTS for a in assignments):
            return [ALL_PROJECTS]
        return [a.project for a in assignments]

    def _find_assignment(self, user_id: str, project: str):
        try:
            return self.role_repo.find(user_id, project)
        except Exception as e:
            logger.exception("Role store lookup failed for user %s on project %s", user_id, project)
            raise InfrastructureError("Failed to look up role assignment.") from e

    @staticmethod
    def _extract_bearer_token(authorization_header: Optional[str]) -> str:
        if not authorization_header or not authorization_header.startswith(BEARER_PREFIX):
            raise UnauthenticatedError(
                "Missing or invalid authorization header. Expected: Authorization: Bearer <token>"
            )
        token = authorization_header[len(BEARER_PREFIX):].strip()
        if not token:
            raise UnauthenticatedError(
                "Missing or invalid authorization header. Expected: Authorization: Bearer <token>"
            )
        return token

    @staticmethod
    def _extract_project(query: Optional[Dict[str, Any]], body: Optional[Dict[str, Any]]) -> Optional[str]:
        project = (query or {}).get("project")
        if not project and isinstance(body, dict):
            project = body.get("project")
        return project if isinstance(project, str) and project else None
