from typing import Dict, Any, List, Optional

from src.database import models
from src.repositories.interfaces import IAccessLogRepository
from src.services.authorization_service import AuthorizationService, AuthContext
from src.services.permissions import ALL_PROJECTS
from src.services.exceptions import BadRequestError, ForbiddenError

EVENT_TYPES = ["login_success", "login_failure"]


def access_log_to_dict(log: models.UserAccessLog) -> Dict[str, Any]:
    return {
        "id": log.id,
        "user_id": log.user_id,
        "email": log.email,
        "event_type": log.event_type,
        "ip_address": log.ip_address,
        "user_agent": log.user_agent,
        "metadata": log.event_metadata or {},
        "created_at": log.created_at.isoformat() if log.created_at else None,
    }


class AccessLogService:
    """로그인 성공/실패 이벤트 기록"""

    def __init__(self, log_repo: IAccessLogRepository, authorization: AuthorizationService):
        self.log_repo = log_repo
        self.authorization = authorization

    def record_event(self, data: Dict[str, Any], ip_address: str = "unknown", user_agent: str = "unknown") -> Dict[str, Any]:
        """
        로그인 이벤트를 기록합니다. 로그인 화면에서 호출되므로 인증을 요구하지 않습니다.

        Raises:
            BadRequestError: email/eventType이 없거나 eventType이 허용되지 않는 값일 때.
        """
        if not data.get("email") or not data.get("eventType"):
            raise BadRequestError("email and eventType are required")
        if data["eventType"] not in EVENT_TYPES:
            raise BadRequestError("eventType must be login_success or login_failure")

        log = models.UserAccessLog(
            user_id=data.get("userId") or None,
            email=data["email"],
            event_type=data["eventType"],
            ip_address=ip_address,
            user_agent=user_agent,
            event_metadata=data.get("metadata") or {},
        )
        return access_log_to_dict(self.log_repo.create(log))

    def list_events(self, context: AuthContext, user_id: Optional[str], limit: int = 50) -> List[Dict[str, Any]]:
        """
        사용자의 접근 기록을 조회합니다. 본인 기록이거나 전체 범위의 사용자 관리 권한이 있어야 합니다.
        """
        if not user_id:
            raise BadRequestError("userId is required")
        if user_id != context.user_id:
            role, capabilities = self.authorization.get_permissions(context.user_id, ALL_PROJECTS)
            if not capabilities.can_manage_users:
                raise ForbiddenError(f"Insufficient permissions. Your role: {role.value if role else 'none'}. Required: can_manage_users")
        return [access_log_to_dict(log) for log in self.log_repo.list_by_user(user_id, limit)]
