# src/app.py
from wsgiref.simple_server import make_server
from urllib.parse import parse_qs
import json
import logging
import re

from src import config
from src.database.database import SessionLocal
from src.database.db_init import initialize_db
from src.repositories.sqlalchemy.sqlalchemy_role_assignment_repository import SqlalchemyRoleAssignmentRepository
from src.repositories.sqlalchemy.sqlalchemy_backlog_item_repository import SqlalchemyBacklogItemRepository
from src.repositories.sqlalchemy.sqlalchemy_task_repository import SqlalchemyTaskRepository
from src.repositories.sqlalchemy.sqlalchemy_documentation_repository import SqlalchemyDocumentationRepository
from src.repositories.sqlalchemy.sqlalchemy_access_log_repository import SqlalchemyAccessLogRepository
from src.repositories.sqlalchemy.sqlalchemy_view_state_repository import SqlalchemyViewStateRepository
from src.repositories.supabase.supabase_identity_provider import SupabaseIdentityProvider
from src.services.authorization_service import AuthorizationService
from src.services.backlog_service import BacklogService
from src.services.task_service import TaskService
from src.services.documentation_service import DocumentationService
from src.services.user_admin_service import UserAdminService
from src.services.access_log_service import AccessLogService
from src.services.view_state_service import ViewStateService
from src.services.permissions import ALL_PROJECTS
from src.services.exceptions import *

logger = logging.getLogger(__name__)

ANY_ROLE = ()

# --------------------------------------------------------------------------
## 요청 처리 유틸리티 함수
# --------------------------------------------------------------------------

def get_request_data(environ):
    """JSON 본문을 한 번만 읽고, 이후 호출에는 저장해 둔 값을 반환합니다."""
    if "bubbleup.request_data" not in environ:
        try:
            content_length = int(environ.get("CONTENT_LENGTH") or 0)
            environ["bubbleup.request_data"] = (
                json.loads(environ["wsgi.input"].read(content_length)) if content_length > 0 else {}
            )
        except ValueError:
            raise BadRequestError("Invalid or missing JSON body.")
    return environ["bubbleup.request_data"]

def get_query_params(environ):
    return {key: values[0] for key, values in parse_qs(environ.get("QUERY_STRING", "")).items()}

def get_int_param(params, name, default):
    try:
        return int(params.get(name) or default)
    except ValueError:
        raise BadRequestError(f"'{name}' must be an integer")

def authorize(environ, required_roles=ANY_ROLE, require_project=True):
    """Bearer 토큰과 대상 프로젝트의 역할을 확인하고 AuthContext를 반환합니다."""
    body = None
    if environ.get("REQUEST_METHOD") in ("POST", "PUT", "PATCH"):
        try:
            body = get_request_data(environ)
        except BadRequestError:
            # 본문 오류는 핸들러가 본문을 읽을 때 보고합니다.
            body = None
    return environ['services']['authorization'].authenticate(
        environ.get('HTTP_AUTHORIZATION'),
        query=get_query_params(environ),
        body=body,
        required_roles=required_roles,
        require_project=require_project,
    )

def identify(environ):
    return environ['services']['authorization'].identify(environ.get('HTTP_AUTHORIZATION'))

def authorize_capability(environ, capability):
    """프로젝트에 대한 역할을 확인한 뒤, 역할의 권한 집합에 capability가 있는지 검사합니다."""
    context = authorize(environ)
    environ['services']['authorization'].require_capability(context, capability)
    return context

ERROR_MAP = {
    UnauthenticatedError: ("401 Unauthorized", "unauthenticated"),
    BadRequestError: ("400 Bad Request", "bad_request"),
    ForbiddenError: ("403 Forbidden", "forbidden"),
    NotFoundError: ("404 Not Found", "not_found"),
    ValidationError: ("422 Unprocessable Entity", "validation_error"),
}

def handle_exception(e):
    for error_type, (status, kind) in ERROR_MAP.items():
        if isinstance(e, error_type):
            return status, json.dumps({"error": str(e), "kind": kind})

    # 인프라 오류와 예상하지 못한 오류는 서버 로그에만 상세 내용을 남깁니다.
    logger.exception("Unhandled error while processing request: %s", e)
    return "500 Internal Server Error", json.dumps({"error": "Internal server error", "kind": "infrastructure_error"})

# --------------------------------------------------------------------------
## WSGI 애플리케이션 (의존성 주입 및 라우팅)
# --------------------------------------------------------------------------

_identity_provider = None

def get_identity_provider():
    # HTTP 연결 풀만 공유하며, 역할이나 토큰 검증 결과는 보관하지 않습니다.
    global _identity_provider
    if _identity_provider is None:
        _identity_provider = SupabaseIdentityProvider()
    return _identity_provider

def build_services(db_session):
    """요청마다 새 DB 세션으로 Repositories -> Services를 조립합니다."""
    role_repo = SqlalchemyRoleAssignmentRepository(db_session)
    item_repo = SqlalchemyBacklogItemRepository(db_session)
    task_repo = SqlalchemyTaskRepository(db_session)
    doc_repo = SqlalchemyDocumentationRepository(db_session)
    log_repo = SqlalchemyAccessLogRepository(db_session)
    view_state_repo = SqlalchemyViewStateRepository(db_session)
    identity_provider = get_identity_provider()

    authorization = AuthorizationService(role_repo, identity_provider)
    return {
        'authorization': authorization,
        'backlog': BacklogService(item_repo),
        'tasks': TaskService(task_repo, item_repo),
        'documentation': DocumentationService(doc_repo, item_repo, authorization),
        'users': UserAdminService(role_repo, identity_provider, authorization),
        'access_log': AccessLogService(log_repo, authorization),
        'view_state': ViewStateService(view_state_repo),
    }

def application(environ, start_response):
    db_session = SessionLocal()
    try:
        environ['services'] = build_services(db_session)

        path = environ.get("PATH_INFO", "")
        method = environ.get("REQUEST_METHOD", "")

        routes = [
            ('GET', r'^/api/permissions$', get_permissions_handler),
            ('GET', r'^/api/projects$', list_projects_handler),
            ('GET', r'^/api/stories$', list_stories_handler),
            ('POST', r'^/api/stories$', create_story_handler),
            ('GET', r'^/api/stories/([A-Za-z0-9_-]+)$', get_story_handler),
            ('PUT', r'^/api/stories/([A-Za-z0-9_-]+)$', update_story_handler),
            ('DELETE', r'^/api/stories/([A-Za-z0-9_-]+)$', delete_story_handler),
            ('GET', r'^/api/stories/([A-Za-z0-9_-]+)/tasks$', list_tasks_handler),
            ('POST', r'^/api/stories/([A-Za-z0-9_-]+)/tasks$', create_task_handler),
            ('GET', r'^/api/tasks/([A-Za-z0-9_-]+)$', get_task_handler),
            ('PUT', r'^/api/tasks/([A-Za-z0-9_-]+)$', update_task_handler),
            ('PATCH', r'^/api/tasks/([A-Za-z0-9_-]+)/status$', update_task_status_handler),
            ('GET', r'^/api/backlog$', list_backlog_handler),
            ('POST', r'^/api/backlog$', create_backlog_item_handler),
            ('PATCH', r'^/api/backlog$', update_backlog_item_handler),
            ('DELETE', r'^/api/backlog$', delete_backlog_item_handler),
            ('GET', r'^/api/documentation$', list_documentation_handler),
            ('POST', r'^/api/documentation$', create_documentation_handler),
            ('PATCH', r'^/api/documentation$', update_documentation_handler),
            ('GET', r'^/api/view-state$', get_view_state_handler),
            ('POST', r'^/api/view-state$', save_view_state_handler),
            ('POST', r'^/api/access-log$', record_access_handler),
            ('GET', r'^/api/access-log$', list_access_handler),
            ('GET', r'^/api/users$', list_users_handler),
            ('GET', r'^/api/project-users$', list_project_users_handler),
            ('GET', r'^/api/admin/user-roles$', list_user_roles_handler),
            ('POST', r'^/api/admin/user-roles$', assign_role_handler),
            ('DELETE', r'^/api/admin/user-roles$', revoke_role_handler),
            ('POST', r'^/api/admin/invite$', invite_user_handler),
            ('POST', r'^/api/admin/manual-reset$', manual_reset_handler),
            ('POST', r'^/api/admin/recovery-link$', recovery_link_handler),
            ('POST', r'^/api/admin/cleanup-orphans$', cleanup_orphans_handler),
        ]

        handler, path_args = None, []
        for route_method, pattern, route_handler in routes:
            if method == route_method and (match := re.match(pattern, path)):
                handler, path_args = route_handler, match.groups()
                break

        if handler:
            status, response_body = handler(environ, *path_args)
        else:
            status, response_body = '404 Not Found', json.dumps({'error': 'Not Found', 'kind': 'not_found'})

    except Exception as e:
        status, response_body = handle_exception(e)
    finally:
        db_session.close()

    start_response(status, [("Content-Type", "application/json")])
    return [response_body.encode("utf-8")]

# --------------------------------------------------------------------------
## 권한 / 프로젝트
# --------------------------------------------------------------------------

def get_permissions_handler(environ, *args):
    identity = identify(environ)
    project = get_query_params(environ).get('project')
    if not project:
        raise BadRequestError("Project parameter is required")
    role, capabilities = environ['services']['authorization'].get_permissions(identity.id, project)
    return '200 OK', json.dumps({
        "role": role.value if role else None,
        "permissions": capabilities.to_dict(),
        "project": project,
    })

def list_projects_handler(environ, *args):
    identity = identify(environ)
    authorized = environ['services']['authorization'].list_authorized_projects(identity.id)
    if ALL_PROJECTS in authorized:
        projects = environ['services']['backlog'].list_projects()
    else:
        projects = authorized
    return '200 OK', json.dumps({"authorizedProjects": authorized, "projects": projects})

# --------------------------------------------------------------------------
## 스토리 / 태스크
# --------------------------------------------------------------------------

def list_stories_handler(environ, *args):
    context = authorize(environ, ANY_ROLE)
    stories = environ['services']['backlog'].list_stories(context.project, get_query_params(environ))
    return '200 OK', json.dumps({"stories": stories, "count": len(stories)})

def create_story_handler(environ, *args):
    context = authorize_capability(environ, "can_create")
    story = environ['services']['backlog'].create_story(context, get_request_data(environ))
    return '201 Created', json.dumps({"id": story["id"], "created_at": story["created_at"], "story": story})

def get_story_handler(environ, story_id):
    context = authorize(environ, ANY_ROLE)
    return '200 OK', json.dumps({"story": environ['services']['backlog'].get_story(context.project, story_id)})

def update_story_handler(environ, story_id):
    context = authorize_capability(environ, "can_edit")
    story = environ['services']['backlog'].update_story(context, story_id, get_request_data(environ))
    return '200 OK', json.dumps({"updated_at": story["updated_at"], "story": story})

def delete_story_handler(environ, story_id):
    context = authorize_capability(environ, "can_delete")
    deleted = environ['services']['backlog'].delete_story(context, story_id)
    return '200 OK', json.dumps({"message": "Story deleted successfully", "deletedStory": deleted})

def list_tasks_handler(environ, story_id):
    context = authorize(environ, ANY_ROLE)
    return '200 OK', json.dumps({"tasks": environ['services']['tasks'].list_tasks(context.project, story_id)})

def create_task_handler(environ, story_id):
    context = authorize_capability(environ, "can_create")
    task = environ['services']['tasks'].create_task(context, story_id, get_request_data(environ))
    return '201 Created', json.dumps({"id": task["id"], "status": task["status"], "task": task})

def get_task_handler(environ, task_id):
    context = authorize(environ, ANY_ROLE)
    return '200 OK', json.dumps({"task": environ['services']['tasks'].get_task(context.project, task_id)})

def update_task_handler(environ, task_id):
    context = authorize_capability(environ, "can_edit")
    task = environ['services']['tasks'].update_task(context, task_id, get_request_data(environ))
    return '200 OK', json.dumps({"updated_at": task["updated_at"], "task": task})

def update_task_status_handler(environ, task_id):
    context = authorize_capability(environ, "can_edit")
    task = environ['services']['tasks'].update_status(context, task_id, get_request_data(environ))
    return '200 OK', json.dumps({
        "status": task["status"], "progress": task["progress"], "updated_at": task["updated_at"], "task": task
    })

# --------------------------------------------------------------------------
## 백로그 (컬럼 이름 기반 저수준 API)
# --------------------------------------------------------------------------

def list_backlog_handler(environ, *args):
    context = authorize_capability(environ, "can_view")
    return '200 OK', json.dumps({"data": environ['services']['backlog'].list_stories(context.project)})

def create_backlog_item_handler(environ, *args):
    context = authorize_capability(environ, "can_create")
    item = environ['services']['backlog'].create_item(context, get_request_data(environ))
    return '200 OK', json.dumps({"data": item})

def update_backlog_item_handler(environ, *args):
    context = authorize_capability(environ, "can_edit")
    item = environ['services']['backlog'].update_item(context, get_request_data(environ))
    return '200 OK', json.dumps({"data": item})

def delete_backlog_item_handler(environ, *args):
    context = authorize_capability(environ, "can_delete")
    environ['services']['backlog'].delete_item(context, get_query_params(environ).get('id'))
    return '200 OK', json.dumps({"success": True})

# --------------------------------------------------------------------------
## 문서 기록
# --------------------------------------------------------------------------

def list_documentation_handler(environ, *args):
    context = authorize(environ, require_project=False)
    result = environ['services']['documentation'].list_documentation(context, get_query_params(environ))
    return '200 OK', json.dumps(result)

def create_documentation_handler(environ, *args):
    context = authorize(environ, require_project=False)
    doc = environ['services']['documentation'].create_documentation(context, get_request_data(environ))
    return '201 Created', json.dumps({"documentation": doc})

def update_documentation_handler(environ, *args):
    context = authorize(environ, require_project=False)
    doc = environ['services']['documentation'].update_documentation(
        context, get_query_params(environ).get('id'), get_request_data(environ)
    )
    return '200 OK', json.dumps({"documentation": doc})

# --------------------------------------------------------------------------
## 화면 상태 / 접근 기록
# --------------------------------------------------------------------------

def get_view_state_handler(environ, *args):
    identity = identify(environ)
    return '200 OK', json.dumps({"viewState": environ['services']['view_state'].get_view_state(identity.id)})

def save_view_state_handler(environ, *args):
    identity = identify(environ)
    state = environ['services']['view_state'].save_view_state(identity.id, get_request_data(environ))
    return '200 OK', json.dumps({"viewState": state})

def record_access_handler(environ, *args):
    ip_address = environ.get('HTTP_X_FORWARDED_FOR') or environ.get('HTTP_X_REAL_IP') or 'unknown'
    user_agent = environ.get('HTTP_USER_AGENT') or 'unknown'
    log = environ['services']['access_log'].record_event(get_request_data(environ), ip_address, user_agent)
    return '200 OK', json.dumps({"success": True, "log": log})

def list_access_handler(environ, *args):
    context = authorize(environ, require_project=False)
    params = get_query_params(environ)
    logs = environ['services']['access_log'].list_events(context, params.get('userId'), get_int_param(params, 'limit', 50))
    return '200 OK', json.dumps({"logs": logs})

# --------------------------------------------------------------------------
## 사용자 / 역할 관리
# --------------------------------------------------------------------------

def list_users_handler(environ, *args):
    identify(environ)
    return '200 OK', json.dumps({"users": environ['services']['users'].list_users()})

def list_project_users_handler(environ, *args):
    context = authorize(environ, ANY_ROLE)
    return '200 OK', json.dumps({"users": environ['services']['users'].list_project_users(context.project)})

def list_user_roles_handler(environ, *args):
    context = authorize(environ, require_project=False)
    roles = environ['services']['users'].list_role_assignments(context, get_query_params(environ).get('userId'))
    return '200 OK', json.dumps({"roles": roles})

def assign_role_handler(environ, *args):
    context = authorize(environ, require_project=False)
    data = get_request_data(environ)
    role = environ['services']['users'].assign_role(context, data.get('userId'), data.get('project'), data.get('role'))
    return '200 OK', json.dumps({"role": role})

def revoke_role_handler(environ, *args):
    context = authorize(environ, require_project=False)
    params = get_query_params(environ)
    result = environ['services']['users'].revoke_role(context, params.get('userId'), params.get('project'))
    return '200 OK', json.dumps(result)

def invite_user_handler(environ, *args):
    context = authorize(environ, require_project=False)
    return '200 OK', json.dumps(environ['services']['users'].invite_user(context, get_request_data(environ)))

def manual_reset_handler(environ, *args):
    context = authorize(environ, require_project=False)
    result = environ['services']['users'].manual_reset(context, get_request_data(environ).get('email'))
    return '200 OK', json.dumps(result)

def recovery_link_handler(environ, *args):
    context = authorize(environ, require_project=False)
    result = environ['services']['users'].recovery_link(context, get_request_data(environ).get('email'))
    return '200 OK', json.dumps(result)

def cleanup_orphans_handler(environ, *args):
    context = authorize(environ, require_project=False)
    return '200 OK', json.dumps(environ['services']['users'].cleanup_orphaned_accounts(context))

# --------------------------------------------------------------------------
## 서버 실행
# --------------------------------------------------------------------------

if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    initialize_db()
    try:
        with make_server(config.APP_HOST, config.APP_PORT, application) as httpd:
            logger.info("Serving BubbleUp API on port %s...", config.APP_PORT)
            httpd.serve_forever()
    except Exception as e:
        logger.exception("Error starting server: %s", e)
