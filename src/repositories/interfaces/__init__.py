from .role_assignment import IRoleAssignmentRepository
from .backlog_item import IBacklogItemRepository
from .task import ITaskRepository
from .documentation import IDocumentationRepository
from .access_log import IAccessLogRepository
from .view_state import IViewStateRepository
from .identity_provider import IIdentityProvider, Identity
