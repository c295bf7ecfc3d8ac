from .role_assignment import UserProjectRole
from .backlog_item import BacklogItem
from .task import Task
from .documentation import Documentation
from .access_log import UserAccessLog
from .view_state import UserViewState

__all__ = [
    "UserProjectRole",
    "BacklogItem",
    "Task",
    "Documentation",
    "UserAccessLog",
    "UserViewState",
]
