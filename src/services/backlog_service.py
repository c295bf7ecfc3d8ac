import logging
from typing import Dict, Any, List, Optional

from src.database import models
from src.repositories.interfaces import IBacklogItemRepository
from src.services.authorization_service import AuthContext, check_ownership
from src.services.exceptions import StoryNotFoundError, ValidationError, BadRequestError

logger = logging.getLogger(__name__)

PRIORITIES = ["CRITICAL", "HIGH", "MEDIUM", "LOW"]
STORY_STATUSES = ["NOT_STARTED", "IN_PROGRESS", "TESTING", "BLOCKED", "COMPLETE"]
FIBONACCI_EFFORTS = [1, 2, 3, 5, 8, 13]
REQUIRED_STORY_FIELDS = ["userStory", "epic", "priority", "effort", "businessValue"]

# 스토리 API(camelCase) 필드 -> 컬럼 이름
STORY_FIELD_MAP = {
    "userStory": "user_story",
    "epic": "epic",
    "technicalNotes": "technical_notes",
    "acceptanceCriteria": "acceptance_criteria",
    "dependencies": "dependencies",
    "assignedTo": "assigned_to",
    "isNext": "is_next",
    "priority": "priority",
    "status": "status",
    "effort": "effort",
    "businessValue": "business_value",
}

# 백로그 API에서 직접 쓸 수 있는 컬럼
WRITABLE_COLUMNS = {
    "epic", "priority", "status", "user_story", "acceptance_criteria", "effort", "business_value",
    "dependencies", "technical_notes", "assigned_to", "is_next", "display_order",
}


def story_to_dict(item: models.BacklogItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "project": item.project,
        "epic": item.epic,
        "priority": item.priority,
        "status": item.status,
        "user_story": item.user_story,
        "acceptance_criteria": item.acceptance_criteria or [],
        "effort": item.effort,
        "business_value": item.business_value,
        "dependencies": item.dependencies or [],
        "technical_notes": item.technical_notes or "",
        "assigned_to": item.assigned_to,
        "is_next": bool(item.is_next),
        "display_order": item.display_order,
        "created_by": item.created_by,
        "created_at": item.created_at.isoformat() if item.created_at else None,
        "updated_at": item.updated_at.isoformat() if item.updated_at else None,
    }


def _validate_priority(priority):
    if priority not in PRIORITIES:
        raise ValidationError(f"Invalid priority. Must be one of: {', '.join(PRIORITIES)}")

def _validate_status(status):
    if status not in STORY_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(STORY_STATUSES)}")

def _validate_effort(effort):
    if effort not in FIBONACCI_EFFORTS or isinstance(effort, bool):
        raise ValidationError(
            f"Invalid effort. Must be a Fibonacci number: {', '.join(str(e) for e in FIBONACCI_EFFORTS)}"
        )

def _validate_business_value(value):
    if not isinstance(value, int) or isinstance(value, bool) or value < 1 or value > 10:
        raise ValidationError("Invalid businessValue. Must be between 1 and 10")


class BacklogService:
    """프로젝트 백로그의 스토리 조회/생성/수정/삭제를 담당합니다."""

    def __init__(self, item_repo: IBacklogItemRepository):
        self.item_repo = item_repo

    def list_stories(self, project: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        프로젝트의 스토리 목록을 조회합니다.

        Args:
            project: 조회할 프로젝트 이름.
            params: status, priority, epic, assignedTo, isNext('true'/'false'), search, limit 필터.

        Raises:
            BadRequestError: limit이 정수가 아닐 때.
        """
        params = params or {}
        filters: Dict[str, Any] = {}
        for param, column in (("status", "status"), ("priority", "priority"),
                              ("epic", "epic"), ("assignedTo", "assigned_to")):
            if params.get(param):
                filters[column] = params[param]
        if params.get("isNext") == "true":
            filters["is_next"] = True
        elif params.get("isNext") == "false":
            filters["is_next"] = False

        try:
            limit = int(params["limit"]) if params.get("limit") else None
        except ValueError:
            raise BadRequestError("'limit' must be an integer")
        items = self.item_repo.list_by_project(project, filters, search=params.get("search"), limit=limit)
        return [story_to_dict(item) for item in items]

    def get_story(self, project: str, story_id: str) -> Dict[str, Any]:
        return story_to_dict(self._get_in_project(project, story_id))

    def create_story(self, context: AuthContext, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        새 스토리를 생성합니다. ID는 전체 백로그에서 순차적으로, display_order는 프로젝트의 마지막 다음으로 부여됩니다.

        Raises:
            ValidationError: 필수 필드 누락, 또는 priority/status/effort/businessValue 값이 범위를 벗어날 때.
        """
        missing = [f for f in REQUIRED_STORY_FIELDS if not data.get(f)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        status = data.get("status") or "NOT_STARTED"
        _validate_priority(data["priority"])
        _validate_status(status)
        _validate_effort(data["effort"])
        _validate_business_value(data["businessValue"])

        new_item = models.BacklogItem(
            id=self.item_repo.next_id(),
            project=context.project,
            epic=data["epic"],
            priority=data["priority"],
            status=status,
            user_story=data["userStory"],
            acceptance_criteria=data.get("acceptanceCriteria") or [],
            effort=data["effort"],
            business_value=data["businessValue"],
            dependencies=data.get("dependencies") or [],
            technical_notes=data.get("technicalNotes") or "",
            assigned_to=data.get("assignedTo") or None,
            is_next=bool(data.get("isNext", False)),
            display_order=self.item_repo.next_display_order(context.project),
            created_by=context.user_id,
        )
        created = self.item_repo.create(new_item)
        logger.info("Story %s created in project %s by %s", created.id, context.project, context.user_id)
        return story_to_dict(created)

    def update_story(self, context: AuthContext, story_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        스토리의 일부 필드를 갱신합니다. 전달된 필드만 변경됩니다.

        Raises:
            StoryNotFoundError: 프로젝트에 해당 스토리가 없을 때.
            ValidationError: 값이 허용 범위를 벗어날 때.
            ForbiddenError: contributor가 다른 사람이 만든 스토리를 수정하려 할 때.
        """
        item = self._get_in_project(context.project, story_id)
        check_ownership(context, item.created_by)

        if "priority" in data:
            _validate_priority(data["priority"])
        if "status" in data:
            _validate_status(data["status"])
        if "effort" in data:
            _validate_effort(data["effort"])
        if "businessValue" in data:
            _validate_business_value(data["businessValue"])

        updates = {column: data[field] for field, column in STORY_FIELD_MAP.items() if field in data}
        if "assigned_to" in updates:
            updates["assigned_to"] = updates["assigned_to"] or None
        return story_to_dict(self.item_repo.update(item, updates))

    def delete_story(self, context: AuthContext, story_id: str) -> Dict[str, Any]:
        """스토리를 삭제하고, 삭제된 스토리 정보를 반환합니다."""
        item = self._get_in_project(context.project, story_id)
        deleted = story_to_dict(item)
        self.item_repo.delete(item)
        logger.info("Story %s deleted from project %s by %s", story_id, context.project, context.user_id)
        return deleted

    # ------------------------------------------------------------------
    # 백로그 API (컬럼 이름을 그대로 사용하는 저수준 CRUD)
    # ------------------------------------------------------------------

    def create_item(self, context: AuthContext, data: Dict[str, Any]) -> Dict[str, Any]:
        """id는 항상 서버가 순차적으로 부여하며, 요청 본문의 id는 무시합니다."""
        if not data.get("user_story"):
            raise ValidationError("Missing required field: user_story")
        values = {k: v for k, v in data.items() if k in WRITABLE_COLUMNS}
        values.setdefault("display_order", self.item_repo.next_display_order(context.project))
        new_item = models.BacklogItem(
            id=self.item_repo.next_id(),
            project=context.project,
            created_by=context.user_id,
            **values,
        )
        return story_to_dict(self.item_repo.create(new_item))

    def update_item(self, context: AuthContext, data: Dict[str, Any]) -> Dict[str, Any]:
        item_id = data.get("id")
        if not item_id:
            raise BadRequestError("ID and project are required")
        item = self._get_in_project(context.project, str(item_id))
        check_ownership(context, item.created_by)
        updates = {k: v for k, v in data.items() if k in WRITABLE_COLUMNS}
        return story_to_dict(self.item_repo.update(item, updates))

    def delete_item(self, context: AuthContext, item_id: Optional[str]) -> bool:
        if not item_id:
            raise BadRequestError("ID and project are required")
        return self.item_repo.delete(self._get_in_project(context.project, item_id))

    def list_projects(self) -> List[str]:
        return self.item_repo.list_projects()

    def _get_in_project(self, project: str, story_id: str) -> models.BacklogItem:
        item = self.item_repo.find_by_id_and_project(story_id, project)
        if not item:
            raise StoryNotFoundError("Story not found in this project")
        return item
