import uuid
import logging
from typing import Dict, Any, List

from src.database import models
from src.repositories.interfaces import ITaskRepository, IBacklogItemRepository
from src.services.authorization_service import AuthContext, check_ownership
from src.services.exceptions import StoryNotFoundError, TaskNotFoundError, ValidationError

logger = logging.getLogger(__name__)

TASK_STATUSES = ["To Do", "In Progress", "Blocked", "Done"]


def task_to_dict(task: models.Task) -> Dict[str, Any]:
    return {
        "id": task.id,
        "backlog_item_id": task.backlog_item_id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "effort": task.effort,
        "assigned_to": task.assigned_to,
        "progress": task.progress,
        "display_order": task.display_order,
        "created_by": task.created_by,
        "created_at": task.created_at.isoformat() if task.created_at else None,
        "updated_at": task.updated_at.isoformat() if task.updated_at else None,
    }


class TaskService:
    def __init__(self, task_repo: ITaskRepository, item_repo: IBacklogItemRepository):
        """
        TaskService를 초기화합니다.

        Args:
            task_repo: 태스크 데이터에 접근하기 위한 리포지토리.
            item_repo: 태스크가 속한 스토리의 프로젝트를 확인하기 위한 리포지토리.
        """
        self.task_repo = task_repo
        self.item_repo = item_repo

    def list_tasks(self, project: str, story_id: str) -> List[Dict[str, Any]]:
        """
        스토리에 속한 태스크 목록을 조회합니다.

        Raises:
            StoryNotFoundError: 프로젝트에 해당 스토리가 없을 때.
        """
        self._ensure_story_in_project(project, story_id)
        return [task_to_dict(t) for t in self.task_repo.list_by_story(story_id)]

    def create_task(self, context: AuthContext, story_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        스토리에 새 태스크를 추가합니다. 상태 기본값은 'To Do', 진행률은 0입니다.

        Raises:
            StoryNotFoundError: 프로젝트에 해당 스토리가 없을 때.
            ValidationError: title이 없거나 status가 허용되지 않는 값일 때.
        """
        self._ensure_story_in_project(context.project, story_id)

        if not data.get("title"):
            raise ValidationError("Missing required field: title")
        status = data.get("status") or "To Do"
        if status not in TASK_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(TASK_STATUSES)}")

        new_task = models.Task(
            id=str(uuid.uuid4()),
            backlog_item_id=story_id,
            title=data["title"],
            description=data.get("description") or None,
            status=status,
            effort=data.get("effort") or None,
            assigned_to=data.get("assignedUserId") or None,
            progress=0,
            display_order=self.task_repo.next_display_order(story_id),
            created_by=context.user_id,
        )
        return task_to_dict(self.task_repo.create(new_task))

    def get_task(self, project: str, task_id: str) -> Dict[str, Any]:
        return task_to_dict(self._get_in_project(project, task_id))

    def update_task(self, context: AuthContext, task_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        태스크의 title, description, effort, 담당자를 갱신합니다.

        Raises:
            TaskNotFoundError: 태스크가 없거나 요청한 프로젝트에 속하지 않을 때.
            ForbiddenError: contributor가 다른 사람이 만든 태스크를 수정하려 할 때.
            ValidationError: 변경할 필드가 하나도 없을 때.
        """
        task = self._get_in_project(context.project, task_id)
        check_ownership(context, task.created_by)

        updates: Dict[str, Any] = {}
        for field in ("title", "description", "effort"):
            if field in data:
                updates[field] = data[field]
        if "assignedUserId" in data:
            updates["assigned_to"] = data["assignedUserId"] or None

        if not updates:
            raise ValidationError("No fields to update")
        return task_to_dict(self.task_repo.update(task, updates))

    def update_status(self, context: AuthContext, task_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        태스크의 상태와 진행률(0~100)을 함께 갱신합니다.

        Raises:
            TaskNotFoundError: 태스크가 없거나 요청한 프로젝트에 속하지 않을 때.
            ForbiddenError: contributor가 다른 사람이 만든 태스크를 수정하려 할 때.
            ValidationError: status/progress 누락 또는 범위를 벗어난 값일 때.
        """
        task = self._get_in_project(context.project, task_id)
        check_ownership(context, task.created_by)

        if data.get("status") is None or data.get("progress") is None:
            raise ValidationError("Both status and progress are required")
        if data["status"] not in TASK_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(TASK_STATUSES)}")
        try:
            progress = int(data["progress"])
        except (TypeError, ValueError):
            raise ValidationError("Invalid progress. Must be a number between 0 and 100")
        if progress < 0 or progress > 100:
            raise ValidationError("Invalid progress. Must be a number between 0 and 100")

        return task_to_dict(self.task_repo.update(task, {"status": data["status"], "progress": progress}))

    def _ensure_story_in_project(self, project: str, story_id: str) -> None:
        if not self.item_repo.find_by_id_and_project(story_id, project):
            raise StoryNotFoundError("Story not found in this project")

    def _get_in_project(self, project: str, task_id: str) -> models.Task:
        task = self.task_repo.find_by_id(task_id)
        if not task:
            raise TaskNotFoundError("Task not found")
        if task.backlog_item is None or task.backlog_item.project != project:
            raise TaskNotFoundError("Task not found in this project")
        return task
