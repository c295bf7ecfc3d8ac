# tests/services/test_task_service.py
import pytest
from unittest.mock import MagicMock

from src.services.task_service import TaskService
from src.services.authorization_service import AuthContext
from src.services.permissions import Role
from src.services.exceptions import *
from src.repositories.interfaces import ITaskRepository, IBacklogItemRepository
from src.database import models

# ===================================================================
#  Fixture 설정
# ===================================================================

@pytest.fixture
def mock_task_repo() -> MagicMock:
    repo = MagicMock(spec=ITaskRepository)
    repo.create.side_effect = lambda task: task

    def update(task, updates):
        for column, value in updates.items():
            setattr(task, column, value)
        return task
    repo.update.side_effect = update
    return repo

@pytest.fixture
def mock_item_repo() -> MagicMock:
    return MagicMock(spec=IBacklogItemRepository)

@pytest.fixture
def task_service(mock_task_repo: MagicMock, mock_item_repo: MagicMock) -> TaskService:
    return TaskService(mock_task_repo, mock_item_repo)

@pytest.fixture
def contributor_context() -> AuthContext:
    return AuthContext(user_id="contrib-1", user_email="c@example.com", role=Role.CONTRIBUTOR, project="Alpha")

def make_task(project="Alpha", created_by="contrib-1") -> models.Task:
    task = models.Task(id="t-1", backlog_item_id="7", title="Write migration", status="To Do",
                       progress=0, display_order=0, created_by=created_by)
    task.backlog_item = models.BacklogItem(id="7", project=project, user_story="story")
    return task

# ===================================================================
#  태스크 생성 테스트
# ===================================================================
class TestCreateTask:
    def test_create_task_defaults(self, task_service: TaskService, contributor_context: AuthContext,
                                  mock_task_repo: MagicMock, mock_item_repo: MagicMock):
        # === Arrange ===
        mock_item_repo.find_by_id_and_project.return_value = models.BacklogItem(id="7", project="Alpha")
        mock_task_repo.next_display_order.return_value = 2

        # === Act ===
        task = task_service.create_task(contributor_context, "7", {"title": "Add index", "assignedUserId": "dev-2"})

        # === Assert ===
        assert task["status"] == "To Do"
        assert task["progress"] == 0
        assert task["display_order"] == 2
        assert task["assigned_to"] == "dev-2"
        assert task["created_by"] == "contrib-1"
        mock_item_repo.find_by_id_and_project.assert_called_once_with("7", "Alpha")

    def test_create_task_for_story_in_other_project(self, task_service: TaskService,
                                                    contributor_context: AuthContext,
                                                    mock_task_repo: MagicMock, mock_item_repo: MagicMock):
        mock_item_repo.find_by_id_and_project.return_value = None

        with pytest.raises(StoryNotFoundError):
            task_service.create_task(contributor_context, "7", {"title": "Add index"})
        mock_task_repo.create.assert_not_called()

    def test_create_task_requires_title(self, task_service: TaskService, contributor_context: AuthContext,
                                        mock_item_repo: MagicMock):
        mock_item_repo.find_by_id_and_project.return_value = models.BacklogItem(id="7", project="Alpha")

        with pytest.raises(ValidationError, match="title"):
            task_service.create_task(contributor_context, "7", {})

# ===================================================================
#  태스크 수정 테스트
# ===================================================================
class TestUpdateTask:
    def test_task_from_other_project_is_not_found(self, task_service: TaskService, contributor_context: AuthContext,
                                                  mock_task_repo: MagicMock):
        mock_task_repo.find_by_id.return_value = make_task(project="Beta")

        with pytest.raises(TaskNotFoundError, match="Task not found in this project"):
            task_service.get_task("Alpha", "t-1")

    def test_update_without_fields_is_rejected(self, task_service: TaskService, contributor_context: AuthContext,
                                               mock_task_repo: MagicMock):
        mock_task_repo.find_by_id.return_value = make_task()

        with pytest.raises(ValidationError, match="No fields to update"):
            task_service.update_task(contributor_context, "t-1", {"unknown": 1})

    def test_contributor_cannot_update_others_task(self, task_service: TaskService, contributor_context: AuthContext,
                                                   mock_task_repo: MagicMock):
        mock_task_repo.find_by_id.return_value = make_task(created_by="someone-else")

        with pytest.raises(ForbiddenError):
            task_service.update_task(contributor_context, "t-1", {"title": "Renamed"})
        mock_task_repo.update.assert_not_called()

    def test_update_status_and_progress(self, task_service: TaskService, contributor_context: AuthContext,
                                        mock_task_repo: MagicMock):
        mock_task_repo.find_by_id.return_value = make_task()

        task = task_service.update_status(contributor_context, "t-1", {"status": "In Progress", "progress": 40})

        assert task["status"] == "In Progress"
        assert task["progress"] == 40

    @pytest.mark.parametrize("data", [
        {"status": "Doing", "progress": 10},
        {"status": "Done", "progress": 101},
        {"status": "Done", "progress": -1},
        {"status": "Done"},
        {"status": "Done", "progress": "lots"},
    ])
    def test_update_status_validation(self, data, task_service: TaskService, contributor_context: AuthContext,
                                      mock_task_repo: MagicMock):
        mock_task_repo.find_by_id.return_value = make_task()

        with pytest.raises(ValidationError):
            task_service.update_status(contributor_context, "t-1", data)
        mock_task_repo.update.assert_not_called()
