import uuid
import logging
from typing import Dict, Any, Optional

from src.database import models
from src.repositories.interfaces import IDocumentationRepository, IBacklogItemRepository
from src.services.authorization_service import AuthorizationService, AuthContext, check_ownership
from src.services.permissions import ALL_PROJECTS
from src.services.exceptions import BadRequestError, StoryNotFoundError, DocumentNotFoundError

logger = logging.getLogger(__name__)

DOC_TYPES = [
    "design", "plan", "progress", "next_steps", "testing", "requirements",
    "feedback", "build_log", "test_result", "decision_log", "technical_note",
    "error", "success",
]


def document_to_dict(doc: models.Documentation) -> Dict[str, Any]:
    return {
        "id": doc.id,
        "story_id": doc.story_id,
        "doc_type": doc.doc_type,
        "title": doc.title,
        "content": doc.content,
        "author": doc.author,
        "author_email": doc.author_email,
        "created_by": doc.created_by,
        "tags": doc.tags or [],
        "links": doc.links or [],
        "related_stories": doc.related_stories or [],
        "category": doc.category,
        "priority": doc.priority,
        "metadata": doc.doc_metadata or {},
        "version_number": doc.version_number,
        "parent_doc_id": doc.parent_doc_id,
        "is_latest": bool(doc.is_latest),
        "created_at": doc.created_at.isoformat() if doc.created_at else None,
        "updated_at": doc.updated_at.isoformat() if doc.updated_at else None,
    }


class DocumentationService:
    """스토리에 첨부되는 문서 기록을 관리합니다. 권한은 문서가 속한 스토리의 프로젝트 기준입니다."""

    def __init__(self, doc_repo: IDocumentationRepository, item_repo: IBacklogItemRepository,
                 authorization: AuthorizationService):
        self.doc_repo = doc_repo
        self.item_repo = item_repo
        self.authorization = authorization

    def create_documentation(self, context: AuthContext, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        스토리에 새 문서(버전 1)를 추가합니다.

        Raises:
            BadRequestError: story_id, doc_type, title, content가 없거나 doc_type이 허용되지 않을 때.
            StoryNotFoundError: 스토리가 없을 때.
            ForbiddenError: 스토리의 프로젝트에서 생성 권한(can_create)이 없을 때.
        """
        story_id = data.get("story_id")
        if not story_id:
            raise BadRequestError("story_id is required")
        if data.get("doc_type") not in DOC_TYPES:
            raise BadRequestError(f"doc_type must be one of: {', '.join(DOC_TYPES)}")
        if not data.get("title") or not data.get("content"):
            raise BadRequestError("title and content are required")

        story = self.item_repo.find_by_id(str(story_id))
        if not story:
            raise StoryNotFoundError("Story not found or access denied")
        self.authorization.require_project_capability(context, story.project, "can_create")

        doc = models.Documentation(
            id=str(uuid.uuid4()),
            story_id=story.id,
            doc_type=data["doc_type"],
            title=data["title"],
            content=data["content"],
            author=data.get("author") or context.user_email,
            author_email=context.user_email,
            created_by=context.user_id,
            tags=data.get("tags") or [],
            links=data.get("links") or [],
            related_stories=data.get("related_stories") or [],
            category=data.get("category") or "general",
            priority=data.get("priority") or "medium",
            doc_metadata=data.get("metadata") or {},
            version_number=1,
            is_latest=True,
        )
        created = self.doc_repo.create(doc)
        logger.info("Documentation %s (%s) added to story %s", created.id, created.doc_type, story.id)
        return document_to_dict(created)

    def list_documentation(self, context: AuthContext, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        문서 목록을 최신순으로 조회합니다.

        story_id가 주어지면 해당 스토리의 프로젝트 조회 권한을 확인하고,
        없으면 사용자가 접근할 수 있는 프로젝트의 문서만 반환합니다.

        Raises:
            BadRequestError: limit/offset이 정수가 아닐 때.
        """
        params = params or {}
        story_id = params.get("story_id")
        try:
            limit = int(params.get("limit") or 50)
            offset = int(params.get("offset") or 0)
        except ValueError:
            raise BadRequestError("limit and offset must be integers")
        include_versions = params.get("include_versions") == "true"

        projects = None
        if story_id:
            story = self.item_repo.find_by_id(story_id)
            if not story:
                raise StoryNotFoundError("Story not found or access denied")
            self.authorization.require_project_capability(context, story.project, "can_view")
        else:
            authorized = self.authorization.list_authorized_projects(context.user_id)
            if ALL_PROJECTS not in authorized:
                projects = authorized

        docs, total = self.doc_repo.list_documents(
            story_id=story_id,
            doc_type=params.get("doc_type"),
            latest_only=not include_versions,
            limit=limit,
            offset=offset,
            projects=projects,
        )
        return {
            "documentation": [document_to_dict(d) for d in docs],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    def update_documentation(self, context: AuthContext, doc_id: Optional[str], data: Dict[str, Any]) -> Dict[str, Any]:
        """
        문서를 수정합니다. 기존 문서는 보존되고, 변경 내용을 반영한 새 버전이 생성됩니다.

        Raises:
            BadRequestError: 문서 ID가 없을 때.
            DocumentNotFoundError: 문서가 없을 때.
            ForbiddenError: 수정 권한이 없거나, contributor가 다른 사람의 문서를 수정하려 할 때.
        """
        if not doc_id:
            raise BadRequestError("Document ID is required")
        existing = self.doc_repo.find_by_id(doc_id)
        if not existing:
            raise DocumentNotFoundError("Document not found")

        story = self.item_repo.find_by_id(existing.story_id)
        if not story:
            raise StoryNotFoundError("Story not found or access denied")
        role = self.authorization.require_project_capability(context, story.project, "can_edit")
        check_ownership(context, existing.created_by, role)

        new_version = models.Documentation(
            id=str(uuid.uuid4()),
            story_id=existing.story_id,
            doc_type=existing.doc_type,
            title=data.get("title") or existing.title,
            content=data.get("content") or existing.content,
            author=existing.author,
            author_email=existing.author_email,
            created_by=existing.created_by,
            tags=data.get("tags") or existing.tags,
            links=data.get("links") or existing.links,
            related_stories=data.get("related_stories") or existing.related_stories,
            category=existing.category,
            priority=existing.priority,
            doc_metadata=data.get("metadata") or existing.doc_metadata,
            version_number=existing.version_number + 1,
            parent_doc_id=existing.id,
            is_latest=True,
        )
        return document_to_dict(self.doc_repo.create_version(existing, new_version))
