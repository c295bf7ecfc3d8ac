from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, func
from sqlalchemy.orm import relationship
from ..database import Base

class Documentation(Base):
    """
    스토리에 첨부되는 자유 형식의 문서 기록(설계, 진행 상황, 테스트 결과 등)입니다.
    수정 시 기존 행을 덮어쓰지 않고 새 버전을 만들며, 최신 버전만 is_latest가 True입니다.
    """
    __tablename__ = "documentation"
    id = Column(String, primary_key=True)
    story_id = Column(String, ForeignKey("backlog_items.id"), nullable=False, index=True)
    doc_type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    author = Column(String)
    author_email = Column(String)
    created_by = Column(String)
    tags = Column(JSON, default=list)
    links = Column(JSON, default=list)
    related_stories = Column(JSON, default=list)
    category = Column(String, default="general")
    priority = Column(String, default="medium")
    # 'metadata'는 Declarative Base의 예약 속성이라 컬럼 이름만 그대로 사용합니다.
    doc_metadata = Column("metadata", JSON, default=dict)
    version_number = Column(Integer, nullable=False, default=1)
    parent_doc_id = Column(String)
    is_latest = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    story = relationship("BacklogItem", back_populates="documentation")
