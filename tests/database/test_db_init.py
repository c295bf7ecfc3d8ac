# tests/database/test_db_init.py
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.database import db_init
from src.database import models

@pytest.fixture
def memory_db(monkeypatch):
    """db_init이 메모리 SQLite를 사용하도록 engine과 SessionLocal을 교체합니다."""
    engine = create_engine("sqlite://")
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    monkeypatch.setattr(db_init, "engine", engine)
    monkeypatch.setattr(db_init, "SessionLocal", session_factory)
    monkeypatch.delenv("BOOTSTRAP_ADMIN_USER_ID", raising=False)
    yield session_factory
    engine.dispose()


class TestInitializeDb:
    def test_bootstrap_admin_gets_all_scope(self, memory_db):
        # === Act ===
        db_init.initialize_db("admin-user")

        # === Assert ===
        session = memory_db()
        roles = session.query(models.UserProjectRole).all()
        assert [(r.user_id, r.project, r.role) for r in roles] == [("admin-user", "ALL", "admin")]
        session.close()

    def test_existing_roles_are_left_untouched(self, memory_db):
        db_init.initialize_db("admin-user")
        db_init.initialize_db("another-admin")

        session = memory_db()
        assert session.query(models.UserProjectRole).count() == 1
        session.close()

    def test_without_bootstrap_user_only_creates_tables(self, memory_db):
        db_init.initialize_db()

        session = memory_db()
        assert session.query(models.UserProjectRole).count() == 0
        session.close()
