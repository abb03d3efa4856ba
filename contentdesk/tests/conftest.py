import os
import tempfile
from datetime import datetime, timezone
from types import SimpleNamespace

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-key"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["COOKIE_SECURE"] = "false"
os.environ["UPLOADS_DIR"] = tempfile.mkdtemp(prefix="contentdesk-uploads-")
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
for var in ("LOG_SHIP_TOKEN", "EMAIL_API_KEY", "OPENAI_API_KEY", "LINKEDIN_CLIENT_ID", "LINKEDIN_CLIENT_SECRET"):
    os.environ.pop(var, None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from contentdesk.db import get_db
from contentdesk.main import app
from contentdesk.models import Base, Organization, OrganizationUser, User, Idea, ContentDraft
from contentdesk.security.auth import COOKIE_NAME, create_session_token, get_password_hash

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

T0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture()
def db_session():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session):
    def _make(email, role="CREATIVE", name=None, password="password123", is_active=True, is_super_admin=False):
        user = User(
            email=email,
            name=name or email.split("@")[0],
            role=role,
            password_hash=get_password_hash(password),
            is_active=is_active,
            is_super_admin=is_super_admin,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make


@pytest.fixture()
def make_org(db_session):
    def _make(name, slug=None):
        org = Organization(name=name, slug=slug or name.lower().replace(" ", "-"))
        db_session.add(org)
        db_session.commit()
        db_session.refresh(org)
        return org
    return _make


@pytest.fixture()
def add_member(db_session):
    def _add(org, user, role="MEMBER", is_active=True, joined_at=None):
        membership = OrganizationUser(
            organization_id=org.id,
            user_id=user.id,
            role=role,
            is_active=is_active,
            permissions=[],
            joined_at=joined_at or T0,
        )
        db_session.add(membership)
        db_session.commit()
        db_session.refresh(membership)
        return membership
    return _add


@pytest.fixture()
def seed(make_user, make_org, add_member):
    """Two tenants: O1 with a creative, a client and an admin; O2 with its own client."""
    o1 = make_org("Acme", "acme")
    o2 = make_org("Globex", "globex")
    creative = make_user("creative@acme.test", role="CREATIVE")
    client_user = make_user("client@acme.test", role="CLIENT")
    admin = make_user("admin@acme.test", role="ADMIN")
    other_client = make_user("client@globex.test", role="CLIENT")
    add_member(o1, creative, role="MEMBER")
    add_member(o1, client_user, role="MEMBER")
    add_member(o1, admin, role="OWNER")
    add_member(o2, other_client, role="OWNER")
    return SimpleNamespace(
        o1=o1, o2=o2, creative=creative, client=client_user, admin=admin, other_client=other_client,
    )


@pytest.fixture()
def login(client):
    """Switch the test client's session cookie to ``user``."""
    def _login(user):
        client.cookies.set(COOKIE_NAME, create_session_token(user))
        return client
    return _login


@pytest.fixture()
def make_idea(db_session):
    def _make(org, author, title="Launch post", status="PENDING", content_type="SOCIAL_MEDIA_POST"):
        idea = Idea(
            organization_id=org.id,
            created_by_id=author.id,
            title=title,
            description=f"Description for {title}",
            status=status,
            content_type=content_type,
        )
        db_session.add(idea)
        db_session.commit()
        db_session.refresh(idea)
        return idea
    return _make


@pytest.fixture()
def make_draft(db_session, make_idea):
    """A draft in ``status`` under a freshly approved idea of ``org``."""
    def _make(org, author, status="DRAFT", body="Draft body", metadata=None):
        idea = make_idea(org, author, status="APPROVED")
        draft = ContentDraft(
            organization_id=org.id,
            idea_id=idea.id,
            created_by_id=author.id,
            body=body,
            status=status,
            content_type=idea.content_type,
            draft_metadata=metadata or {},
        )
        db_session.add(draft)
        db_session.commit()
        db_session.refresh(draft)
        return draft
    return _make
