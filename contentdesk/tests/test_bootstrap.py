from unittest.mock import patch

from contentdesk import main
from contentdesk.config import settings
from contentdesk.models import Organization, OrganizationUser, User


def test_bootstrap_seeds_superadmin_and_default_organization(db_session):
    with patch.object(settings, "superadmin_email", "Root@Platform.test"), \
         patch.object(settings, "superadmin_password", "super-secret-pw"), \
         patch("contentdesk.main.SessionLocal", lambda: db_session):
        main.bootstrap_saas()
        main.bootstrap_saas()

    users = db_session.query(User).all()
    assert [(u.email, u.role, u.is_super_admin) for u in users] == [("root@platform.test", "ADMIN", True)]
    org = db_session.query(Organization).one()
    assert org.slug == "default"
    membership = db_session.query(OrganizationUser).one()
    assert (membership.user_id, membership.role) == (users[0].id, "OWNER")


def test_bootstrap_without_credentials_does_nothing(db_session):
    with patch.object(settings, "superadmin_email", None), \
         patch("contentdesk.main.SessionLocal", lambda: db_session):
        main.bootstrap_saas()
    assert db_session.query(User).count() == 0
    assert db_session.query(Organization).count() == 0


def test_readiness_check(client):
    res = client.get("/ready")
    assert res.status_code == 200
    assert res.json() == {"status": "ready"}
