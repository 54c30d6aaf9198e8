# tests/conftest.py
"""
Pytest configuration and shared fixtures.

Every test gets a fresh application bound to an in-memory SQLite database.

Run:
    pytest -v
"""
import os
import tempfile
from decimal import Decimal

# Config refuses to import without a secret key; logs go to a scratch dir
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="partner-connector-logs-"))

import pytest
from sqlalchemy import event

from app import create_app
from config import TestConfig
from extensions import db
from models import User, Referral, ReferralStatus
from partners.hierarchy import PartnerHierarchyHelper

DEFAULT_PASSWORD = "password123"


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

def enable_sqlite_savepoints(engine):
    """
    pysqlite manages BEGIN itself and breaks SAVEPOINT; hand transaction
    control to SQLAlchemy so begin_nested() behaves as on PostgreSQL.
    """
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture
def app():
    """Application with empty tables; no app context is left pushed."""
    app = create_app(TestConfig)

    with app.app_context():
        enable_sqlite_savepoints(db.engine)
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def app_ctx(app):
    """Pushed app context for service-level tests."""
    with app.app_context():
        yield app
        db.session.rollback()


@pytest.fixture
def client(app):
    return app.test_client()


# =============================================================================
# FACTORIES
# =============================================================================

@pytest.fixture
def make_partner(app):
    """
    Create a committed partner, optionally recruited under parent.
    Must be called inside an app context.
    """
    counter = {"n": 0}

    def _make_partner(first_name="Test", last_name="Partner", parent=None, role="user", email=None):
        counter["n"] += 1
        n = counter["n"]
        partner = User(
            email=email or f"partner{n}@example.com",
            first_name=first_name,
            last_name=last_name,
            role=role,
            partner_id=f"PC-TP-{n:06d}",
            referral_code=f"REF{n:05d}",
        )
        partner.set_password(DEFAULT_PASSWORD)
        db.session.add(partner)
        db.session.flush()

        if parent is not None:
            PartnerHierarchyHelper.attach_partner(partner.id, parent.id)

        db.session.commit()
        return partner

    return _make_partner


@pytest.fixture
def make_chain(make_partner):
    """root -> ... chain of the given length, returned root first"""
    def _make_chain(length):
        chain = []
        parent = None
        for i in range(length):
            parent = make_partner(first_name=f"Gen{i}", parent=parent)
            chain.append(parent)
        return chain

    return _make_chain


@pytest.fixture
def make_referral(app):
    """Create a committed referral, pending unless a status is given."""
    def _make_referral(referrer, status=ReferralStatus.PENDING.value, actual_commission=None):
        referral = Referral(
            referrer_id=referrer.id,
            business_name="Acme Coffee Ltd",
            business_email="owner@acmecoffee.example",
            status=status,
            actual_commission=Decimal(str(actual_commission)) if actual_commission is not None else None,
        )
        db.session.add(referral)
        db.session.commit()
        return referral

    return _make_referral


@pytest.fixture
def login(client):
    """Sign a partner in through the API."""
    def _login(email, password=DEFAULT_PASSWORD):
        response = client.post("/api/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.get_json()
        return response

    return _login
