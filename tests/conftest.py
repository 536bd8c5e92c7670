"""
Shared fixtures.

The environment is set before the application modules are imported because
config.Config reads it at class-definition time.
"""
import itertools
import logging
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("FLASK_ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["LOG_TO_FILE"] = "False"

import pytest
from flask import has_app_context

from app import create_app
from config import Config
from extensions import db
from models import User, Wallet, ReferralCode, UserRole
from blueprints.auth_helpers import issue_id_token
from logger import AUDIT_LOGGER


class TestConfig(Config):
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    ADMIN_USER_ID = None
    APP_URL = "http://localhost:3000"
    SUPPORT_EMAIL = "support@referearn.test"
    SUPPORT_FORM_URL = "https://relay.referearn.test/ajax/support"
    MAIL_DEFAULT_SENDER = "support@referearn.test"
    MAIL_SUPPRESS_SEND = True
    LOG_TO_FILE = False


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Pushed app context for tests that call the ledger directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


_seq = itertools.count(1)


class Factory:
    """Creates rows directly and returns plain ids."""

    def __init__(self, app):
        self.app = app

    def _run(self, fn):
        if has_app_context():
            return fn()
        with self.app.app_context():
            return fn()

    def user(self, name="Test User", balance=0, active=False, referrer_id=None,
             role=UserRole.USER.value, email=None):
        def create():
            n = next(_seq)
            code = f"TST{n:04d}AB"
            user = User(
                name=name,
                email=email or f"user{n}@example.com",
                phone="9876543210",
                role=role,
                referral_code=code,
                referrer_id=referrer_id,
                referred_by=None,
                is_referral_active=active,
            )
            user.set_password("secret123")
            user.wallet = Wallet(balance=balance)
            db.session.add(user)
            db.session.flush()
            db.session.add(ReferralCode(code=code, user_id=user.id, user_name=name, is_active=active))
            db.session.commit()
            return user.id
        return self._run(create)

    def admin(self, name="Platform Admin", balance=0):
        return self.user(name=name, balance=balance, active=True, role=UserRole.ADMIN.value)

    def token(self, user_id):
        return self._run(lambda: issue_id_token(user_id))

    def headers(self, user_id):
        return {"Authorization": f"Bearer {self.token(user_id)}"}

    def balance(self, user_id):
        def read():
            db.session.expire_all()
            wallet = Wallet.query.filter_by(user_id=user_id).first()
            return wallet.balance if wallet else None
        return self._run(read)

    def get(self, model, pk):
        def read():
            db.session.expire_all()
            return db.session.get(model, pk)
        return self._run(read)


@pytest.fixture
def factory(app):
    return Factory(app)


class _RecordingHandler(logging.Handler):

    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def audit_records(app):
    """Records written to the money-movement audit logger during the test."""
    handler = _RecordingHandler()
    audit = logging.getLogger(AUDIT_LOGGER)
    audit.addHandler(handler)
    yield handler.records
    audit.removeHandler(handler)
