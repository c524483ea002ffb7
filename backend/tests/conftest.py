"""
Pytest fixtures for stock ledger backend tests.

Provides the test app (in-memory SQLite, eager Celery), a clean database per
test, a recording notifier, and user / product factories.
"""

import pytest
from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import User, ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_MASTER_ADMIN
from stockledger.services import stock_service
from stockledger.services.notification_service import NOTIFIER_EXTENSION_KEY


class RecordingNotifier:
    """Collects notifications instead of sending them."""

    def __init__(self):
        self.low_stock = []
        self.threshold_changed = []
        self.fail = False

    def reset(self):
        self.low_stock.clear()
        self.threshold_changed.clear()
        self.fail = False

    def notify_low_stock(self, **kwargs):
        if self.fail:
            raise RuntimeError("smtp unavailable")
        self.low_stock.append(kwargs)

    def notify_threshold_changed(self, **kwargs):
        if self.fail:
            raise RuntimeError("smtp unavailable")
        self.threshold_changed.append(kwargs)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOW_STOCK_DEFAULT_THRESHOLD': 10,
        'RESTORE_WINDOW_DAYS': 30,
        'PURGE_WINDOW_DAYS': 30,
        'SKU_PREFIX': 'SKU-',
        'SKU_WIDTH': 6,
        'CELERY': {
            'broker_url': 'memory://',
            'result_backend': 'cache+memory://',
            'task_always_eager': True,
            'task_ignore_result': True,
        },
    })
    app.extensions[NOTIFIER_EXTENSION_KEY] = RecordingNotifier()

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def notifier(app):
    recorder = app.extensions[NOTIFIER_EXTENSION_KEY]
    recorder.reset()
    return recorder


@pytest.fixture(scope='function')
def db_session(app, notifier):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema. Core deletes bypass the ledger's ORM guards.
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_user(session, email, role=ROLE_EMPLOYEE, first_name=None, last_name=None):
    user = User(email=email, role=role, first_name=first_name, last_name=last_name)
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def master_admin(db_session):
    return make_user(db_session, "root@stock.local", ROLE_MASTER_ADMIN, "Root", "Admin")


@pytest.fixture(scope='function')
def admin(db_session, master_admin):
    return make_user(db_session, "admin@stock.local", ROLE_ADMIN, "Alice", "Admin")


@pytest.fixture(scope='function')
def employee(db_session):
    return make_user(db_session, "clerk@stock.local", ROLE_EMPLOYEE, "Eve", "Clerk")


@pytest.fixture(scope='function')
def widget(db_session, admin, notifier):
    """Product P: quantity 12, threshold 10. Creation sends no notification."""
    product = stock_service.create_product(
        name="Widget",
        category="Hardware",
        supplier="Acme",
        unit_price="2.50",
        quantity=12,
        min_stock_threshold=10,
        actor_user_id=admin.id,
    )
    notifier.reset()
    return product


def actor_headers(user_id: int) -> dict:
    """Helper to create the gateway identity header."""
    return {'X-Actor-Id': str(user_id)}
