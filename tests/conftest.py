"""
pytest configuration and fixtures.

Loads environment variables from .env and provides in-memory stand-ins for
the database and external services so the intake pipeline can be tested
without Cloud SQL, Twilio, Gemini or Cloud Storage.
"""

import threading
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from dotenv import load_dotenv
from sqlalchemy.exc import IntegrityError, OperationalError

from importflow.agents.screenshot_extractor import ScreenshotExtractor
from importflow.api.responder import Responder
from importflow.intake.assembler import OrderAssembler
from importflow.intake.commands import CommandHandler
from importflow.intake.correlation import CorrelationEngine
from importflow.intake.dispatcher import IntakeDispatcher
from importflow.intake.idempotency import IdempotencyCache
from importflow.intake.sequencer import PackageSequencer
from importflow.intake.session_store import SessionStore
from importflow.models.order import ExtractedFields, OrderItem
from importflow.models.user import RegisteredUser
from importflow.utils.media import FetchedMedia, MediaFetcher
from importflow.utils.storage import ScreenshotStorage

TEST_ORG_ID = "org_123"
TEST_SENDER = "whatsapp:+50377778888"
TEST_USER_ID = "d5314b80-4aac-4bf2-940c-0a0ceda5bff4"


def pytest_configure(config):
    """Load .env file before running tests"""
    project_root = Path(__file__).parent.parent
    env_file = project_root / ".env"

    if env_file.exists():
        load_dotenv(env_file)


# =============================================================================
# In-memory database
# =============================================================================


class FakeDatabase:
    """Shared state behind FakeUnitOfWork instances."""

    def __init__(self):
        self.lock = threading.Lock()
        self.orders: dict[str, object] = {}
        self.users: list[RegisteredUser] = []
        self.counters: dict[str, int] = {}
        self.fail_next_commits = 0


class FakeOrderRepository:
    def __init__(self, db: FakeDatabase, staged: list):
        self.db = db
        self.staged = staged

    def create(self, order):
        with self.db.lock:
            taken = {o.delivery_id for o in self.db.orders.values()}
            taken |= {o.delivery_id for o in self.staged}
            if order.delivery_id in taken:
                raise IntegrityError("INSERT INTO orders", {}, Exception("duplicate delivery_id"))
        self.staged.append(order)
        return order

    def get_by_delivery_id(self, delivery_id):
        with self.db.lock:
            for order in self.db.orders.values():
                if order.delivery_id == delivery_id:
                    return order
        return None

    def get_by_organization(self, organization_id, status=None, limit=100, offset=0):
        with self.db.lock:
            orders = [
                o
                for o in self.db.orders.values()
                if o.organization_id == organization_id and (status is None or o.status == status)
            ]
        return orders[offset : offset + limit]


class FakeUserRepository:
    def __init__(self, db: FakeDatabase):
        self.db = db

    def find_by_whatsapp_phone(self, phone):
        for user in self.db.users:
            if user.whatsapp_phone == phone:
                return user
        return None


class FakePackageCounterRepository:
    def __init__(self, db: FakeDatabase):
        self.db = db

    def increment(self, organization_id):
        with self.db.lock:
            value = self.db.counters.get(organization_id, 0) + 1
            self.db.counters[organization_id] = value
            return value


class FakeUnitOfWork:
    """UnitOfWork stand-in: orders become visible on commit."""

    def __init__(self, db: FakeDatabase):
        self.db = db
        self._staged: list = []
        self.orders = FakeOrderRepository(db, self._staged)
        self.users = FakeUserRepository(db)
        self.package_counters = FakePackageCounterRepository(db)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.rollback()
        return False

    def commit(self):
        with self.db.lock:
            if self.db.fail_next_commits > 0:
                self.db.fail_next_commits -= 1
                self._staged.clear()
                raise OperationalError("COMMIT", {}, Exception("connection reset"))
            for order in self._staged:
                self.db.orders[order.id] = order
            self._staged.clear()

    def rollback(self):
        self._staged.clear()


@pytest.fixture
def fake_db() -> FakeDatabase:
    db = FakeDatabase()
    now = datetime.now(timezone.utc)
    db.users.append(
        RegisteredUser(
            id=TEST_USER_ID,
            email="importer@example.com",
            display_name="Importer",
            whatsapp_phone=TEST_SENDER,
            organization_id=TEST_ORG_ID,
            created_at=now,
            updated_at=now,
        )
    )
    return db


@pytest.fixture
def uow_factory(fake_db: FakeDatabase):
    return lambda: FakeUnitOfWork(fake_db)


# =============================================================================
# External services
# =============================================================================


@pytest.fixture
def extracted_fields() -> ExtractedFields:
    return ExtractedFields(
        tracking_number="1Z999AA10123456784",
        seller="Amazon",
        items=[OrderItem(name="Running Shoes", quantity=1, unit_value=Decimal("120.00"))],
        order_total=Decimal("120.00"),
    )


@pytest.fixture
def mock_extractor(extracted_fields: ExtractedFields) -> MagicMock:
    extractor = MagicMock(spec=ScreenshotExtractor)

    def extract_many(images):
        extractor.extracted_images = list(images)
        return extracted_fields

    extractor.extract_many.side_effect = extract_many
    return extractor


@pytest.fixture
def mock_storage() -> MagicMock:
    storage = MagicMock(spec=ScreenshotStorage)
    storage.upload.side_effect = (
        lambda path, content, content_type, metadata=None: f"https://storage.test/{path}"
    )
    return storage


@pytest.fixture
def mock_fetcher() -> MagicMock:
    fetcher = MagicMock(spec=MediaFetcher)
    fetcher.fetch.side_effect = lambda media: FetchedMedia(
        content=f"bytes:{media.url}".encode(), content_type=media.content_type
    )
    return fetcher


@pytest.fixture
def mock_responder() -> MagicMock:
    responder = MagicMock(spec=Responder)
    responder.send.return_value = "SMreply"
    return responder


@pytest.fixture
def make_dispatcher(
    uow_factory, mock_extractor, mock_storage, mock_fetcher, mock_responder
):
    """Build an IntakeDispatcher wired to the in-memory fakes."""

    def _make(**overrides) -> IntakeDispatcher:
        store = overrides.pop("store", None)
        if store is None:
            store = SessionStore(idle_ttl_seconds=7200, lock_timeout_seconds=5)
        engine = overrides.pop("engine", None) or CorrelationEngine(
            store, pairing_window_seconds=5, sticky_name_ttl_seconds=None
        )
        assembler = OrderAssembler(
            extractor=mock_extractor,
            storage=mock_storage,
            sequencer=PackageSequencer(uow_factory=uow_factory, prefix="Paquete #"),
            uow_factory=uow_factory,
        )
        kwargs = dict(
            store=store,
            engine=engine,
            fetcher=mock_fetcher,
            assembler=assembler,
            responder=mock_responder,
            idempotency=IdempotencyCache(ttl_seconds=3600, max_entries=100),
            commands=CommandHandler(uow_factory=uow_factory),
            uow_factory=uow_factory,
            sweep_interval_seconds=60,
            unknown_sender_cooldown_seconds=300,
        )
        kwargs.update(overrides)
        return IntakeDispatcher(**kwargs)

    return _make

