import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.database import Base
from app.models.notification import Notification  # noqa: F401
from app.models.offer import Offer  # noqa: F401
from app.models.offer_notification_log import OfferNotificationLog  # noqa: F401
from app.models.order import Order  # noqa: F401
from app.models.push_endpoint import PushEndpoint  # noqa: F401
from app.models.review import Review  # noqa: F401
from app.models.subscription import Subscription  # noqa: F401
from app.models.vendor import Vendor  # noqa: F401
from app.models.vendor_metrics import VendorMetrics  # noqa: F401
from tests.fakes import FakeClock, FakeNotifier, make_settings


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session
