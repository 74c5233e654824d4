from datetime import date, datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockError
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from adslots.database import configure_sqlite_engine, get_db, get_session_factory
from adslots.main import app
from adslots.models import Base
from adslots.models.tables import Contracts, Locations, Placements, Screens
from adslots.redis_client import get_redis


class FakeLock:
    def __init__(self, redis, name):
        self.redis = redis
        self.name = name

    def acquire(self, blocking=None):
        if self.name in self.redis.locks:
            return False
        self.redis.locks.add(self.name)
        return True

    def release(self):
        if self.name not in self.redis.locks:
            raise LockError("Cannot release an unlocked lock")
        self.redis.locks.discard(self.name)


class FakeRedis:
    """Dictionary-backed stand-in for the parts of redis-py the app uses."""

    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.lists = {}
        self.locks = set()
        self.fail_rpush = False

    def get(self, name):
        return self.store.get(name)

    def setex(self, name, time, value):
        self.store[name] = value
        self.ttls[name] = time
        return True

    def delete(self, *names):
        deleted = 0
        for name in names:
            if name in self.store:
                del self.store[name]
                deleted += 1
        return deleted

    def rpush(self, name, *values):
        if self.fail_rpush:
            raise RedisConnectionError("queue unavailable")
        self.lists.setdefault(name, []).extend(values)
        return len(self.lists[name])

    def lock(self, name, timeout=None, blocking=True, **kwargs):
        return FakeLock(self, name)

    def ping(self):
        return True


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def enable_sqlite_fk(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path):
    """File-backed database with the app's SQLite locking, for threaded tests."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'adslots.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    configure_sqlite_engine(engine)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def redis():
    return FakeRedis()


@pytest.fixture
def client(session_factory, redis):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: redis
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


# ──────────────────────────────────────────────────────────────────────────────
# Data builders
# ──────────────────────────────────────────────────────────────────────────────

def make_location(db, name="Loc", city="Sittard", region_code=None, ready=True, status="active", share="20", screens=1,
                  visitors=None, payout_type="revshare", fixed=None):
    location = Locations(
        name=name,
        city=city,
        region_code=region_code,
        status=status,
        ready_for_ads=ready,
        revenue_share_percent=Decimal(share),
        payout_type=payout_type,
        fixed_payout_amount=Decimal(fixed) if fixed is not None else None,
        visitors_per_week=visitors,
    )
    db.add(location)
    db.flush()
    for i in range(screens):
        db.add(Screens(location_id=location.id, name=f"{name} screen {i + 1}"))
    db.commit()
    db.refresh(location)
    return location


def first_screen(db, location):
    return db.query(Screens).filter(Screens.location_id == location.id).order_by(Screens.id).first()


def make_contract(db, advertiser_id=1, price="100.00", start=date(2020, 1, 1), end=None, status="signed", signed=True, vat="21"):
    contract = Contracts(
        advertiser_id=advertiser_id,
        monthly_price_ex_vat=Decimal(price),
        vat_percent=Decimal(vat),
        status=status,
        signed_at=datetime(2020, 1, 1) if signed else None,
        start_date=start,
        end_date=end,
    )
    db.add(contract)
    db.commit()
    db.refresh(contract)
    return contract


def make_placement(db, contract, screen, start=None, end=None, is_active=True, seconds=10, plays=6):
    placement = Placements(
        contract_id=contract.id,
        screen_id=screen.id,
        start_date=start,
        end_date=end,
        is_active=is_active,
        seconds_per_loop=seconds,
        plays_per_hour=plays,
    )
    db.add(placement)
    db.commit()
    db.refresh(placement)
    return placement


def fill_location(db, location, count, advertiser_id=100):
    """Put `count` LIVE placements on the location's first screen."""
    screen = first_screen(db, location)
    contract = make_contract(db, advertiser_id=advertiser_id)
    for _ in range(count):
        make_placement(db, contract, screen)
    return contract
