"""Shared fixtures: a fresh service graph per test and an authenticated HTTP client"""
import random
import string
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from main import app
from application.availability_service import AvailabilityService
from application.booking_coordinator import BookingCoordinator
from application.corporate_service import CorporateCompanyService
from application.credit_ledger_service import CreditLedgerService
from application.credit_monitoring_service import CreditMonitoringService
from application.rate_service import RateService
from application.season_service import SeasonService
from domain.entities import CorporateCompany, RoomType
from domain.temporal import today
from infrastructure.cache import TTLCache
from infrastructure.config import Settings
from infrastructure.repositories.in_memory_repositories import (
    InMemoryDatabase, InMemoryUnitOfWork, InMemoryAvailabilityRepository, InMemoryRoomTypeRepository,
    InMemorySeasonRepository, InMemorySpecialPeriodRepository, InMemoryRatePlanRepository,
    InMemoryRateOverrideRepository, InMemoryDynamicPricingRuleRepository,
    InMemoryCorporateCompanyRepository, InMemoryCreditTransactionRepository,
    InMemoryCreditLimitRequestRepository, InMemoryBookingDirectory,
)

HOTEL = "H1"


def random_gst_number() -> str:
    letters = "".join(random.choice(string.ascii_uppercase) for _ in range(5))
    return f"27{letters}{random.randint(0, 9999):04d}A1Z5"


def build_world(**overrides) -> SimpleNamespace:
    """Wire every service against its own in-memory database"""
    settings = Settings(RETRY_BACKOFF_MS=1, **overrides)
    db = InMemoryDatabase()
    cache = TTLCache(ttl=settings.CACHING_TTL_SEC, max_entries=settings.CACHE_MAX_ENTRIES)
    unit_of_work = InMemoryUnitOfWork(db)

    availability_repo = InMemoryAvailabilityRepository(db)
    room_type_repo = InMemoryRoomTypeRepository(db)
    company_repo = InMemoryCorporateCompanyRepository(db)
    transaction_repo = InMemoryCreditTransactionRepository(db)
    limit_request_repo = InMemoryCreditLimitRequestRepository(db)
    booking_directory = InMemoryBookingDirectory(db)

    availability = AvailabilityService(availability_repo, room_type_repo, cache, settings)
    seasons = SeasonService(InMemorySeasonRepository(db), InMemorySpecialPeriodRepository(db), cache)
    rates = RateService(
        InMemoryRatePlanRepository(db), InMemoryRateOverrideRepository(db),
        InMemoryDynamicPricingRuleRepository(db), room_type_repo, seasons, availability, cache, settings,
    )
    ledger = CreditLedgerService(transaction_repo, company_repo, unit_of_work, settings)
    corporate = CorporateCompanyService(company_repo, transaction_repo, booking_directory, ledger, settings)
    monitoring = CreditMonitoringService(
        company_repo, transaction_repo, limit_request_repo, ledger, unit_of_work, settings
    )
    coordinator = BookingCoordinator(
        availability, rates, seasons, ledger, company_repo, booking_directory, settings
    )
    return SimpleNamespace(
        settings=settings, db=db, cache=cache,
        availability_repo=availability_repo, room_type_repo=room_type_repo,
        company_repo=company_repo, transaction_repo=transaction_repo,
        limit_request_repo=limit_request_repo, booking_directory=booking_directory,
        availability=availability, seasons=seasons, rates=rates, ledger=ledger,
        corporate=corporate, monitoring=monitoring, coordinator=coordinator,
    )


async def seed_room_type(world, room_type_id="RT-DBL", base_price="1000", max_occupancy=2, **extra):
    return await world.availability.register_room_type(RoomType(
        room_type_id=room_type_id,
        hotel_id=HOTEL,
        name=extra.pop("name", room_type_id),
        code=extra.pop("code", room_type_id[-3:]),
        base_price=Decimal(base_price),
        max_occupancy=max_occupancy,
        **extra,
    ))


async def seed_company(world, credit_limit="10000", available_credit=None, **extra):
    return await world.corporate.create(CorporateCompany(
        hotel_id=HOTEL,
        name=extra.pop("name", "Acme Travel"),
        gst_number=random_gst_number(),
        credit_limit=Decimal(credit_limit),
        available_credit=Decimal(available_credit) if available_credit is not None else None,
        **extra,
    ))


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def world():
    return build_world()


@pytest.fixture
def future_stay():
    """Two nights, 45 days out"""
    check_in = today() + timedelta(days=45)
    return check_in, check_in + timedelta(days=2)


@pytest.fixture
def client():
    """FastAPI test client"""
    return TestClient(app)


def _login(client, username: str, password: str) -> dict:
    response = client.post("/token", data={"username": username, "password": password})
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(client):
    """Get authentication headers with valid admin token"""
    return _login(client, "admin", "admin123")


@pytest.fixture
def staff_headers(client):
    return _login(client, "staff", "staff123")


@pytest.fixture
def guest_headers(client):
    return _login(client, "guest", "guest123")
