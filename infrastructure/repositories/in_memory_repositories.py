"""In-Memory Repository Implementations

Every repository shares one ``InMemoryDatabase``. Reads and writes yield to
the event loop first, so concurrent handlers interleave at storage
boundaries the way they would against a real document store. Documents are
copied on the way in and on the way out; callers never hold a live record.
"""
import asyncio
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type
from uuid import UUID
from datetime import date, datetime

from pydantic import BaseModel

from domain.entities import (
    AvailabilityRow, BookingReference, CorporateCompany, CreditLimitRequest,
    CreditTransaction, DynamicPricingRule, RateOverride, RatePlan, RoomType,
    Season, SpecialPeriod,
)
from domain.enums import BookingStatus, LimitRequestStatus, TransactionStatus, TransactionType
from domain.exceptions import ConcurrencyConflict, NotFound, ValidationError
from domain.repositories import (
    AvailabilityRepository, BookingDirectory, CorporateCompanyRepository,
    CreditLimitRequestRepository, CreditTransactionRepository,
    DynamicPricingRuleRepository, RateOverrideRepository, RatePlanRepository,
    RoomTypeRepository, SeasonRepository, SpecialPeriodRepository, UnitOfWork,
)

# entity type -> (collection name, key function, versioned)
COLLECTIONS: Dict[Type[BaseModel], Tuple[str, Callable[[Any], Any], bool]] = {
    AvailabilityRow: ("availability_row", lambda e: e.key, True),
    RoomType: ("room_type", lambda e: e.room_type_id, False),
    Season: ("season", lambda e: e.period_id, False),
    SpecialPeriod: ("special_period", lambda e: e.period_id, False),
    RatePlan: ("rate_plan", lambda e: e.plan_id, False),
    RateOverride: ("rate_override", lambda e: (e.hotel_id, e.date, e.room_type_id, e.rate_plan_id), False),
    DynamicPricingRule: ("dynamic_pricing_rule", lambda e: e.rule_id, False),
    CorporateCompany: ("corporate_company", lambda e: e.company_id, True),
    CreditTransaction: ("credit_transaction", lambda e: e.transaction_id, True),
    CreditLimitRequest: ("credit_limit_request", lambda e: e.request_id, True),
    BookingReference: ("booking", lambda e: e.booking_id, False),
}


def _describe(entity: BaseModel):
    try:
        return COLLECTIONS[type(entity)]
    except KeyError:
        raise TypeError(f"No collection registered for {type(entity).__name__}")


class InMemoryDatabase:
    """Process-local document store with optimistic concurrency"""

    def __init__(self):
        self._collections: Dict[str, Dict[Any, BaseModel]] = defaultdict(dict)

    @staticmethod
    async def _io() -> None:
        await asyncio.sleep(0)

    # ==================== READS ====================
    async def get(self, name: str, key: Any) -> Optional[BaseModel]:
        await self._io()
        doc = self._collections[name].get(key)
        return doc.model_copy(deep=True) if doc is not None else None

    async def scan(self, name: str, predicate: Optional[Callable[[Any], bool]] = None) -> List[Any]:
        await self._io()
        return [
            doc.model_copy(deep=True)
            for doc in self._collections[name].values()
            if predicate is None or predicate(doc)
        ]

    # ==================== WRITES ====================
    async def insert(self, entity: BaseModel) -> BaseModel:
        return (await self.commit(inserts=[entity]))[0]

    async def update(self, entity: BaseModel) -> BaseModel:
        return (await self.commit(updates=[entity]))[0]

    async def upsert(self, entity: BaseModel) -> BaseModel:
        """Unversioned insert-or-replace"""
        await self._io()
        name, key_fn, _ = _describe(entity)
        stored = entity.model_copy(deep=True)
        self._collections[name][key_fn(entity)] = stored
        return stored.model_copy(deep=True)

    async def commit(
        self, inserts: Sequence[BaseModel] = (), updates: Sequence[BaseModel] = ()
    ) -> List[BaseModel]:
        """Validate every write first, then apply them all without yielding"""
        await self._io()

        for entity in inserts:
            self._check_insert(entity)
        for entity in updates:
            self._check_update(entity)

        written = []
        for entity in list(inserts) + list(updates):
            name, key_fn, versioned = _describe(entity)
            stored = entity.model_copy(deep=True)
            if versioned:
                stored.version = entity.version + 1
            self._collections[name][key_fn(entity)] = stored
            written.append(stored.model_copy(deep=True))
        return written

    def _check_insert(self, entity: BaseModel) -> None:
        name, key_fn, _ = _describe(entity)
        if key_fn(entity) in self._collections[name]:
            raise ValidationError(
                f"Duplicate key in {name}",
                {"collection": name, "key": str(key_fn(entity))},
            )
        self._check_unique_indexes(entity)

    def _check_update(self, entity: BaseModel) -> None:
        name, key_fn, versioned = _describe(entity)
        key = key_fn(entity)
        current = self._collections[name].get(key)
        if current is None:
            raise NotFound(f"Document not found in {name}", {"collection": name, "key": str(key)})
        if versioned and current.version != entity.version:
            raise ConcurrencyConflict(
                f"Version conflict on {name}",
                {"collection": name, "key": str(key),
                 "expectedVersion": entity.version, "storedVersion": current.version},
            )
        self._check_unique_indexes(entity)

    def _check_unique_indexes(self, entity: BaseModel) -> None:
        if isinstance(entity, CorporateCompany):
            for other in self._collections["corporate_company"].values():
                if other.gst_number == entity.gst_number and other.company_id != entity.company_id:
                    raise ValidationError(
                        "GST number already registered",
                        {"gstNumber": entity.gst_number},
                    )


class InMemoryUnitOfWork(UnitOfWork):
    """Multi-document commit against the shared database"""

    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def commit(
        self, inserts: Sequence[BaseModel] = (), updates: Sequence[BaseModel] = ()
    ) -> List[BaseModel]:
        return await self._db.commit(inserts=inserts, updates=updates)


class InMemoryAvailabilityRepository(AvailabilityRepository):
    """In-memory implementation of AvailabilityRepository"""

    COLLECTION = "availability_row"

    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def insert_many(self, rows: Sequence[AvailabilityRow]) -> List[AvailabilityRow]:
        return await self._db.commit(inserts=rows)

    async def find(self, hotel_id: str, room_type_id: str, on: date) -> Optional[AvailabilityRow]:
        return await self._db.get(self.COLLECTION, (hotel_id, room_type_id, on))

    async def find_range(self, hotel_id: str, room_type_id: str, start: date, end: date) -> List[AvailabilityRow]:
        rows = await self._db.scan(
            self.COLLECTION,
            lambda r: r.hotel_id == hotel_id and r.room_type_id == room_type_id and start <= r.date < end,
        )
        return sorted(rows, key=lambda r: r.date)

    async def find_hotel_range(
        self, hotel_id: str, start: date, end: date, room_type_id: Optional[str] = None
    ) -> List[AvailabilityRow]:
        rows = await self._db.scan(
            self.COLLECTION,
            lambda r: r.hotel_id == hotel_id and start <= r.date < end
            and (room_type_id is None or r.room_type_id == room_type_id),
        )
        return sorted(rows, key=lambda r: (r.date, r.room_type_id))

    async def find_by_booking(self, hotel_id: str, booking_id: str) -> List[AvailabilityRow]:
        rows = await self._db.scan(
            self.COLLECTION,
            lambda r: r.hotel_id == hotel_id and any(e.booking_id == booking_id for e in r.reservations),
        )
        return sorted(rows, key=lambda r: (r.room_type_id, r.date))

    async def update_many(self, rows: Sequence[AvailabilityRow]) -> List[AvailabilityRow]:
        return await self._db.commit(updates=rows)


class InMemoryRoomTypeRepository(RoomTypeRepository):
    """In-memory implementation of RoomTypeRepository"""

    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def save(self, room_type: RoomType) -> RoomType:
        return await self._db.upsert(room_type)

    async def find_by_id(self, room_type_id: str) -> Optional[RoomType]:
        return await self._db.get("room_type", room_type_id)

    async def find_by_hotel(self, hotel_id: str) -> List[RoomType]:
        room_types = await self._db.scan("room_type", lambda r: r.hotel_id == hotel_id)
        return sorted(room_types, key=lambda r: r.name)


class InMemorySeasonRepository(SeasonRepository):
    """In-memory implementation of SeasonRepository"""

    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def save(self, season: Season) -> Season:
        return await self._db.upsert(season)

    async def find_by_id(self, season_id: UUID) -> Optional[Season]:
        return await self._db.get("season", season_id)

    async def find_by_hotel(self, hotel_id: str, active_only: bool = True) -> List[Season]:
        return await self._db.scan(
            "season", lambda s: s.hotel_id == hotel_id and (s.is_active or not active_only)
        )


class InMemorySpecialPeriodRepository(SpecialPeriodRepository):
    """In-memory implementation of SpecialPeriodRepository"""

    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def save(self, period: SpecialPeriod) -> SpecialPeriod:
        return await self._db.upsert(period)

    async def find_by_id(self, period_id: UUID) -> Optional[SpecialPeriod]:
        return await self._db.get("special_period", period_id)

    async def find_by_hotel(self, hotel_id: str, active_only: bool = True) -> List[SpecialPeriod]:
        return await self._db.scan(
            "special_period", lambda p: p.hotel_id == hotel_id and (p.is_active or not active_only)
        )


class InMemoryRatePlanRepository(RatePlanRepository):
    """In-memory implementation of RatePlanRepository"""

    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def save(self, plan: RatePlan) -> RatePlan:
        return await self._db.upsert(plan)

    async def find_by_id(self, plan_id: UUID) -> Optional[RatePlan]:
        return await self._db.get("rate_plan", plan_id)

    async def find_by_hotel(self, hotel_id: str, active_only: bool = True) -> List[RatePlan]:
        plans = await self._db.scan(
            "rate_plan", lambda p: p.hotel_id == hotel_id and (p.is_active or not active_only)
        )
        return sorted(plans, key=lambda p: -p.priority)


class InMemoryRateOverrideRepository(RateOverrideRepository):
    """In-memory implementation of RateOverrideRepository"""

    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def upsert(self, override: RateOverride) -> RateOverride:
        key = (override.hotel_id, override.date, override.room_type_id, override.rate_plan_id)
        existing = await self._db.get("rate_override", key)
        if existing is not None:
            override = override.model_copy(update={"override_id": existing.override_id})
        return await self._db.upsert(override)

    async def find_range(self, hotel_id: str, room_type_id: str, start: date, end: date) -> List[RateOverride]:
        return await self._db.scan(
            "rate_override",
            lambda o: o.hotel_id == hotel_id and o.room_type_id == room_type_id
            and o.is_active and start <= o.date < end,
        )


class InMemoryDynamicPricingRuleRepository(DynamicPricingRuleRepository):
    """In-memory implementation of DynamicPricingRuleRepository"""

    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def save(self, rule: DynamicPricingRule) -> DynamicPricingRule:
        return await self._db.upsert(rule)

    async def find_active(self, hotel_id: str) -> List[DynamicPricingRule]:
        rules = await self._db.scan(
            "dynamic_pricing_rule", lambda r: r.hotel_id == hotel_id and r.is_active
        )
        return sorted(rules, key=lambda r: -r.priority)


class InMemoryCorporateCompanyRepository(CorporateCompanyRepository):
    """In-memory implementation of CorporateCompanyRepository"""

    COLLECTION = "corporate_company"

    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def insert(self, company: CorporateCompany) -> CorporateCompany:
        return await self._db.insert(company)

    async def find_by_id(self, company_id: UUID) -> Optional[CorporateCompany]:
        return await self._db.get(self.COLLECTION, company_id)

    async def find_by_gst_number(self, gst_number: str) -> Optional[CorporateCompany]:
        matches = await self._db.scan(self.COLLECTION, lambda c: c.gst_number == gst_number.upper())
        return matches[0] if matches else None

    async def find_by_hotel(self, hotel_id: str, active_only: bool = False) -> List[CorporateCompany]:
        companies = await self._db.scan(
            self.COLLECTION, lambda c: c.hotel_id == hotel_id and (c.is_active or not active_only)
        )
        return sorted(companies, key=lambda c: c.name)

    async def update(self, company: CorporateCompany) -> CorporateCompany:
        return await self._db.update(company)


class InMemoryCreditTransactionRepository(CreditTransactionRepository):
    """In-memory implementation of CreditTransactionRepository"""

    COLLECTION = "credit_transaction"

    def __init__(self, db: InMemoryDatabase):
        self._db = db

    @staticmethod
    def _newest_first(transactions: List[CreditTransaction]) -> List[CreditTransaction]:
        return sorted(transactions, key=lambda t: (t.transaction_date, t.sequence or 0), reverse=True)

    async def insert(self, transaction: CreditTransaction) -> CreditTransaction:
        return await self._db.insert(transaction)

    async def find_by_id(self, transaction_id: UUID) -> Optional[CreditTransaction]:
        return await self._db.get(self.COLLECTION, transaction_id)

    async def update(self, transaction: CreditTransaction) -> CreditTransaction:
        return await self._db.update(transaction)

    async def find_by_company(
        self, company_id: UUID, status: Optional[TransactionStatus] = None
    ) -> List[CreditTransaction]:
        transactions = await self._db.scan(
            self.COLLECTION,
            lambda t: t.company_id == company_id and (status is None or t.status == status),
        )
        return self._newest_first(transactions)

    async def find_by_hotel(
        self,
        hotel_id: str,
        status: Optional[TransactionStatus] = None,
        transaction_type: Optional[TransactionType] = None,
        company_id: Optional[UUID] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[CreditTransaction]:
        def matches(t: CreditTransaction) -> bool:
            if t.hotel_id != hotel_id:
                return False
            if status is not None and t.status != status:
                return False
            if transaction_type is not None and t.transaction_type != transaction_type:
                return False
            if company_id is not None and t.company_id != company_id:
                return False
            if start is not None and t.transaction_date < start:
                return False
            if end is not None and t.transaction_date >= end:
                return False
            return True

        return self._newest_first(await self._db.scan(self.COLLECTION, matches))

    async def find_by_booking(self, booking_id: str) -> List[CreditTransaction]:
        transactions = await self._db.scan(self.COLLECTION, lambda t: t.booking_id == booking_id)
        return sorted(transactions, key=lambda t: t.transaction_date)

    async def find_overdue(self, hotel_id: str, due_before: date) -> List[CreditTransaction]:
        transactions = await self._db.scan(
            self.COLLECTION,
            lambda t: t.hotel_id == hotel_id
            and t.status == TransactionStatus.PROCESSED
            and t.transaction_type == TransactionType.DEBIT
            and t.due_date is not None
            and t.due_date < due_before,
        )
        return sorted(transactions, key=lambda t: t.due_date)


class InMemoryCreditLimitRequestRepository(CreditLimitRequestRepository):
    """In-memory implementation of CreditLimitRequestRepository"""

    COLLECTION = "credit_limit_request"

    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def insert(self, request: CreditLimitRequest) -> CreditLimitRequest:
        return await self._db.insert(request)

    async def find_by_id(self, request_id: UUID) -> Optional[CreditLimitRequest]:
        return await self._db.get(self.COLLECTION, request_id)

    async def find_pending(self, hotel_id: str, company_id: Optional[UUID] = None) -> List[CreditLimitRequest]:
        requests = await self._db.scan(
            self.COLLECTION,
            lambda r: r.hotel_id == hotel_id
            and r.status == LimitRequestStatus.PENDING
            and (company_id is None or r.company_id == company_id),
        )
        return sorted(requests, key=lambda r: r.requested_at)


class InMemoryBookingDirectory(BookingDirectory):
    """In-memory stand-in for the reservations subsystem"""

    def __init__(self, db: InMemoryDatabase):
        self._db = db

    async def save(self, booking: BookingReference) -> BookingReference:
        return await self._db.upsert(booking)

    async def find_by_id(self, booking_id: str) -> Optional[BookingReference]:
        return await self._db.get("booking", booking_id)

    async def count_open_for_company(self, company_id: UUID) -> int:
        open_statuses = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)
        bookings = await self._db.scan(
            "booking", lambda b: b.company_id == company_id and b.status in open_statuses
        )
        return len(bookings)
