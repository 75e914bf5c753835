"""Domain Entities - Aggregates"""
import hashlib
import re
from pydantic import BaseModel, Field, validator
from uuid import UUID, uuid4
from datetime import datetime, date, timedelta
from typing import Optional, List
from decimal import Decimal, ROUND_HALF_UP

from domain.enums import (
    AdjustmentDirection, BillingCycle, BookingRestriction, BookingStatus,
    LegacyRoomCategory, LimitRequestStatus, MealPlan, OverrideType,
    PAYMENT_TERMS_DAYS, RatePlanType, ReservationSource, RiskLevel,
    SeasonType, TERMINAL_TRANSACTION_STATUSES, TransactionStatus, TransactionType,
)
from domain.exceptions import (
    InsufficientCredit, InsufficientInventory, StateTransitionError, ValidationError,
)
from domain.temporal import nights_between, utc_now
from domain.value_objects import (
    AdvanceWindow, ApprovalDetails, BookingWindow, CancellationPolicy,
    ContractDetails, DayOfWeekMask, HRContact, NightsRange, OccupancyTier,
    PlanBaseRate, PlanConstraints, PlanDiscounts, PlanRestrictions,
    RateAdjustment, RecurringPattern, ReservationEntry, RoomBlock,
    StayRestrictions,
)

GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z]{1}[1-9A-Z]{1}Z[0-9A-Z]{1}$")

CENTS = Decimal("0.01")


def round_rate(value: Decimal) -> Decimal:
    """Round a nightly amount to whole currency units, half away from zero"""
    return Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


class AvailabilityRow(BaseModel):
    """Availability Aggregate Root Entity, one per (hotel, room type, date)"""

    # Composite Identity
    hotel_id: str
    room_type_id: str
    date: date

    # Capacity Tracking
    total_rooms: int = Field(ge=0)
    sold_rooms: int = Field(ge=0, default=0)
    blocked_rooms: int = Field(ge=0, default=0)

    # Pricing
    base_rate: Decimal = Field(ge=0, default=Decimal("0"))
    selling_rate: Optional[Decimal] = Field(None, ge=0)

    # Collections
    reservations: List[ReservationEntry] = []
    blocks: List[RoomBlock] = []

    # Metadata
    last_updated: datetime = Field(default_factory=utc_now)
    version: int = 0

    class Config:
        from_attributes = True

    # ==================== COMPUTED PROPERTIES ====================
    @property
    def key(self):
        return (self.hotel_id, self.room_type_id, self.date)

    @property
    def available_rooms(self) -> int:
        """Calculate available rooms"""
        return self.total_rooms - self.sold_rooms - self.blocked_rooms

    @property
    def is_overbooked(self) -> bool:
        return self.available_rooms < 0

    @property
    def effective_rate(self) -> Decimal:
        return self.selling_rate if self.selling_rate is not None else self.base_rate

    def rooms_for(self, booking_id: str) -> int:
        return sum(r.rooms_reserved for r in self.reservations if r.booking_id == booking_id)

    # ==================== KEY METHODS ====================
    def can_accommodate(self, count: int) -> bool:
        return self.available_rooms >= count

    def reserve(self, booking_id: str, count: int, source: ReservationSource) -> None:
        """Reserve rooms for a booking (decrease availability)"""
        if count < 1:
            raise ValueError("Room count must be at least 1")
        if self.rooms_for(booking_id):
            raise ValidationError(f"Booking {booking_id} already holds rooms on {self.date.isoformat()}")
        if not self.can_accommodate(count):
            raise InsufficientInventory(
                f"Only {max(self.available_rooms, 0)} rooms available, {count} requested",
                {"date": self.date.isoformat(), "roomTypeId": self.room_type_id,
                 "roomsAvailable": max(self.available_rooms, 0), "roomsRequested": count},
            )

        self.reservations.append(
            ReservationEntry(booking_id=booking_id, rooms_reserved=count, source=source)
        )
        self.sold_rooms += count
        self.last_updated = utc_now()

    def release(self, booking_id: str) -> int:
        """Drop every reservation entry of the booking; returns the rooms released"""
        released = self.rooms_for(booking_id)
        if not released:
            return 0

        self.reservations = [r for r in self.reservations if r.booking_id != booking_id]
        self.sold_rooms = sum(r.rooms_reserved for r in self.reservations)
        self.last_updated = utc_now()
        return released

    def block_room(self, room_id: str, reason: str, blocked_by: Optional[str]) -> bool:
        """Block one physical room; False when it is already blocked"""
        if any(b.room_id == room_id for b in self.blocks):
            return False
        if self.available_rooms < 1:
            raise InsufficientInventory(
                f"Cannot block room {room_id} on {self.date.isoformat()}: no free rooms",
                {"date": self.date.isoformat(), "roomTypeId": self.room_type_id, "roomId": room_id},
            )

        self.blocks.append(RoomBlock(room_id=room_id, reason=reason, blocked_by=blocked_by))
        self.blocked_rooms = len(self.blocks)
        self.last_updated = utc_now()
        return True

    def unblock_room(self, room_id: str) -> bool:
        remaining = [b for b in self.blocks if b.room_id != room_id]
        if len(remaining) == len(self.blocks):
            return False

        self.blocks = remaining
        self.blocked_rooms = len(self.blocks)
        self.last_updated = utc_now()
        return True

    def resize(self, total_rooms: int, base_rate: Optional[Decimal] = None,
               selling_rate: Optional[Decimal] = None) -> None:
        """Manual inventory edit; may leave the row overbooked"""
        if total_rooms < 0:
            raise ValueError("Total rooms cannot be negative")
        self.total_rooms = total_rooms
        if base_rate is not None:
            self.base_rate = base_rate
        if selling_rate is not None:
            self.selling_rate = selling_rate
        self.last_updated = utc_now()


class RoomType(BaseModel):
    """Room Type Entity"""
    room_type_id: str
    hotel_id: str
    name: str
    code: str
    base_price: Decimal = Field(ge=0)
    max_occupancy: int = Field(ge=1, default=2)
    legacy_category: LegacyRoomCategory = LegacyRoomCategory.DOUBLE
    is_active: bool = True

    class Config:
        from_attributes = True


# ==================== SEASONS & SPECIAL PERIODS ====================

class CalendarPeriod(BaseModel):
    """Named date range carrying rate adjustments and stay restrictions"""

    period_id: UUID = Field(default_factory=uuid4)
    hotel_id: str
    name: str
    start_date: date
    end_date: date

    rate_adjustments: List[RateAdjustment] = []
    restrictions: StayRestrictions = Field(default_factory=StayRestrictions)
    booking_window: AdvanceWindow = Field(default_factory=AdvanceWindow)
    priority: int = Field(ge=0, default=0)
    applicable_rate_plans: List[UUID] = []
    is_active: bool = True
    recurring_pattern: Optional[RecurringPattern] = None

    created_by: str = "SYSTEM"
    created_at: datetime = Field(default_factory=utc_now)

    class Config:
        from_attributes = True

    @validator('end_date')
    def end_after_start(cls, v, values):
        if 'start_date' in values and v <= values['start_date']:
            raise ValueError('End date must be after start date')
        return v

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days

    def covers(self, d: date) -> bool:
        """Inclusive on both ends; yearly patterns match on month/day"""
        if self.recurring_pattern and self.recurring_pattern.yearly:
            key = (d.month, d.day)
            start = (self.start_date.month, self.start_date.day)
            end = (self.end_date.month, self.end_date.day)
            if start <= end:
                return start <= key <= end
            return key >= start or key <= end
        return self.start_date <= d <= self.end_date

    def overlaps(self, start: date, end: date) -> bool:
        return any(self.covers(d) for d in nights_between(start, end))

    def applies_to_plan(self, rate_plan_id: Optional[UUID]) -> bool:
        if not self.applicable_rate_plans or rate_plan_id is None:
            return True
        return rate_plan_id in self.applicable_rate_plans

    def adjustment_for(self, room_type_id: str) -> Optional[RateAdjustment]:
        """Room-type specific adjustment first, then the catch-all"""
        specific = [a for a in self.rate_adjustments if a.room_type_id == room_type_id]
        if specific:
            return specific[0]
        generic = [a for a in self.rate_adjustments if a.applies_to(room_type_id)]
        return generic[0] if generic else None

    def applies_to_room_type(self, room_type_id: str) -> bool:
        if not self.rate_adjustments:
            return True
        return self.adjustment_for(room_type_id) is not None


class Season(CalendarPeriod):
    """Season Entity"""
    season_type: SeasonType = SeasonType.CUSTOM


class SpecialPeriod(CalendarPeriod):
    """Special Period Entity: events, holidays and blackouts"""
    priority: int = Field(ge=0, default=10)
    booking_restriction: BookingRestriction = BookingRestriction.NONE
    override_type: OverrideType = OverrideType.RATE

    @property
    def blocks_inventory(self) -> bool:
        return (
            self.override_type == OverrideType.BLOCK
            or self.booking_restriction == BookingRestriction.BLOCKED
        )

    def restriction_violation(self, check_in: date, check_out: date) -> Optional[str]:
        """Describe why the stay is forbidden by this period, if it is"""
        if self.blocks_inventory and self.overlaps(check_in, check_out):
            return f"Stay touches blocked period '{self.name}'"

        restriction = self.booking_restriction
        arrival_closed = restriction in (
            BookingRestriction.CLOSED_TO_ARRIVAL, BookingRestriction.CLOSED_TO_BOTH
        )
        departure_closed = restriction in (
            BookingRestriction.CLOSED_TO_DEPARTURE, BookingRestriction.CLOSED_TO_BOTH
        )
        if arrival_closed and self.covers(check_in):
            return f"Arrival on {check_in.isoformat()} is closed by '{self.name}'"
        if departure_closed and self.covers(check_out):
            return f"Departure on {check_out.isoformat()} is closed by '{self.name}'"
        return None


# ==================== RATE PLANS ====================

class RatePlan(BaseModel):
    """Rate Plan Aggregate"""

    plan_id: UUID = Field(default_factory=uuid4)
    hotel_id: str
    name: str
    description: Optional[str] = None
    plan_type: RatePlanType = RatePlanType.BAR

    base_rates: List[PlanBaseRate] = []
    meal_plan: MealPlan = MealPlan.ROOM_ONLY
    cancellation_policy: CancellationPolicy = Field(default_factory=CancellationPolicy)

    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    applicable_days: DayOfWeekMask = Field(default_factory=DayOfWeekMask)
    stay_restrictions: NightsRange = Field(default_factory=NightsRange)
    booking_window: BookingWindow = Field(default_factory=BookingWindow)
    discounts: PlanDiscounts = Field(default_factory=PlanDiscounts)
    restrictions: PlanRestrictions = Field(default_factory=PlanRestrictions)
    constraints: PlanConstraints = Field(default_factory=PlanConstraints)

    # Corporate debits above this amount wait for approval
    requires_approval_above: Optional[Decimal] = Field(None, ge=0)

    priority: int = 0
    is_active: bool = True
    modified_at: datetime = Field(default_factory=utc_now)

    class Config:
        from_attributes = True

    def base_rate_for(self, room_type_id: str) -> Optional[Decimal]:
        for entry in self.base_rates:
            if entry.room_type_id == room_type_id:
                return entry.rate
        return None

    def eligibility_failure(
        self,
        room_type_id: str,
        check_in: date,
        check_out: date,
        lead_hours: float,
        promo_code: Optional[str] = None,
    ) -> Optional[str]:
        """Return the first reason the plan cannot sell this stay, or None"""
        if not self.is_active:
            return "plan inactive"
        if self.base_rate_for(room_type_id) is None:
            return "no base rate for room type"
        if self.valid_from and check_in < self.valid_from:
            return "outside validity"
        if self.valid_to and check_out > self.valid_to:
            return "outside validity"

        nights = nights_between(check_in, check_out)
        if not all(self.applicable_days.allows(d) for d in nights):
            return "day of week not applicable"
        if not (self.stay_restrictions.min_nights <= len(nights) <= self.stay_restrictions.max_nights):
            return "length of stay not allowed"

        if lead_hours < self.booking_window.min_advance_hours:
            return "booked too late"
        if lead_hours / 24 > self.booking_window.max_advance_days:
            return "booked too early"

        if self.restrictions.require_promo_code and promo_code != self.restrictions.promo_code:
            return "promo code required"
        return None

    def length_of_stay_discount(self, nights: int) -> Decimal:
        """Highest qualifying minimum-nights band wins"""
        qualifying = [d for d in self.discounts.length_of_stay if nights >= d.min_nights]
        if not qualifying:
            return Decimal("0")
        return max(qualifying, key=lambda d: d.min_nights).discount_percentage

    def booking_window_discount(self, lead_hours: float) -> Decimal:
        early_bird = self.discounts.early_bird
        if early_bird.enabled and lead_hours / 24 >= early_bird.days_in_advance:
            return early_bird.discount_percentage

        last_minute = self.discounts.last_minute
        if last_minute.enabled and 0 <= lead_hours <= last_minute.hours_before_check_in:
            return last_minute.discount_percentage
        return Decimal("0")


class RateOverride(BaseModel):
    """Absolute nightly rate that supersedes composition"""
    override_id: UUID = Field(default_factory=uuid4)
    hotel_id: str
    date: date
    room_type_id: str
    rate_plan_id: Optional[UUID] = None
    rate: Decimal = Field(ge=0)
    reason: Optional[str] = None
    approved_by: Optional[str] = None
    is_active: bool = True

    class Config:
        from_attributes = True

    def matches(self, room_type_id: str, rate_plan_id: Optional[UUID]) -> bool:
        if self.room_type_id != room_type_id or not self.is_active:
            return False
        return self.rate_plan_id is None or self.rate_plan_id == rate_plan_id


class DynamicPricingRule(BaseModel):
    """Occupancy-driven price adjustment"""
    rule_id: UUID = Field(default_factory=uuid4)
    hotel_id: str
    name: str
    applicable_room_types: List[str] = ["all"]
    tiers: List[OccupancyTier] = []
    max_daily_change: Optional[Decimal] = Field(None, ge=0)
    priority: int = 0
    is_active: bool = True

    class Config:
        from_attributes = True

    def applies_to(self, room_type_id: str) -> bool:
        return "all" in self.applicable_room_types or room_type_id in self.applicable_room_types

    def adjustment_for(self, occupancy_rate: float) -> Decimal:
        return sum(
            (t.price_adjustment for t in self.tiers if t.matches(occupancy_rate)),
            Decimal("0"),
        )


# ==================== CORPORATE ====================

class CorporateCompany(BaseModel):
    """Corporate Company Aggregate Root Entity"""

    # Identity
    company_id: UUID = Field(default_factory=uuid4)
    hotel_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    gst_number: str

    # Credit
    credit_limit: Decimal = Field(ge=0, default=Decimal("100000"))
    available_credit: Optional[Decimal] = Field(None, ge=0)
    payment_terms: int = 30
    billing_cycle: BillingCycle = BillingCycle.MONTHLY

    contract_details: ContractDetails = Field(default_factory=ContractDetails)
    hr_contacts: List[HRContact] = []
    is_active: bool = True

    # Ledger chain head
    ledger_head_hash: Optional[str] = None
    ledger_sequence: int = 0

    # Metadata
    created_at: datetime = Field(default_factory=utc_now)
    modified_at: datetime = Field(default_factory=utc_now)
    created_by: str = "SYSTEM"
    version: int = 0

    class Config:
        from_attributes = True

    # ==================== VALIDATORS ====================
    @validator('gst_number')
    def gst_number_format(cls, v):
        v = v.strip().upper()
        if not GSTIN_PATTERN.match(v):
            raise ValueError('Invalid GST number format')
        return v

    @validator('payment_terms')
    def payment_terms_allowed(cls, v):
        if v not in PAYMENT_TERMS_DAYS:
            raise ValueError(f'Payment terms must be one of {list(PAYMENT_TERMS_DAYS)} days')
        return v

    @validator('available_credit', always=True)
    def available_within_limit(cls, v, values):
        limit = values.get('credit_limit')
        if v is None:
            return limit
        if limit is not None and v > limit:
            raise ValueError('Available credit cannot exceed credit limit')
        return v

    @validator('hr_contacts')
    def single_primary_contact(cls, v):
        """First primary wins; the first contact becomes primary if none is"""
        if not v:
            return v
        primary_index = next((i for i, c in enumerate(v) if c.is_primary), 0)
        return [c.model_copy(update={"is_primary": i == primary_index}) for i, c in enumerate(v)]

    # ==================== COMPUTED PROPERTIES ====================
    @property
    def primary_contact(self) -> Optional[HRContact]:
        return next((c for c in self.hr_contacts if c.is_primary), None)

    @property
    def used_credit(self) -> Decimal:
        return self.credit_limit - self.available_credit

    @property
    def utilization_percentage(self) -> float:
        if self.credit_limit <= 0:
            return 0.0
        return round(float(self.used_credit / self.credit_limit * 100), 2)

    # ==================== KEY METHODS ====================
    def has_available_credit(self, amount: Decimal) -> bool:
        return self.is_active and self.available_credit >= amount

    def update_available_credit(self, delta: Decimal) -> Decimal:
        """Apply a signed change, capped at the credit limit"""
        new_value = self.available_credit + Decimal(delta)
        if new_value < 0:
            raise InsufficientCredit(
                f"Insufficient credit: available {self.available_credit}, requested {-Decimal(delta)}",
                {"companyId": str(self.company_id), "availableCredit": str(self.available_credit),
                 "requested": str(-Decimal(delta))},
            )
        self.available_credit = min(new_value, self.credit_limit)
        self.modified_at = utc_now()
        return self.available_credit

    def change_credit_limit(self, new_limit: Decimal) -> None:
        """Move the limit and shift available credit by the same delta"""
        if new_limit < 0:
            raise ValueError("Credit limit cannot be negative")
        delta = new_limit - self.credit_limit
        self.credit_limit = new_limit
        self.available_credit = min(max(self.available_credit + delta, Decimal("0")), new_limit)
        self.modified_at = utc_now()

    def advance_ledger(self, integrity_hash: str) -> int:
        self.ledger_sequence += 1
        self.ledger_head_hash = integrity_hash
        return self.ledger_sequence

    def due_date_for(self, transaction_date: datetime) -> date:
        return transaction_date.date() + timedelta(days=self.payment_terms)

    def set_active(self, active: bool) -> None:
        self.is_active = active
        self.modified_at = utc_now()


class CreditTransaction(BaseModel):
    """Credit Transaction Entity, append-only once terminal"""

    # Identity
    transaction_id: UUID = Field(default_factory=uuid4)
    hotel_id: str
    company_id: UUID
    booking_id: Optional[str] = None

    # Posting
    transaction_type: TransactionType
    adjustment_direction: Optional[AdjustmentDirection] = None
    amount: Decimal = Field(ge=0)
    balance: Optional[Decimal] = None
    description: Optional[str] = None
    reference: Optional[str] = None
    transaction_date: datetime = Field(default_factory=utc_now)
    due_date: Optional[date] = None

    # Workflow
    status: TransactionStatus = TransactionStatus.PENDING
    approval_details: Optional[ApprovalDetails] = None
    rejection_reason: Optional[str] = None
    processed_at: Optional[datetime] = None

    # Integrity chain
    integrity_hash: Optional[str] = None
    prev_hash: Optional[str] = None
    sequence: Optional[int] = None

    # Append-only linkage
    linked_transaction_ids: List[UUID] = []

    created_by: str = "SYSTEM"
    version: int = 0

    class Config:
        from_attributes = True

    @validator('adjustment_direction', always=True)
    def direction_only_for_adjustments(cls, v, values):
        if values.get('transaction_type') == TransactionType.ADJUSTMENT and v is None:
            raise ValueError('Adjustments must state a direction')
        return v

    # ==================== COMPUTED PROPERTIES ====================
    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TRANSACTION_STATUSES

    @property
    def signed_amount(self) -> Decimal:
        """Effect on available credit when posted"""
        if self.transaction_type == TransactionType.DEBIT:
            return -self.amount
        if self.transaction_type == TransactionType.ADJUSTMENT:
            if self.adjustment_direction == AdjustmentDirection.DECREASE:
                return -self.amount
        return self.amount

    @property
    def reduces_credit(self) -> bool:
        return self.signed_amount < 0

    # ==================== STATE TRANSITION METHODS ====================
    def approve(self, actor: str, notes: Optional[str] = None) -> None:
        """Approve pending transaction"""
        if self.status != TransactionStatus.PENDING:
            raise StateTransitionError(
                f"Cannot approve transaction with status {self.status.value}",
                {"transactionId": str(self.transaction_id), "status": self.status.value},
            )
        self.status = TransactionStatus.APPROVED
        self.approval_details = ApprovalDetails(approver=actor, notes=notes)

    def reject(self, actor: str, reason: str) -> None:
        if self.status != TransactionStatus.PENDING:
            raise StateTransitionError(
                f"Cannot reject transaction with status {self.status.value}",
                {"transactionId": str(self.transaction_id), "status": self.status.value},
            )
        if not reason or not reason.strip():
            raise ValueError("Rejection reason is required")
        self.status = TransactionStatus.REJECTED
        self.rejection_reason = reason
        self.approval_details = ApprovalDetails(approver=actor, notes=reason)

    def cancel(self, actor: str, reason: Optional[str] = None) -> None:
        if self.status not in (TransactionStatus.PENDING, TransactionStatus.APPROVED):
            raise StateTransitionError(
                f"Cannot cancel transaction with status {self.status.value}",
                {"transactionId": str(self.transaction_id), "status": self.status.value},
            )
        self.status = TransactionStatus.CANCELLED
        self.rejection_reason = reason
        self.approval_details = ApprovalDetails(approver=actor, notes=reason)

    def mark_processed(self, balance: Decimal, prev_hash: Optional[str], sequence: int) -> str:
        """Snapshot the balance and seal the record into the company chain"""
        if self.is_terminal:
            raise StateTransitionError(
                f"Cannot process transaction with status {self.status.value}",
                {"transactionId": str(self.transaction_id), "status": self.status.value},
            )
        self.balance = balance
        self.prev_hash = prev_hash
        self.sequence = sequence
        self.status = TransactionStatus.PROCESSED
        self.processed_at = utc_now()
        self.integrity_hash = self.compute_integrity_hash()
        return self.integrity_hash

    def link(self, transaction_id: UUID) -> None:
        if transaction_id not in self.linked_transaction_ids:
            self.linked_transaction_ids.append(transaction_id)

    # ==================== INTEGRITY ====================
    def compute_integrity_hash(self) -> str:
        payload = "|".join([
            str(self.company_id),
            str(Decimal(self.amount).quantize(CENTS)),
            self.transaction_type.value,
            str(Decimal(self.balance if self.balance is not None else 0).quantize(CENTS)),
            self.transaction_date.isoformat(),
            self.prev_hash or "",
        ])
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def verify_integrity(self) -> bool:
        return self.integrity_hash is not None and self.integrity_hash == self.compute_integrity_hash()


class CreditLimitRequest(BaseModel):
    """Credit limit increase workflow entity"""
    request_id: UUID = Field(default_factory=uuid4)
    hotel_id: str
    company_id: UUID
    current_limit: Decimal = Field(ge=0)
    requested_limit: Decimal = Field(gt=0)
    justification: str = Field(min_length=10, max_length=1000)
    status: LimitRequestStatus = LimitRequestStatus.PENDING
    risk_level: RiskLevel = RiskLevel.LOW
    risk_findings: List[str] = []

    requested_by: str
    requested_at: datetime = Field(default_factory=utc_now)
    processor: Optional[str] = None
    processed_at: Optional[datetime] = None
    comments: Optional[str] = None
    version: int = 0

    class Config:
        from_attributes = True

    @property
    def delta(self) -> Decimal:
        return self.requested_limit - self.current_limit

    def _close(self, status: LimitRequestStatus, processor: str, comments: Optional[str]) -> None:
        if self.status != LimitRequestStatus.PENDING:
            raise StateTransitionError(
                f"Limit request already {self.status.value}",
                {"requestId": str(self.request_id)},
            )
        self.status = status
        self.processor = processor
        self.comments = comments
        self.processed_at = utc_now()

    def approve(self, processor: str, comments: Optional[str] = None) -> None:
        self._close(LimitRequestStatus.APPROVED, processor, comments)

    def reject(self, processor: str, comments: Optional[str] = None) -> None:
        self._close(LimitRequestStatus.REJECTED, processor, comments)


class BookingReference(BaseModel):
    """What the core observes of an externally owned booking"""
    booking_id: str
    hotel_id: str
    company_id: Optional[UUID] = None
    room_type_id: Optional[str] = None
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    rooms_count: int = Field(1, ge=1)
    rate_plan_id: Optional[UUID] = None
    total_amount: Decimal = Field(Decimal("0"), ge=0)
    source: ReservationSource = ReservationSource.DIRECT
    status: BookingStatus = BookingStatus.PENDING

    @property
    def is_open(self) -> bool:
        return self.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED)
