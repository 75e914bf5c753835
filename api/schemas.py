"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field, validator
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import Any, Dict, List, Optional

from domain.enums import (
    AdjustmentDirection, BillingCycle, BlockReason, BookingRestriction, LegacyRoomCategory,
    LimitRequestAction, MealPlan, OverrideType, RatePlanType, ReservationSource, SeasonType,
    TransactionStatus, TransactionType, UserRole,
)
from domain.value_objects import (
    AdvanceWindow, BookingWindow, CancellationPolicy, ContractDetails, DayOfWeekMask, HRContact,
    NightsRange, OccupancyTier, PlanBaseRate, PlanConstraints, PlanDiscounts, PlanRestrictions,
    RateAdjustment, RecurringPattern, StayRestrictions,
)


class ErrorResponse(BaseModel):
    """Typed error body"""
    kind: str
    message: str
    details: Optional[Dict[str, Any]] = None


# ============================================================================
# ROOM TYPE & AVAILABILITY SCHEMAS
# ============================================================================

class CreateRoomTypeRequest(BaseModel):
    """Create room type request DTO"""
    room_type_id: str = Field(min_length=1)
    name: str
    code: str
    base_price: Decimal = Field(ge=0)
    max_occupancy: int = Field(ge=1, default=2)
    legacy_category: LegacyRoomCategory = LegacyRoomCategory.DOUBLE


class RoomTypeResponse(BaseModel):
    """Room type response DTO"""
    room_type_id: str
    hotel_id: str
    name: str
    code: str
    base_price: float
    max_occupancy: int
    legacy_category: str
    is_active: bool


class OpenInventoryRequest(BaseModel):
    """Open inventory request DTO"""
    room_type_id: str
    start_date: date
    end_date: date
    total_rooms: int = Field(ge=0)
    base_rate: Optional[Decimal] = Field(None, ge=0)
    selling_rate: Optional[Decimal] = Field(None, ge=0)

    @validator('end_date')
    def end_after_start(cls, v, values):
        if 'start_date' in values and v <= values['start_date']:
            raise ValueError('End date must be after start date')
        return v


class AvailabilityRowResponse(BaseModel):
    """Availability row response DTO"""
    hotel_id: str
    room_type_id: str
    date: date
    total_rooms: int
    sold_rooms: int
    blocked_rooms: int
    available_rooms: int
    base_rate: float
    selling_rate: Optional[float] = None
    effective_rate: float
    is_overbooked: bool
    last_updated: datetime
    version: int


class ReserveRoomsRequest(BaseModel):
    """Reserve rooms request DTO"""
    room_type_id: str
    check_in: date
    check_out: date
    quantity: int = Field(ge=1, default=1)
    booking_id: str = Field(min_length=1)
    source: ReservationSource = ReservationSource.DIRECT


class ReleaseRoomsRequest(BaseModel):
    """Release rooms request DTO"""
    booking_id: str = Field(min_length=1)
    room_type_id: Optional[str] = None
    check_in: Optional[date] = None
    check_out: Optional[date] = None


class BlockRoomsRequest(BaseModel):
    """Block rooms request DTO"""
    room_type_id: str
    room_ids: List[str] = Field(min_length=1)
    start_date: date
    end_date: date
    reason: BlockReason = BlockReason.MAINTENANCE


class UnblockRoomsRequest(BaseModel):
    """Unblock rooms request DTO"""
    room_type_id: str
    room_ids: List[str] = Field(min_length=1)
    start_date: date
    end_date: date


# ============================================================================
# SEASON & SPECIAL PERIOD SCHEMAS
# ============================================================================

class CreateSeasonRequest(BaseModel):
    """Create season request DTO"""
    name: str = Field(min_length=1, max_length=100)
    start_date: date
    end_date: date
    season_type: SeasonType = SeasonType.CUSTOM
    rate_adjustments: List[RateAdjustment] = []
    restrictions: StayRestrictions = Field(default_factory=StayRestrictions)
    booking_window: AdvanceWindow = Field(default_factory=AdvanceWindow)
    priority: int = Field(ge=0, default=0)
    applicable_rate_plans: List[UUID] = []
    recurring_pattern: Optional[RecurringPattern] = None

    @validator('end_date')
    def end_after_start(cls, v, values):
        if 'start_date' in values and v <= values['start_date']:
            raise ValueError('End date must be after start date')
        return v


class CreateSpecialPeriodRequest(CreateSeasonRequest):
    """Create special period request DTO"""
    priority: int = Field(ge=0, default=10)
    booking_restriction: BookingRestriction = BookingRestriction.NONE
    override_type: OverrideType = OverrideType.RATE


class RateAdjustmentResponse(BaseModel):
    room_type_id: Optional[str] = None
    adjustment_type: str
    value: float


class CalendarPeriodResponse(BaseModel):
    """Season or special period response DTO"""
    period_id: UUID
    hotel_id: str
    kind: str
    name: str
    start_date: date
    end_date: date
    priority: int
    is_active: bool
    season_type: Optional[str] = None
    booking_restriction: Optional[str] = None
    rate_adjustments: List[RateAdjustmentResponse]
    applicable_rate_plans: List[UUID]
    created_by: str
    created_at: datetime


# ============================================================================
# RATE SCHEMAS
# ============================================================================

class RatePlanRequest(BaseModel):
    """Create or replace rate plan request DTO"""
    plan_id: Optional[UUID] = None
    name: str = Field(min_length=1, max_length=100)
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
    requires_approval_above: Optional[Decimal] = Field(None, ge=0)
    priority: int = 0
    is_active: bool = True


class RatePlanResponse(BaseModel):
    """Rate plan response DTO"""
    plan_id: UUID
    hotel_id: str
    name: str
    description: Optional[str] = None
    plan_type: str
    meal_plan: str
    base_rates: Dict[str, float]
    valid_from: Optional[date] = None
    valid_to: Optional[date] = None
    min_nights: int
    max_nights: int
    requires_approval_above: Optional[float] = None
    priority: int
    is_active: bool


class RateOverrideRequest(BaseModel):
    """Rate override request DTO"""
    date: date
    room_type_id: str
    rate_plan_id: Optional[UUID] = None
    rate: Decimal = Field(ge=0)
    reason: Optional[str] = None


class RateOverrideResponse(BaseModel):
    """Rate override response DTO"""
    override_id: UUID
    hotel_id: str
    date: date
    room_type_id: str
    rate_plan_id: Optional[UUID] = None
    rate: float
    reason: Optional[str] = None
    approved_by: Optional[str] = None
    is_active: bool


class DynamicRuleRequest(BaseModel):
    """Dynamic pricing rule request DTO"""
    name: str = Field(min_length=1)
    applicable_room_types: List[str] = ["all"]
    tiers: List[OccupancyTier] = Field(min_length=1)
    max_daily_change: Optional[Decimal] = Field(None, ge=0)
    priority: int = 0


class DynamicRuleResponse(BaseModel):
    """Dynamic pricing rule response DTO"""
    rule_id: UUID
    hotel_id: str
    name: str
    applicable_room_types: List[str]
    tier_count: int
    max_daily_change: Optional[float] = None
    priority: int
    is_active: bool


class RateQueryRequest(BaseModel):
    """Best rate request DTO"""
    room_type_id: str
    check_in: date
    check_out: date
    adults: int = Field(ge=1, le=10, default=1)
    children: int = Field(ge=0, le=10, default=0)
    promo_code: Optional[str] = None

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out must be after check-in')
        return v


class NightlyRateResponse(BaseModel):
    """One priced night"""
    date: date
    base_rate: float
    rate: float
    seasonal: float
    special: float
    dynamic: float
    calendar_source: Optional[str] = None
    overridden: bool


class RateQuoteResponse(BaseModel):
    """Priced plan response DTO"""
    plan_id: Optional[UUID] = None
    plan_name: str
    plan_type: Optional[str] = None
    priority: int
    nights: int
    nightly_rate: float
    total_amount: float
    breakdown: List[NightlyRateResponse]
    meal_plan: Optional[str] = None
    requires_approval_above: Optional[float] = None
    description: Optional[str] = None
    min_nights: Optional[int] = None
    max_nights: Optional[int] = None
    adjustments: Optional[Dict[str, Any]] = None


# ============================================================================
# BOOKING SCHEMAS
# ============================================================================

class CreateBookingRequest(BaseModel):
    """Create booking request DTO"""
    booking_id: str = Field(min_length=1, max_length=64)
    room_type_id: str
    check_in: date
    check_out: date
    rooms_count: int = Field(ge=1, le=20, default=1)
    adults: int = Field(ge=1, le=10, default=1)
    children: int = Field(ge=0, le=10, default=0)
    company_id: Optional[UUID] = None
    source: ReservationSource = ReservationSource.DIRECT
    promo_code: Optional[str] = None


class BookingResponse(BaseModel):
    """Booking confirmation response DTO"""
    booking_id: str
    status: str
    plan_id: Optional[UUID] = None
    plan_name: str
    nightly_rate: float
    rooms_count: int
    total_amount: float
    breakdown: List[NightlyRateResponse]
    credit_transaction_id: Optional[UUID] = None
    credit_status: Optional[str] = None


class CancelBookingRequest(BaseModel):
    """Cancel booking request DTO"""
    refund_amount: Optional[Decimal] = Field(None, ge=0)
    reason: Optional[str] = None


class BookingCancellationResponse(BaseModel):
    """Booking cancellation response DTO"""
    booking_id: str
    released_rooms: int
    refund_amount: float
    credit_transaction_id: Optional[UUID] = None
    cancelled_transaction_ids: List[UUID] = []


class ModifyBookingRequest(BaseModel):
    """Modify booking request DTO"""
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    room_type_id: Optional[str] = None
    rooms_count: Optional[int] = Field(None, ge=1, le=20)
    adults: Optional[int] = Field(None, ge=1, le=10)
    children: Optional[int] = Field(None, ge=0, le=10)
    promo_code: Optional[str] = None


class BookingModificationResponse(BaseModel):
    """Booking modification response DTO"""
    booking_id: str
    check_in: date
    check_out: date
    room_type_id: str
    rooms_count: int
    previous_total: float
    total_amount: float
    delta: float
    credit_transaction_id: Optional[UUID] = None


# ============================================================================
# CORPORATE SCHEMAS
# ============================================================================

class CreateCompanyRequest(BaseModel):
    """Create corporate company request DTO"""
    name: str = Field(min_length=1, max_length=200)
    email: Optional[str] = None
    phone: Optional[str] = None
    gst_number: str
    credit_limit: Decimal = Field(ge=0, default=Decimal("100000"))
    payment_terms: int = 30
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    contract_details: ContractDetails = Field(default_factory=ContractDetails)
    hr_contacts: List[HRContact] = []


class UpdateCompanyRequest(BaseModel):
    """Update corporate company request DTO"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[str] = None
    phone: Optional[str] = None
    gst_number: Optional[str] = None
    credit_limit: Optional[Decimal] = Field(None, ge=0)
    payment_terms: Optional[int] = None
    billing_cycle: Optional[BillingCycle] = None
    contract_details: Optional[ContractDetails] = None
    hr_contacts: Optional[List[HRContact]] = None


class CompanyResponse(BaseModel):
    """Corporate company response DTO"""
    company_id: UUID
    hotel_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    gst_number: str
    credit_limit: float
    available_credit: float
    used_credit: float
    utilization_percentage: float
    payment_terms: int
    billing_cycle: str
    hr_contacts: List[HRContact]
    is_active: bool
    created_at: datetime
    modified_at: datetime
    created_by: str
    version: int


class UpdateCreditRequest(BaseModel):
    """Manual signed credit change request DTO"""
    amount: Decimal
    description: str = Field(min_length=1, max_length=500)


class CreditTransactionRequest(BaseModel):
    """Post credit transaction request DTO"""
    company_id: UUID
    transaction_type: TransactionType
    adjustment_direction: Optional[AdjustmentDirection] = None
    amount: Decimal = Field(gt=0)
    booking_id: Optional[str] = None
    description: Optional[str] = None
    reference: Optional[str] = None
    status: TransactionStatus = TransactionStatus.PENDING
    link_to: Optional[UUID] = None


class CreditTransactionResponse(BaseModel):
    """Credit transaction response DTO"""
    transaction_id: UUID
    hotel_id: str
    company_id: UUID
    booking_id: Optional[str] = None
    transaction_type: str
    adjustment_direction: Optional[str] = None
    amount: float
    balance: Optional[float] = None
    description: Optional[str] = None
    reference: Optional[str] = None
    transaction_date: datetime
    due_date: Optional[date] = None
    status: str
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    processed_at: Optional[datetime] = None
    integrity_hash: Optional[str] = None
    prev_hash: Optional[str] = None
    sequence: Optional[int] = None
    linked_transaction_ids: List[UUID] = []
    created_by: str
    version: int


class ApproveTransactionRequest(BaseModel):
    notes: Optional[str] = None


class RejectTransactionRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class CancelTransactionRequest(BaseModel):
    reason: Optional[str] = None


class BulkApproveRequest(BaseModel):
    """Bulk approval request DTO"""
    transaction_ids: List[UUID] = Field(min_length=1)
    notes: Optional[str] = None


class ValidateCreditRequest(BaseModel):
    """Pre-flight credit check request DTO"""
    company_id: UUID
    amount: Decimal = Field(gt=0)


class ProcessBookingCreditRequest(BaseModel):
    """Charge booking to company credit request DTO"""
    company_id: UUID
    booking_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)


class LimitIncreaseRequest(BaseModel):
    """Credit limit increase request DTO"""
    company_id: UUID
    requested_limit: Decimal = Field(gt=0)
    justification: str = Field(min_length=10, max_length=1000)


class ProcessLimitRequest(BaseModel):
    """Approve or reject a limit request DTO"""
    request_id: UUID
    action: LimitRequestAction
    comments: Optional[str] = None


class LimitRequestResponse(BaseModel):
    """Credit limit request response DTO"""
    request_id: UUID
    hotel_id: str
    company_id: UUID
    current_limit: float
    requested_limit: float
    justification: str
    status: str
    risk_level: str
    risk_findings: List[str]
    requested_by: str
    requested_at: datetime
    processor: Optional[str] = None
    processed_at: Optional[datetime] = None
    comments: Optional[str] = None


class CreditAdjustmentRequest(BaseModel):
    """Signed manual adjustment request DTO"""
    company_id: UUID
    amount: Decimal
    reason: str = Field(min_length=5, max_length=500)

    @validator('amount')
    def amount_not_zero(cls, v):
        if v == 0:
            raise ValueError('Adjustment amount cannot be zero')
        return v


class BatchVerifyRequest(BaseModel):
    transaction_ids: List[UUID] = Field(min_length=1)


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str

class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None

class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: UserRole
    hotel_id: str
    disabled: bool
