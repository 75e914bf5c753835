"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List

from domain.enums import AdjustmentType, ReservationSource
from domain.temporal import utc_now, WEEKDAY_NAMES


class GuestCount(BaseModel):
    """Value Object for guest count"""
    adults: int = Field(ge=1, le=10)
    children: int = Field(ge=0, le=10, default=0)

    @property
    def total(self) -> int:
        return self.adults + self.children

    class Config:
        frozen = True


class CancellationPolicy(BaseModel):
    """Value Object for cancellation policy"""
    policy_name: str = "Standard"
    refund_percentage: Decimal = Field(ge=0, le=100, default=Decimal("100"))
    deadline_hours: int = Field(ge=0, default=24)

    class Config:
        frozen = True


# ==================== INVENTORY ====================

class ReservationEntry(BaseModel):
    """Rooms held on one availability row by one booking"""
    booking_id: str
    rooms_reserved: int = Field(ge=1)
    source: ReservationSource = ReservationSource.DIRECT
    reserved_at: datetime = Field(default_factory=utc_now)


class RoomBlock(BaseModel):
    """A specific physical room taken out of inventory for one night"""
    room_id: str
    reason: str = "maintenance"
    blocked_by: Optional[str] = None
    blocked_at: datetime = Field(default_factory=utc_now)


# ==================== SEASONS & PERIODS ====================

class DayOfWeekMask(BaseModel):
    """Weekdays on which something applies; everything allowed by default"""
    monday: bool = True
    tuesday: bool = True
    wednesday: bool = True
    thursday: bool = True
    friday: bool = True
    saturday: bool = True
    sunday: bool = True

    def allows(self, d: date) -> bool:
        return getattr(self, WEEKDAY_NAMES[d.weekday()])

    class Config:
        frozen = True


class RateAdjustment(BaseModel):
    """Seasonal adjustment; room_type_id None means every room type"""
    room_type_id: Optional[str] = None
    adjustment_type: AdjustmentType = AdjustmentType.PERCENTAGE
    value: Decimal

    def applies_to(self, room_type_id: str) -> bool:
        return self.room_type_id is None or self.room_type_id in ("all", room_type_id)

    class Config:
        frozen = True


class StayRestrictions(BaseModel):
    min_length_of_stay: Optional[int] = Field(None, ge=1)
    max_length_of_stay: Optional[int] = Field(None, ge=1)
    arrival_days: DayOfWeekMask = Field(default_factory=DayOfWeekMask)
    closed_to_arrival: List[date] = []
    closed_to_departure: List[date] = []


class AdvanceWindow(BaseModel):
    """Booking window for seasons, expressed in days before arrival"""
    min_advance_days: int = Field(0, ge=0)
    max_advance_days: Optional[int] = Field(None, ge=0)

    def allows(self, lead_days: float) -> bool:
        if lead_days < self.min_advance_days:
            return False
        if self.max_advance_days is not None and lead_days > self.max_advance_days:
            return False
        return True


class RecurringPattern(BaseModel):
    """A yearly recurrence reuses the month/day span of the period every year"""
    yearly: bool = True


# ==================== RATE PLANS ====================

class PlanBaseRate(BaseModel):
    room_type_id: str
    rate: Decimal = Field(ge=0)


class NightsRange(BaseModel):
    min_nights: int = Field(1, ge=1)
    max_nights: int = Field(365, ge=1)

    @validator('max_nights')
    def max_not_below_min(cls, v, values):
        if 'min_nights' in values and v < values['min_nights']:
            raise ValueError('max_nights must be at least min_nights')
        return v


class BookingWindow(BaseModel):
    """Rate plan booking window: minimum in hours, maximum in days"""
    min_advance_hours: float = Field(0, ge=0)
    max_advance_days: float = Field(365, ge=0)


class EarlyBirdDiscount(BaseModel):
    enabled: bool = False
    days_in_advance: int = Field(30, ge=0)
    discount_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)


class LastMinuteDiscount(BaseModel):
    enabled: bool = False
    hours_before_check_in: int = Field(48, ge=0)
    discount_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)


class LengthOfStayDiscount(BaseModel):
    min_nights: int = Field(ge=1)
    discount_percentage: Decimal = Field(ge=0, le=100)


class PlanDiscounts(BaseModel):
    early_bird: EarlyBirdDiscount = Field(default_factory=EarlyBirdDiscount)
    last_minute: LastMinuteDiscount = Field(default_factory=LastMinuteDiscount)
    length_of_stay: List[LengthOfStayDiscount] = []


class PlanRestrictions(BaseModel):
    require_promo_code: bool = False
    promo_code: Optional[str] = None


class PlanConstraints(BaseModel):
    max_daily_change: Optional[Decimal] = Field(None, ge=0)


class OccupancyTier(BaseModel):
    """Occupancy band in percent mapped to a price adjustment in percent"""
    min_occupancy: float = Field(ge=0, le=100)
    max_occupancy: float = Field(ge=0, le=100)
    price_adjustment: Decimal

    def matches(self, occupancy_rate: float) -> bool:
        return self.min_occupancy <= occupancy_rate <= self.max_occupancy


class NightlyRate(BaseModel):
    """One line of a priced stay"""
    date: date
    base_rate: Decimal
    rate: Decimal
    seasonal: Decimal = Decimal("0")
    special: Decimal = Decimal("0")
    dynamic: Decimal = Decimal("0")
    calendar_source: Optional[str] = None
    overridden: bool = False


# ==================== CORPORATE ====================

class HRContact(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None
    designation: Optional[str] = None
    is_primary: bool = False


class ContractDetails(BaseModel):
    contract_number: Optional[str] = None
    contract_start_date: Optional[date] = None
    contract_end_date: Optional[date] = None
    discount_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    special_terms: Optional[str] = None


class ApprovalDetails(BaseModel):
    approver: str
    at: datetime = Field(default_factory=utc_now)
    notes: Optional[str] = None
