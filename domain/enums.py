"""Domain Enums"""
from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class ReservationSource(str, Enum):
    DIRECT = "direct"
    WEBSITE = "website"
    MOBILE_APP = "mobile_app"
    PHONE = "phone"
    OTA = "ota"
    CORPORATE = "corporate"


class LegacyRoomCategory(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    SUITE = "suite"
    DELUXE = "deluxe"
    PRESIDENTIAL = "presidential"
    FAMILY = "family"
    ACCESSIBLE = "accessible"


class BlockReason(str, Enum):
    MAINTENANCE = "maintenance"
    OUT_OF_ORDER = "out_of_order"
    CUSTOM = "custom"


class SeasonType(str, Enum):
    PEAK = "peak"
    HIGH = "high"
    SHOULDER = "shoulder"
    LOW = "low"
    OFF = "off"
    CUSTOM = "custom"


class AdjustmentType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    ABSOLUTE = "absolute"


class BookingRestriction(str, Enum):
    NONE = "none"
    CLOSED_TO_ARRIVAL = "closed_to_arrival"
    CLOSED_TO_DEPARTURE = "closed_to_departure"
    CLOSED_TO_BOTH = "closed_to_both"
    BLOCKED = "blocked"


class OverrideType(str, Enum):
    RATE = "rate"
    BLOCK = "block"


class RatePlanType(str, Enum):
    BAR = "BAR"
    CORPORATE = "corporate"
    PACKAGE = "package"
    PROMO = "promo"


class MealPlan(str, Enum):
    ROOM_ONLY = "RO"
    BED_AND_BREAKFAST = "BB"
    HALF_BOARD = "HB"
    FULL_BOARD = "FB"
    ALL_INCLUSIVE = "AI"


class BillingCycle(str, Enum):
    IMMEDIATE = "immediate"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class TransactionType(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"
    ADJUSTMENT = "adjustment"
    REFUND = "refund"
    PAYMENT = "payment"


class AdjustmentDirection(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"
    CANCELLED = "cancelled"


class LimitRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class LimitRequestAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    STAFF = "staff"
    GUEST = "guest"


# Days for which payment terms may be negotiated
PAYMENT_TERMS_DAYS = (15, 30, 45, 60, 90)

TERMINAL_TRANSACTION_STATUSES = frozenset({
    TransactionStatus.PROCESSED,
    TransactionStatus.REJECTED,
    TransactionStatus.CANCELLED,
})
