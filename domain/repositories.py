"""Domain Repository Interfaces

Versioned aggregates (availability rows, companies, credit transactions and
limit requests) are written with compare-and-swap: ``update`` succeeds only
when the stored version equals the entity's version, and every successful
write returns the stored copy with its new version.
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Sequence
from uuid import UUID
from datetime import date, datetime

from pydantic import BaseModel

from domain.entities import (
    AvailabilityRow, BookingReference, CorporateCompany, CreditLimitRequest,
    CreditTransaction, DynamicPricingRule, RateOverride, RatePlan, RoomType,
    Season, SpecialPeriod,
)
from domain.enums import TransactionStatus, TransactionType


class AvailabilityRepository(ABC):
    """Repository interface for Availability rows"""

    @abstractmethod
    async def insert_many(self, rows: Sequence[AvailabilityRow]) -> List[AvailabilityRow]:
        """Insert new rows; (hotel, room type, date) is unique"""
        pass

    @abstractmethod
    async def find(self, hotel_id: str, room_type_id: str, on: date) -> Optional[AvailabilityRow]:
        """Find the row for one night"""
        pass

    @abstractmethod
    async def find_range(self, hotel_id: str, room_type_id: str, start: date, end: date) -> List[AvailabilityRow]:
        """Rows with start <= date < end, ordered by date"""
        pass

    @abstractmethod
    async def find_hotel_range(
        self, hotel_id: str, start: date, end: date, room_type_id: Optional[str] = None
    ) -> List[AvailabilityRow]:
        """Rows of every room type of the hotel with start <= date < end"""
        pass

    @abstractmethod
    async def find_by_booking(self, hotel_id: str, booking_id: str) -> List[AvailabilityRow]:
        """Rows carrying a reservation entry for the booking"""
        pass

    @abstractmethod
    async def update_many(self, rows: Sequence[AvailabilityRow]) -> List[AvailabilityRow]:
        """Version-checked write of several rows; all or nothing"""
        pass


class RoomTypeRepository(ABC):
    """Repository interface for Room Types"""

    @abstractmethod
    async def save(self, room_type: RoomType) -> RoomType:
        pass

    @abstractmethod
    async def find_by_id(self, room_type_id: str) -> Optional[RoomType]:
        pass

    @abstractmethod
    async def find_by_hotel(self, hotel_id: str) -> List[RoomType]:
        pass


class SeasonRepository(ABC):
    """Repository interface for Seasons"""

    @abstractmethod
    async def save(self, season: Season) -> Season:
        pass

    @abstractmethod
    async def find_by_id(self, season_id: UUID) -> Optional[Season]:
        pass

    @abstractmethod
    async def find_by_hotel(self, hotel_id: str, active_only: bool = True) -> List[Season]:
        pass


class SpecialPeriodRepository(ABC):
    """Repository interface for Special Periods"""

    @abstractmethod
    async def save(self, period: SpecialPeriod) -> SpecialPeriod:
        pass

    @abstractmethod
    async def find_by_id(self, period_id: UUID) -> Optional[SpecialPeriod]:
        pass

    @abstractmethod
    async def find_by_hotel(self, hotel_id: str, active_only: bool = True) -> List[SpecialPeriod]:
        pass


class RatePlanRepository(ABC):
    """Repository interface for Rate Plans"""

    @abstractmethod
    async def save(self, plan: RatePlan) -> RatePlan:
        """Insert or replace"""
        pass

    @abstractmethod
    async def find_by_id(self, plan_id: UUID) -> Optional[RatePlan]:
        pass

    @abstractmethod
    async def find_by_hotel(self, hotel_id: str, active_only: bool = True) -> List[RatePlan]:
        pass


class RateOverrideRepository(ABC):
    """Repository interface for Rate Overrides"""

    @abstractmethod
    async def upsert(self, override: RateOverride) -> RateOverride:
        """Keyed by (hotel, date, room type, rate plan)"""
        pass

    @abstractmethod
    async def find_range(self, hotel_id: str, room_type_id: str, start: date, end: date) -> List[RateOverride]:
        """Active overrides with start <= date < end"""
        pass


class DynamicPricingRuleRepository(ABC):
    """Repository interface for Dynamic Pricing Rules"""

    @abstractmethod
    async def save(self, rule: DynamicPricingRule) -> DynamicPricingRule:
        pass

    @abstractmethod
    async def find_active(self, hotel_id: str) -> List[DynamicPricingRule]:
        """Active rules ordered by priority, highest first"""
        pass


class CorporateCompanyRepository(ABC):
    """Repository interface for Corporate Company Aggregate"""

    @abstractmethod
    async def insert(self, company: CorporateCompany) -> CorporateCompany:
        """Insert company; gst_number is unique"""
        pass

    @abstractmethod
    async def find_by_id(self, company_id: UUID) -> Optional[CorporateCompany]:
        pass

    @abstractmethod
    async def find_by_gst_number(self, gst_number: str) -> Optional[CorporateCompany]:
        pass

    @abstractmethod
    async def find_by_hotel(self, hotel_id: str, active_only: bool = False) -> List[CorporateCompany]:
        pass

    @abstractmethod
    async def update(self, company: CorporateCompany) -> CorporateCompany:
        """Version-checked update"""
        pass


class CreditTransactionRepository(ABC):
    """Repository interface for Credit Transactions"""

    @abstractmethod
    async def insert(self, transaction: CreditTransaction) -> CreditTransaction:
        pass

    @abstractmethod
    async def find_by_id(self, transaction_id: UUID) -> Optional[CreditTransaction]:
        pass

    @abstractmethod
    async def update(self, transaction: CreditTransaction) -> CreditTransaction:
        """Version-checked update"""
        pass

    @abstractmethod
    async def find_by_company(
        self, company_id: UUID, status: Optional[TransactionStatus] = None
    ) -> List[CreditTransaction]:
        """Newest first by transaction date"""
        pass

    @abstractmethod
    async def find_by_hotel(
        self,
        hotel_id: str,
        status: Optional[TransactionStatus] = None,
        transaction_type: Optional[TransactionType] = None,
        company_id: Optional[UUID] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[CreditTransaction]:
        """Newest first; start inclusive, end exclusive"""
        pass

    @abstractmethod
    async def find_by_booking(self, booking_id: str) -> List[CreditTransaction]:
        pass

    @abstractmethod
    async def find_overdue(self, hotel_id: str, due_before: date) -> List[CreditTransaction]:
        """Processed debits whose due date is strictly before the cutoff"""
        pass


class CreditLimitRequestRepository(ABC):
    """Repository interface for Credit Limit Requests"""

    @abstractmethod
    async def insert(self, request: CreditLimitRequest) -> CreditLimitRequest:
        pass

    @abstractmethod
    async def find_by_id(self, request_id: UUID) -> Optional[CreditLimitRequest]:
        pass

    @abstractmethod
    async def find_pending(self, hotel_id: str, company_id: Optional[UUID] = None) -> List[CreditLimitRequest]:
        pass


class BookingDirectory(ABC):
    """Read-mostly view of bookings owned by the reservations subsystem"""

    @abstractmethod
    async def save(self, booking: BookingReference) -> BookingReference:
        pass

    @abstractmethod
    async def find_by_id(self, booking_id: str) -> Optional[BookingReference]:
        pass

    @abstractmethod
    async def count_open_for_company(self, company_id: UUID) -> int:
        """Bookings in confirmed or checked_in status"""
        pass


class UnitOfWork(ABC):
    """Atomic multi-document write"""

    @abstractmethod
    async def commit(
        self, inserts: Sequence[BaseModel] = (), updates: Sequence[BaseModel] = ()
    ) -> List[BaseModel]:
        """Insert new aggregates and version-check updates; all or nothing.

        Returns the stored copies, inserts first, in argument order.
        """
        pass
