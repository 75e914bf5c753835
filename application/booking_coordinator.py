"""Booking Coordinator

Single entry point that prices a stay, holds the rooms and debits corporate
credit as one unit. Every step after the room hold is covered by an explicit
compensation, including cancellation by the wall-clock budget.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from domain.entities import BookingReference, CreditTransaction
from domain.enums import BookingStatus, ReservationSource, TransactionStatus, TransactionType
from domain.exceptions import (
    CompanyInactive, CoordinatorTimeout, NotFound, StateTransitionError, ValidationError,
)
from domain.repositories import BookingDirectory, CorporateCompanyRepository
from domain.temporal import night_count, today
from domain.value_objects import GuestCount
from application.availability_service import AvailabilityService
from application.credit_ledger_service import CreditLedgerService
from application.rate_service import RateService
from application.season_service import SeasonService
from infrastructure.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


@dataclass
class BookingRequest:
    hotel_id: str
    room_type_id: str
    check_in: date
    check_out: date
    booking_id: str
    actor: str
    rooms_count: int = 1
    guests: Optional[GuestCount] = None
    company_id: Optional[UUID] = None
    source: ReservationSource = ReservationSource.DIRECT
    promo_code: Optional[str] = None


@dataclass
class BookingModification:
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    room_type_id: Optional[str] = None
    rooms_count: Optional[int] = None
    guests: Optional[GuestCount] = None
    promo_code: Optional[str] = None


class BookingCoordinator:
    """Coordinates availability, pricing and corporate credit for one booking"""

    def __init__(self,
                 availability_service: AvailabilityService,
                 rate_service: RateService,
                 season_service: SeasonService,
                 ledger: CreditLedgerService,
                 company_repo: CorporateCompanyRepository,
                 booking_directory: BookingDirectory,
                 settings: Settings = default_settings):
        self.availability_service = availability_service
        self.rate_service = rate_service
        self.season_service = season_service
        self.ledger = ledger
        self.company_repo = company_repo
        self.booking_directory = booking_directory
        self.settings = settings

    async def _within_budget(self, operation, description: str):
        timeout = self.settings.COORDINATOR_TIMEOUT_MS / 1000
        try:
            return await asyncio.wait_for(operation, timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"{description} exceeded {self.settings.COORDINATOR_TIMEOUT_MS} ms and was rolled back")
            raise CoordinatorTimeout(
                f"{description} timed out",
                {"timeoutMs": self.settings.COORDINATOR_TIMEOUT_MS},
            )

    # ==================== VALIDATION ====================
    def _validate_stay(self, check_in: date, check_out: date, rooms_count: int) -> None:
        if check_out <= check_in:
            raise ValidationError("Check-out must be after check-in")
        if check_in < today():
            raise ValidationError("Check-in date must be today or later")
        if night_count(check_in, check_out) > self.settings.MAX_STAY_NIGHTS:
            raise ValidationError(f"Maximum stay is {self.settings.MAX_STAY_NIGHTS} nights")
        if rooms_count < 1:
            raise ValidationError("At least one room must be booked")

    async def _require_active_company(self, hotel_id: str, company_id: UUID) -> None:
        company = await self.company_repo.find_by_id(company_id)
        if not company or company.hotel_id != hotel_id:
            raise NotFound(f"Company {company_id} not found", {"companyId": str(company_id)})
        if not company.is_active:
            raise CompanyInactive(f"Company {company.name} is inactive", {"companyId": str(company_id)})

    async def _price(self, hotel_id: str, room_type_id: str, check_in: date, check_out: date,
                     guests: Optional[GuestCount], promo_code: Optional[str]) -> dict:
        rate = await self.rate_service.best_rate(
            hotel_id, room_type_id, check_in, check_out, guests, promo_code
        )
        if rate is None:
            raise NotFound(
                f"Room type {room_type_id} cannot be priced for these guests",
                {"roomTypeId": room_type_id},
            )
        return rate

    # ==================== CREDIT HELPERS ====================
    def _debit_status(self, rate: dict, amount: Decimal) -> TransactionStatus:
        threshold = rate.get("requires_approval_above")
        if threshold is not None and amount > threshold:
            return TransactionStatus.PENDING
        return TransactionStatus.PROCESSED

    async def _post_debit(self, booking_id: str, hotel_id: str, company_id: UUID, amount: Decimal,
                          status: TransactionStatus, actor: str, description: str) -> CreditTransaction:
        if amount > self.settings.MAX_BOOKING_CREDIT_AMOUNT:
            raise ValidationError(f"Booking amount cannot exceed {self.settings.MAX_BOOKING_CREDIT_AMOUNT}")
        return await self.ledger.post(CreditTransaction(
            hotel_id=hotel_id,
            company_id=company_id,
            booking_id=booking_id,
            transaction_type=TransactionType.DEBIT,
            amount=amount,
            description=description,
            reference=booking_id,
            status=status,
            created_by=actor,
        ))

    async def _post_credit(self, booking_id: str, hotel_id: str, company_id: UUID, amount: Decimal,
                           actor: str, description: str, link_to: Optional[UUID] = None) -> CreditTransaction:
        return await self.ledger.post(CreditTransaction(
            hotel_id=hotel_id,
            company_id=company_id,
            booking_id=booking_id,
            transaction_type=TransactionType.CREDIT,
            amount=amount,
            description=description,
            reference=booking_id,
            status=TransactionStatus.PROCESSED,
            created_by=actor,
        ), link_to=link_to)

    async def _booking_credit_position(self, booking_id: str):
        """Outstanding processed debit and the still-open debits of a booking"""
        transactions = await self.ledger.transactions_for_booking(booking_id)
        processed = [t for t in transactions if t.status == TransactionStatus.PROCESSED]
        debited = sum((t.amount for t in processed if t.transaction_type == TransactionType.DEBIT), Decimal("0"))
        credited = sum(
            (t.amount for t in processed
             if t.transaction_type in (TransactionType.CREDIT, TransactionType.REFUND)),
            Decimal("0"),
        )
        open_debits = [
            t for t in transactions
            if t.transaction_type == TransactionType.DEBIT
            and t.status in (TransactionStatus.PENDING, TransactionStatus.APPROVED)
        ]
        last_debit = next(
            (t for t in reversed(processed) if t.transaction_type == TransactionType.DEBIT), None
        )
        return max(debited - credited, Decimal("0")), open_debits, last_debit

    async def _undo_credit(self, request_hotel: str, booking_id: str, debit: CreditTransaction,
                           actor: str, error: BaseException) -> None:
        logger.warning(f"Compensating debit {debit.transaction_id} of booking {booking_id} after: {error!r}")
        if debit.status == TransactionStatus.PROCESSED:
            await self._post_credit(
                booking_id, request_hotel, debit.company_id, debit.amount, actor,
                f"Compensation for booking {booking_id}", link_to=debit.transaction_id,
            )
        else:
            await self.ledger.cancel(debit.transaction_id, actor, f"Compensation for booking {booking_id}")

    async def _compensating_release(self, hotel_id: str, booking_id: str, room_type_id: str,
                                    check_in: date, check_out: date, error: BaseException) -> None:
        logger.warning(f"Compensating release of booking {booking_id} after: {error!r}")
        try:
            await self.availability_service.release(hotel_id, booking_id, room_type_id, check_in, check_out)
        except Exception:
            logger.exception(f"Compensating release of booking {booking_id} failed; rooms may still be held")
            raise

    # ==================== CREATE ====================
    async def create_booking(self, request: BookingRequest) -> dict:
        return await self._within_budget(self._create(request), f"Booking {request.booking_id}")

    async def _create(self, request: BookingRequest) -> dict:
        # 1. Validate
        self._validate_stay(request.check_in, request.check_out, request.rooms_count)
        if await self.booking_directory.find_by_id(request.booking_id):
            raise ValidationError(f"Booking {request.booking_id} already exists")
        if request.company_id is not None:
            await self._require_active_company(request.hotel_id, request.company_id)

        # 2. Restrictions
        await self.season_service.assert_bookable(
            request.hotel_id, request.room_type_id, request.check_in, request.check_out
        )

        # 3. Price
        rate = await self._price(
            request.hotel_id, request.room_type_id, request.check_in, request.check_out,
            request.guests, request.promo_code,
        )
        total_amount = rate["total_amount"] * request.rooms_count

        # 4. Reserve
        await self.availability_service.reserve(
            request.hotel_id, request.room_type_id, request.check_in, request.check_out,
            request.rooms_count, request.booking_id, request.source,
        )

        debit = None
        try:
            # 5. Debit
            if request.company_id is not None:
                debit = await self._post_debit(
                    request.booking_id, request.hotel_id, request.company_id, total_amount,
                    self._debit_status(rate, total_amount), request.actor,
                    f"Booking {request.booking_id} {request.check_in}..{request.check_out}",
                )

            booking = await self.booking_directory.save(BookingReference(
                booking_id=request.booking_id,
                hotel_id=request.hotel_id,
                company_id=request.company_id,
                room_type_id=request.room_type_id,
                check_in=request.check_in,
                check_out=request.check_out,
                rooms_count=request.rooms_count,
                rate_plan_id=rate["plan_id"],
                total_amount=total_amount,
                source=request.source,
                status=(
                    BookingStatus.PENDING
                    if debit is not None and debit.status == TransactionStatus.PENDING
                    else BookingStatus.CONFIRMED
                ),
            ))
        except (Exception, asyncio.CancelledError) as e:
            if debit is not None:
                await self._undo_credit(request.hotel_id, request.booking_id, debit, request.actor, e)
            await self._compensating_release(
                request.hotel_id, request.booking_id, request.room_type_id,
                request.check_in, request.check_out, e,
            )
            raise

        logger.info(
            f"Booking {request.booking_id} confirmed: {request.rooms_count} x {request.room_type_id} "
            f"{request.check_in}..{request.check_out}, total {total_amount}"
        )
        return {
            "booking_id": booking.booking_id,
            "status": booking.status.value,
            "plan_id": rate["plan_id"],
            "plan_name": rate["plan_name"],
            "nightly_rate": rate["nightly_rate"],
            "rooms_count": request.rooms_count,
            "total_amount": total_amount,
            "breakdown": rate["breakdown"],
            "credit_transaction_id": debit.transaction_id if debit else None,
            "credit_status": debit.status.value if debit else None,
        }

    # ==================== CANCEL ====================
    async def cancel_booking(self, hotel_id: str, booking_id: str, actor: str,
                             refund_amount: Optional[Decimal] = None,
                             reason: Optional[str] = None) -> dict:
        return await self._within_budget(
            self._cancel(hotel_id, booking_id, actor, refund_amount, reason),
            f"Cancellation of {booking_id}",
        )

    async def _cancel(self, hotel_id: str, booking_id: str, actor: str,
                      refund_amount: Optional[Decimal], reason: Optional[str]) -> dict:
        booking = await self.booking_directory.find_by_id(booking_id)
        if not booking or booking.hotel_id != hotel_id:
            raise NotFound(f"Booking {booking_id} not found", {"bookingId": booking_id})
        if not booking.is_open:
            raise StateTransitionError(f"Cannot cancel booking with status {booking.status.value}")

        outstanding, open_debits, last_debit = Decimal("0"), [], None
        if booking.company_id is not None:
            outstanding, open_debits, last_debit = await self._booking_credit_position(booking_id)
            if refund_amount is not None and not Decimal("0") <= Decimal(refund_amount) <= outstanding:
                raise ValidationError(f"Refund must be between 0 and the outstanding {outstanding}")
        refund = outstanding if refund_amount is None else Decimal(refund_amount)

        release = await self.availability_service.release(hotel_id, booking_id)

        cancelled_ids: List[UUID] = []
        for debit in open_debits:
            await self.ledger.cancel(debit.transaction_id, actor, reason or f"Booking {booking_id} cancelled")
            cancelled_ids.append(debit.transaction_id)

        credit = None
        if booking.company_id is not None and refund > 0:
            credit = await self._post_credit(
                booking_id, hotel_id, booking.company_id, refund, actor,
                reason or f"Refund for cancelled booking {booking_id}",
                link_to=last_debit.transaction_id if last_debit else None,
            )

        booking.status = BookingStatus.CANCELLED
        await self.booking_directory.save(booking)
        logger.info(f"Booking {booking_id} cancelled by {actor}; refund {refund if credit else 0}")
        return {
            "booking_id": booking_id,
            "released_rooms": release["released_rooms"],
            "refund_amount": refund if credit else Decimal("0"),
            "credit_transaction_id": credit.transaction_id if credit else None,
            "cancelled_transaction_ids": cancelled_ids,
        }

    # ==================== MODIFY ====================
    async def modify_booking(self, hotel_id: str, booking_id: str, changes: BookingModification,
                             actor: str) -> dict:
        return await self._within_budget(
            self._modify(hotel_id, booking_id, changes, actor),
            f"Modification of {booking_id}",
        )

    async def _modify(self, hotel_id: str, booking_id: str, changes: BookingModification,
                      actor: str) -> dict:
        booking = await self.booking_directory.find_by_id(booking_id)
        if not booking or booking.hotel_id != hotel_id:
            raise NotFound(f"Booking {booking_id} not found", {"bookingId": booking_id})
        if not booking.is_open:
            raise StateTransitionError(f"Cannot modify booking with status {booking.status.value}")

        check_in = changes.check_in or booking.check_in
        check_out = changes.check_out or booking.check_out
        room_type_id = changes.room_type_id or booking.room_type_id
        rooms_count = changes.rooms_count or booking.rooms_count
        self._validate_stay(check_in, check_out, rooms_count)
        if booking.company_id is not None:
            await self._require_active_company(hotel_id, booking.company_id)

        await self.season_service.assert_bookable(hotel_id, room_type_id, check_in, check_out)
        rate = await self._price(hotel_id, room_type_id, check_in, check_out, changes.guests, changes.promo_code)
        new_total = rate["total_amount"] * rooms_count

        original = booking.model_copy(deep=True)
        # Swap the room holds; put the original back if the new one cannot be taken
        await self.availability_service.release(hotel_id, booking_id)
        try:
            await self.availability_service.reserve(
                hotel_id, room_type_id, check_in, check_out, rooms_count, booking_id, booking.source
            )
        except (Exception, asyncio.CancelledError) as e:
            await self._restore_original(original, e)
            raise

        delta = Decimal("0")
        adjustment = None
        superseded: List[CreditTransaction] = []
        try:
            if booking.company_id is not None:
                outstanding, open_debits, last_debit = await self._booking_credit_position(booking_id)
                delta = new_total - outstanding - sum((d.amount for d in open_debits), Decimal("0"))
                # Debits awaiting approval are replaced by one charge for the new total
                charge = new_total - outstanding if open_debits else delta
                if charge > 0:
                    adjustment = await self._post_debit(
                        booking_id, hotel_id, booking.company_id, charge,
                        self._debit_status(rate, new_total), actor, f"Modification of booking {booking_id}",
                    )
                elif charge < 0:
                    adjustment = await self._post_credit(
                        booking_id, hotel_id, booking.company_id, -charge, actor,
                        f"Modification of booking {booking_id}",
                        link_to=last_debit.transaction_id if last_debit else None,
                    )
                for open_debit in open_debits:
                    await self.ledger.cancel(
                        open_debit.transaction_id, actor, f"Superseded by modification of booking {booking_id}"
                    )
                    superseded.append(open_debit)

                if adjustment is not None and adjustment.status == TransactionStatus.PENDING:
                    booking.status = BookingStatus.PENDING
                elif open_debits:
                    booking.status = BookingStatus.CONFIRMED
            else:
                delta = new_total - booking.total_amount

            booking.check_in = check_in
            booking.check_out = check_out
            booking.room_type_id = room_type_id
            booking.rooms_count = rooms_count
            booking.rate_plan_id = rate["plan_id"]
            booking.total_amount = new_total
            await self.booking_directory.save(booking)
        except (Exception, asyncio.CancelledError) as e:
            if adjustment is not None:
                await self._undo_credit(hotel_id, booking_id, adjustment, actor, e)
            for open_debit in superseded:
                await self._post_debit(
                    booking_id, hotel_id, open_debit.company_id, open_debit.amount,
                    TransactionStatus.PENDING, actor, open_debit.description or f"Booking {booking_id}",
                )
            await self._compensating_release(hotel_id, booking_id, room_type_id, check_in, check_out, e)
            await self._restore_original(original, e)
            raise

        logger.info(f"Booking {booking_id} modified by {actor}: new total {new_total}, delta {delta}")
        return {
            "booking_id": booking_id,
            "check_in": check_in,
            "check_out": check_out,
            "room_type_id": room_type_id,
            "rooms_count": rooms_count,
            "previous_total": original.total_amount,
            "total_amount": new_total,
            "delta": delta,
            "credit_transaction_id": adjustment.transaction_id if adjustment else None,
        }

    async def _restore_original(self, booking: BookingReference, error: BaseException) -> None:
        """Re-take the rooms the booking held before the modification"""
        logger.warning(f"Restoring original reservation of booking {booking.booking_id} after: {error!r}")
        try:
            await self.availability_service.reserve(
                booking.hotel_id, booking.room_type_id, booking.check_in, booking.check_out,
                booking.rooms_count, booking.booking_id, booking.source,
            )
        except Exception:
            logger.exception(f"Could not restore original reservation of booking {booking.booking_id}")
            raise
