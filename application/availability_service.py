"""Availability Ledger - per (hotel, room type, date) inventory"""
import logging
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from domain.entities import AvailabilityRow, RoomType
from domain.enums import LegacyRoomCategory, ReservationSource
from domain.exceptions import NoInventoryDefined, NotFound, ValidationError
from domain.repositories import AvailabilityRepository, RoomTypeRepository
from domain.temporal import month_range, nights_between, today
from application.retry import retry_on_conflict
from infrastructure.cache import TTLCache
from infrastructure.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

# Upgrade suggestions offered when a legacy category is overbooked
UPGRADE_PATH: Dict[LegacyRoomCategory, List[LegacyRoomCategory]] = {
    LegacyRoomCategory.SINGLE: [LegacyRoomCategory.DOUBLE, LegacyRoomCategory.SUITE, LegacyRoomCategory.DELUXE],
    LegacyRoomCategory.DOUBLE: [LegacyRoomCategory.SUITE, LegacyRoomCategory.DELUXE],
    LegacyRoomCategory.SUITE: [LegacyRoomCategory.DELUXE],
}

SUMMARY_DEFAULT_DAYS = 30


def _pct(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


class AvailabilityService:
    """Service for Availability business use cases"""

    def __init__(self,
                 repository: AvailabilityRepository,
                 room_type_repo: RoomTypeRepository,
                 rate_cache: Optional[TTLCache] = None,
                 settings: Settings = default_settings):
        self.repository = repository
        self.room_type_repo = room_type_repo
        self.rate_cache = rate_cache
        self.settings = settings

    async def _retry(self, operation, description: str):
        return await retry_on_conflict(
            operation,
            attempts=self.settings.MAX_CONCURRENCY_RETRIES,
            backoff_ms=self.settings.RETRY_BACKOFF_MS,
            description=description,
        )

    async def _invalidate(self, hotel_id: str) -> None:
        if self.rate_cache is not None:
            await self.rate_cache.invalidate_hotel(hotel_id)

    @staticmethod
    def _require_rows(rows: List[AvailabilityRow], dates: List[date],
                      hotel_id: str, room_type_id: str) -> None:
        present = {r.date for r in rows}
        missing = [d for d in dates if d not in present]
        if missing:
            raise NoInventoryDefined(
                f"No inventory defined for {len(missing)} of {len(dates)} nights",
                {"hotelId": hotel_id, "roomTypeId": room_type_id,
                 "missingDates": [d.isoformat() for d in missing]},
            )

    # ==================== ROOM TYPES ====================
    async def register_room_type(self, room_type: RoomType) -> RoomType:
        saved = await self.room_type_repo.save(room_type)
        await self._invalidate(room_type.hotel_id)
        return saved

    async def get_room_type(self, room_type_id: str) -> Optional[RoomType]:
        return await self.room_type_repo.find_by_id(room_type_id)

    async def room_type_options(self, hotel_id: str) -> List[RoomType]:
        """Active room types of the hotel"""
        room_types = await self.room_type_repo.find_by_hotel(hotel_id)
        return [rt for rt in room_types if rt.is_active]

    # ==================== INVENTORY ====================
    async def open_inventory(
        self,
        hotel_id: str,
        room_type_id: str,
        start: date,
        end: date,
        total_rooms: int,
        base_rate: Optional[Decimal] = None,
        selling_rate: Optional[Decimal] = None,
    ) -> List[AvailabilityRow]:
        """Create rows for [start, end) or resize the ones that exist"""
        dates = nights_between(start, end)
        if not dates:
            raise ValidationError("End date must be after start date")
        if total_rooms < 0:
            raise ValidationError("Total rooms cannot be negative")

        room_type = await self.room_type_repo.find_by_id(room_type_id)
        if not room_type or room_type.hotel_id != hotel_id:
            raise NotFound(f"Room type {room_type_id} not found", {"roomTypeId": room_type_id})
        rate = base_rate if base_rate is not None else room_type.base_price

        async def attempt() -> List[AvailabilityRow]:
            existing = await self.repository.find_range(hotel_id, room_type_id, start, end)
            for row in existing:
                row.resize(total_rooms, base_rate, selling_rate)
                if row.is_overbooked:
                    logger.warning(
                        f"Inventory edit left {hotel_id}/{room_type_id} on {row.date} "
                        f"overbooked by {-row.available_rooms}"
                    )
            updated = await self.repository.update_many(existing) if existing else []

            known = {r.date for r in existing}
            new_rows = [
                AvailabilityRow(
                    hotel_id=hotel_id,
                    room_type_id=room_type_id,
                    date=d,
                    total_rooms=total_rooms,
                    base_rate=rate,
                    selling_rate=selling_rate,
                )
                for d in dates if d not in known
            ]
            inserted = await self.repository.insert_many(new_rows) if new_rows else []
            return sorted(updated + inserted, key=lambda r: r.date)

        rows = await self._retry(attempt, f"open inventory {hotel_id}/{room_type_id}")
        logger.info(
            f"Opened inventory {hotel_id}/{room_type_id} {start}..{end}: "
            f"{len(rows)} rows at {total_rooms} rooms"
        )
        await self._invalidate(hotel_id)
        return rows

    async def check(
        self,
        hotel_id: str,
        room_type_id: str,
        check_in: date,
        check_out: date,
        quantity: int = 1,
    ) -> dict:
        """Read-only availability check for a stay"""
        dates = nights_between(check_in, check_out)
        if not dates:
            raise ValidationError("Check-out must be after check-in")
        if quantity < 1:
            raise ValidationError("Room quantity must be at least 1")

        rows = await self.repository.find_range(hotel_id, room_type_id, check_in, check_out)
        by_date = {r.date: r for r in rows}
        if not rows or any(d not in by_date for d in dates):
            return {
                "available": False,
                "rooms_available": 0,
                "rooms_requested": quantity,
                "nights": len(dates),
                "average_rate": None,
                "total_amount": None,
                "daily_breakdown": [],
                "reason": "No availability data found for requested dates",
            }

        breakdown = [
            {
                "date": r.date,
                "total_rooms": r.total_rooms,
                "available_rooms": r.available_rooms,
                "sold_rooms": r.sold_rooms,
                "blocked_rooms": r.blocked_rooms,
                "rate": r.effective_rate,
                "sufficient": r.available_rooms >= quantity,
            }
            for r in rows
        ]
        min_available = min(day["available_rooms"] for day in breakdown)
        total_rate = sum((day["rate"] for day in breakdown), Decimal("0"))
        average_rate = total_rate / len(breakdown)
        available = all(day["sufficient"] for day in breakdown)

        return {
            "available": available,
            "rooms_available": max(min_available, 0),
            "rooms_requested": quantity,
            "nights": len(breakdown),
            "average_rate": average_rate.quantize(Decimal("0.01")),
            "total_amount": total_rate * quantity,
            "daily_breakdown": breakdown,
            "reason": None if available else f"Only {max(min_available, 0)} rooms available, {quantity} requested",
        }

    async def reserve(
        self,
        hotel_id: str,
        room_type_id: str,
        check_in: date,
        check_out: date,
        quantity: int,
        booking_id: str,
        source: ReservationSource = ReservationSource.DIRECT,
    ) -> List[AvailabilityRow]:
        """Hold rooms on every night of the stay, or on none of them"""
        dates = nights_between(check_in, check_out)
        if not dates:
            raise ValidationError("Check-out must be after check-in")
        if quantity < 1:
            raise ValidationError("Room quantity must be at least 1")

        async def attempt() -> List[AvailabilityRow]:
            rows = await self.repository.find_range(hotel_id, room_type_id, check_in, check_out)
            self._require_rows(rows, dates, hotel_id, room_type_id)
            for row in rows:
                row.reserve(booking_id, quantity, source)
            return await self.repository.update_many(rows)

        rows = await self._retry(attempt, f"reserve {booking_id}")
        logger.info(
            f"Reserved {quantity} x {room_type_id} for booking {booking_id} "
            f"({check_in}..{check_out}, hotel {hotel_id})"
        )
        await self._invalidate(hotel_id)
        return rows

    async def release(
        self,
        hotel_id: str,
        booking_id: str,
        room_type_id: Optional[str] = None,
        check_in: Optional[date] = None,
        check_out: Optional[date] = None,
    ) -> dict:
        """Drop the booking's holds; releasing an unknown booking is a no-op"""

        async def attempt() -> List[tuple]:
            rows = await self.repository.find_by_booking(hotel_id, booking_id)
            rows = [
                r for r in rows
                if (room_type_id is None or r.room_type_id == room_type_id)
                and (check_in is None or r.date >= check_in)
                and (check_out is None or r.date < check_out)
            ]
            released = [(r.date, r.release(booking_id)) for r in rows]
            if rows:
                await self.repository.update_many(rows)
            return released

        released = await self._retry(attempt, f"release {booking_id}")
        result = {
            "booking_id": booking_id,
            "released_rooms": max((count for _, count in released), default=0),
            "room_nights": sum(count for _, count in released),
            "nights": len(released),
        }
        if released:
            logger.info(
                f"Released booking {booking_id}: {result['room_nights']} room-nights "
                f"over {result['nights']} nights (hotel {hotel_id})"
            )
            await self._invalidate(hotel_id)
        return result

    async def block(
        self,
        hotel_id: str,
        room_type_id: str,
        room_ids: Sequence[str],
        start: date,
        end: date,
        reason: str = "maintenance",
        actor: Optional[str] = None,
    ) -> dict:
        """Take specific rooms out of inventory for the nights [start, end)"""
        dates = nights_between(start, end)
        if not dates:
            raise ValidationError("End date must be after start date")
        if not room_ids:
            raise ValidationError("At least one room must be given")

        async def attempt() -> int:
            rows = await self.repository.find_range(hotel_id, room_type_id, start, end)
            self._require_rows(rows, dates, hotel_id, room_type_id)
            newly_blocked = sum(
                1 for row in rows for room_id in room_ids
                if row.block_room(room_id, reason, actor)
            )
            await self.repository.update_many(rows)
            return newly_blocked

        blocked = await self._retry(attempt, f"block rooms {list(room_ids)}")
        logger.info(
            f"Blocked rooms {list(room_ids)} of {room_type_id} {start}..{end} "
            f"({reason}) by {actor}: {blocked} room-nights"
        )
        await self._invalidate(hotel_id)
        return {
            "room_type_id": room_type_id,
            "room_ids": list(room_ids),
            "start": start,
            "end": end,
            "reason": reason,
            "room_nights": blocked,
        }

    async def unblock(
        self,
        hotel_id: str,
        room_type_id: str,
        room_ids: Sequence[str],
        start: date,
        end: date,
        actor: Optional[str] = None,
    ) -> dict:
        dates = nights_between(start, end)
        if not dates:
            raise ValidationError("End date must be after start date")

        async def attempt() -> int:
            rows = await self.repository.find_range(hotel_id, room_type_id, start, end)
            released = sum(1 for row in rows for room_id in room_ids if row.unblock_room(room_id))
            if rows:
                await self.repository.update_many(rows)
            return released

        released = await self._retry(attempt, f"unblock rooms {list(room_ids)}")
        logger.info(
            f"Unblocked rooms {list(room_ids)} of {room_type_id} {start}..{end} "
            f"by {actor}: {released} room-nights"
        )
        await self._invalidate(hotel_id)
        return {
            "room_type_id": room_type_id,
            "room_ids": list(room_ids),
            "start": start,
            "end": end,
            "room_nights": released,
        }

    # ==================== REPORTING ====================
    async def occupancy(
        self, hotel_id: str, start: date, end: date, room_type_id: Optional[str] = None
    ) -> dict:
        """Sold room-nights over total room-nights for [start, end)"""
        rows = await self.repository.find_hotel_range(hotel_id, start, end, room_type_id)
        total = sum(r.total_rooms for r in rows)
        sold = sum(r.sold_rooms for r in rows)
        blocked = sum(r.blocked_rooms for r in rows)
        return {
            "occupancy_rate": _pct(sold, total),
            "total_room_nights": total,
            "sold_room_nights": sold,
            "blocked_room_nights": blocked,
            "available_room_nights": sum(max(r.available_rooms, 0) for r in rows),
        }

    async def daily_occupancy(self, hotel_id: str, start: date, end: date) -> Dict[date, float]:
        """Hotel-wide occupancy percentage of every night in [start, end)"""
        rows = await self.repository.find_hotel_range(hotel_id, start, end)
        totals: Dict[date, List[int]] = defaultdict(lambda: [0, 0])
        for row in rows:
            totals[row.date][0] += row.sold_rooms
            totals[row.date][1] += row.total_rooms
        return {d: _pct(totals[d][0], totals[d][1]) for d in nights_between(start, end)}

    async def summary(
        self, hotel_id: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[dict]:
        """Per room type totals, next 30 days by default"""
        start = start or today()
        end = end or start + timedelta(days=SUMMARY_DEFAULT_DAYS)
        rows = await self.repository.find_hotel_range(hotel_id, start, end)

        grouped: Dict[str, List[AvailabilityRow]] = defaultdict(list)
        for row in rows:
            grouped[row.room_type_id].append(row)

        summary = []
        for room_type_id, type_rows in sorted(grouped.items()):
            room_type = await self.room_type_repo.find_by_id(room_type_id)
            total = sum(r.total_rooms for r in type_rows)
            sold = sum(r.sold_rooms for r in type_rows)
            rates = [r.effective_rate for r in type_rows]
            summary.append({
                "room_type_id": room_type_id,
                "room_type_name": room_type.name if room_type else None,
                "total_days": len(type_rows),
                "total_rooms_available": sum(r.available_rooms for r in type_rows),
                "total_rooms_sold": sold,
                "total_rooms_blocked": sum(r.blocked_rooms for r in type_rows),
                "average_rate": (sum(rates, Decimal("0")) / len(rates)).quantize(Decimal("0.01")),
                "occupancy_rate": _pct(sold, total),
            })
        return summary

    async def calendar(
        self, hotel_id: str, year: int, month: int, room_type_id: Optional[str] = None
    ) -> List[dict]:
        """Day-by-day availability for one month"""
        if not 1 <= month <= 12:
            raise ValidationError("Month must be between 1 and 12")
        first, next_month = month_range(year, month)
        rows = await self.repository.find_hotel_range(hotel_id, first, next_month, room_type_id)

        by_date: Dict[date, List[AvailabilityRow]] = defaultdict(list)
        for row in rows:
            by_date[row.date].append(row)

        days = []
        for d in nights_between(first, next_month):
            day_rows = by_date.get(d, [])
            days.append({
                "date": d,
                "total_rooms": sum(r.total_rooms for r in day_rows),
                "available_rooms": sum(r.available_rooms for r in day_rows),
                "sold_rooms": sum(r.sold_rooms for r in day_rows),
                "blocked_rooms": sum(r.blocked_rooms for r in day_rows),
                "room_types": [
                    {
                        "room_type_id": r.room_type_id,
                        "available_rooms": r.available_rooms,
                        "rate": r.effective_rate,
                    }
                    for r in day_rows
                ],
            })
        return days

    async def detect_overbooking(
        self,
        hotel_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        room_type_id: Optional[str] = None,
    ) -> List[dict]:
        """Report rows driven negative by manual edits; never resolves them"""
        start = start or today()
        end = end or start + timedelta(days=1)
        rows = await self.repository.find_hotel_range(hotel_id, start, end, room_type_id)
        overbooked = [r for r in rows if r.is_overbooked]
        if not overbooked:
            return []

        room_types = {rt.room_type_id: rt for rt in await self.room_type_repo.find_by_hotel(hotel_id)}
        findings = []
        for row in overbooked:
            logger.warning(
                f"Overbooking detected: {hotel_id}/{row.room_type_id} on {row.date} "
                f"by {-row.available_rooms} rooms"
            )
            findings.append({
                "date": row.date,
                "room_type_id": row.room_type_id,
                "overbooked_by": -row.available_rooms,
                "total_rooms": row.total_rooms,
                "sold_rooms": row.sold_rooms,
                "blocked_rooms": row.blocked_rooms,
                "alternatives": await self._upgrade_alternatives(hotel_id, row, room_types),
            })
        return findings

    async def _upgrade_alternatives(
        self, hotel_id: str, row: AvailabilityRow, room_types: Dict[str, RoomType]
    ) -> List[dict]:
        room_type = room_types.get(row.room_type_id)
        if room_type is None:
            return []

        alternatives = []
        for category in UPGRADE_PATH.get(room_type.legacy_category, []):
            for candidate in room_types.values():
                if candidate.legacy_category != category or not candidate.is_active:
                    continue
                candidate_row = await self.repository.find(hotel_id, candidate.room_type_id, row.date)
                if candidate_row and candidate_row.available_rooms > 0:
                    alternatives.append({
                        "room_type_id": candidate.room_type_id,
                        "name": candidate.name,
                        "legacy_category": category,
                        "available_rooms": candidate_row.available_rooms,
                    })
        return alternatives
