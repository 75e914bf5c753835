"""Season & Special-Period Registry"""
import logging
from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple, Union
from uuid import UUID

from domain.entities import CalendarPeriod, Season, SpecialPeriod
from domain.exceptions import NotFound, SeasonalRestriction
from domain.repositories import SeasonRepository, SpecialPeriodRepository
from domain.temporal import lead_time_days, night_count
from domain.value_objects import RateAdjustment
from infrastructure.cache import TTLCache

logger = logging.getLogger(__name__)

Period = Union[Season, SpecialPeriod]


def _by_priority(periods: Sequence[Period]) -> List[Period]:
    """Priority descending, then most recent start first"""
    return sorted(periods, key=lambda p: (p.priority, p.start_date), reverse=True)


class SeasonService:
    """Service for Season and Special Period business use cases"""

    def __init__(self,
                 season_repo: SeasonRepository,
                 special_period_repo: SpecialPeriodRepository,
                 rate_cache: Optional[TTLCache] = None):
        self.season_repo = season_repo
        self.special_period_repo = special_period_repo
        self.rate_cache = rate_cache

    async def _invalidate(self, hotel_id: str) -> None:
        if self.rate_cache is not None:
            await self.rate_cache.invalidate_hotel(hotel_id)

    # ==================== REGISTRY ====================
    async def create_season(self, season: Season) -> Season:
        saved = await self.season_repo.save(season)
        logger.info(f"Season '{season.name}' ({season.start_date}..{season.end_date}) created for {season.hotel_id}")
        await self._invalidate(season.hotel_id)
        return saved

    async def create_special_period(self, period: SpecialPeriod) -> SpecialPeriod:
        saved = await self.special_period_repo.save(period)
        logger.info(
            f"Special period '{period.name}' ({period.start_date}..{period.end_date}, "
            f"{period.booking_restriction.value}) created for {period.hotel_id}"
        )
        await self._invalidate(period.hotel_id)
        return saved

    async def deactivate_season(self, season_id: UUID) -> Season:
        season = await self.season_repo.find_by_id(season_id)
        if not season:
            raise NotFound(f"Season {season_id} not found")
        season.is_active = False
        saved = await self.season_repo.save(season)
        await self._invalidate(season.hotel_id)
        return saved

    async def deactivate_special_period(self, period_id: UUID) -> SpecialPeriod:
        period = await self.special_period_repo.find_by_id(period_id)
        if not period:
            raise NotFound(f"Special period {period_id} not found")
        period.is_active = False
        saved = await self.special_period_repo.save(period)
        await self._invalidate(period.hotel_id)
        return saved

    async def list_seasons(self, hotel_id: str, active_only: bool = True) -> List[Season]:
        return _by_priority(await self.season_repo.find_by_hotel(hotel_id, active_only))

    async def list_special_periods(self, hotel_id: str, active_only: bool = True) -> List[SpecialPeriod]:
        return _by_priority(await self.special_period_repo.find_by_hotel(hotel_id, active_only))

    # ==================== LOOKUPS ====================
    @staticmethod
    def applicable_at(
        periods: Sequence[Period], on: date, room_type_id: str, rate_plan_id: Optional[UUID] = None
    ) -> List[Period]:
        """Active periods covering the date for this room type and plan, by priority"""
        return _by_priority([
            p for p in periods
            if p.is_active
            and p.covers(on)
            and p.applies_to_room_type(room_type_id)
            and p.applies_to_plan(rate_plan_id)
        ])

    async def seasons_at(
        self, hotel_id: str, on: date, room_type_id: str, rate_plan_id: Optional[UUID] = None
    ) -> List[Season]:
        seasons = await self.season_repo.find_by_hotel(hotel_id)
        return self.applicable_at(seasons, on, room_type_id, rate_plan_id)

    async def special_periods_at(
        self, hotel_id: str, on: date, room_type_id: str, rate_plan_id: Optional[UUID] = None
    ) -> List[SpecialPeriod]:
        periods = await self.special_period_repo.find_by_hotel(hotel_id)
        return self.applicable_at(periods, on, room_type_id, rate_plan_id)

    async def load(self, hotel_id: str) -> Tuple[List[Season], List[SpecialPeriod]]:
        """Active seasons and special periods of a hotel, for pure pricing"""
        return (
            await self.season_repo.find_by_hotel(hotel_id),
            await self.special_period_repo.find_by_hotel(hotel_id),
        )

    @classmethod
    def calendar_adjustment(
        cls,
        seasons: Sequence[Season],
        special_periods: Sequence[SpecialPeriod],
        on: date,
        room_type_id: str,
        rate_plan_id: Optional[UUID] = None,
    ) -> Optional[Tuple[Period, RateAdjustment]]:
        """The single calendar adjustment that prices this night.

        Each dimension picks its highest priority entity with an adjustment for
        the room type. If both dimensions have one, the higher priority wins;
        equal priorities go to the shorter range, then to the later start.
        """
        candidates = []
        for periods in (seasons, special_periods):
            for period in cls.applicable_at(periods, on, room_type_id, rate_plan_id):
                adjustment = period.adjustment_for(room_type_id)
                if adjustment is not None:
                    candidates.append((period, adjustment))
                    break
        if not candidates:
            return None
        return min(
            candidates,
            key=lambda c: (-c[0].priority, c[0].duration_days, -c[0].start_date.toordinal()),
        )

    # ==================== RESTRICTIONS ====================
    @staticmethod
    def _period_violations(
        period: CalendarPeriod, check_in: date, check_out: date, lead_days: float
    ) -> List[str]:
        messages = []
        nights = night_count(check_in, check_out)
        restrictions = period.restrictions

        if isinstance(period, SpecialPeriod):
            message = period.restriction_violation(check_in, check_out)
            if message:
                messages.append(message)

        if check_out in restrictions.closed_to_departure:
            messages.append(f"Departure on {check_out.isoformat()} is closed by '{period.name}'")
        # Periods the stay only departs into carry no stay rules
        if not period.overlaps(check_in, check_out):
            return messages

        if check_in in restrictions.closed_to_arrival:
            messages.append(f"Arrival on {check_in.isoformat()} is closed by '{period.name}'")
        if restrictions.min_length_of_stay and nights < restrictions.min_length_of_stay:
            messages.append(f"'{period.name}' requires at least {restrictions.min_length_of_stay} nights")
        if restrictions.max_length_of_stay and nights > restrictions.max_length_of_stay:
            messages.append(f"'{period.name}' allows at most {restrictions.max_length_of_stay} nights")

        if period.covers(check_in):
            if not restrictions.arrival_days.allows(check_in):
                messages.append(f"'{period.name}' does not allow arrival on {check_in.strftime('%A')}")
            if not period.booking_window.allows(lead_days):
                messages.append(f"Booking is outside the booking window of '{period.name}'")
        return messages

    async def check_booking_restrictions(
        self,
        hotel_id: str,
        room_type_id: str,
        check_in: date,
        check_out: date,
        rate_plan_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        """Every season or special period rule the stay would break"""
        seasons, special_periods = await self.load(hotel_id)
        lead_days = lead_time_days(check_in, now)

        violations = []
        for kind, periods in (("season", seasons), ("special_period", special_periods)):
            for period in _by_priority(periods):
                if not (period.is_active and period.applies_to_plan(rate_plan_id)):
                    continue
                if not period.applies_to_room_type(room_type_id):
                    continue
                if not (period.overlaps(check_in, check_out) or period.covers(check_out)):
                    continue
                for message in self._period_violations(period, check_in, check_out, lead_days):
                    violations.append({
                        "kind": kind,
                        "period_id": str(period.period_id),
                        "name": period.name,
                        "message": message,
                    })
        return {"allowed": not violations, "violations": violations}

    async def assert_bookable(
        self,
        hotel_id: str,
        room_type_id: str,
        check_in: date,
        check_out: date,
        rate_plan_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> None:
        result = await self.check_booking_restrictions(
            hotel_id, room_type_id, check_in, check_out, rate_plan_id, now
        )
        if not result["allowed"]:
            first = result["violations"][0]
            raise SeasonalRestriction(first["message"], {"violations": result["violations"]})
