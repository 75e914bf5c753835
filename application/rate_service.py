"""Rate Composition Engine"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from domain.entities import (
    DynamicPricingRule, RateOverride, RatePlan, RoomType, Season, SpecialPeriod, round_rate,
)
from domain.enums import AdjustmentType
from domain.exceptions import NoRatePlanApplicable, NotFound, ValidationError
from domain.repositories import (
    DynamicPricingRuleRepository, RateOverrideRepository, RatePlanRepository, RoomTypeRepository,
)
from domain.temporal import add_days, lead_time_hours, nights_between
from domain.value_objects import GuestCount, NightlyRate
from application.availability_service import AvailabilityService
from application.season_service import SeasonService
from infrastructure.cache import TTLCache
from infrastructure.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
STANDARD_RATE_NAME = "Standard Rate"
FORECAST_OCCUPANCY_FACTOR = Decimal("0.8")


class PricingContext:
    """Everything a stay needs to be priced without further I/O"""

    def __init__(self,
                 room_type: RoomType,
                 check_in: date,
                 check_out: date,
                 lead_hours: float,
                 seasons: Sequence[Season],
                 special_periods: Sequence[SpecialPeriod],
                 overrides: Sequence[RateOverride],
                 rules: Sequence[DynamicPricingRule],
                 occupancy: Dict[date, float],
                 promo_code: Optional[str] = None):
        self.room_type = room_type
        self.check_in = check_in
        self.check_out = check_out
        self.nights = nights_between(check_in, check_out)
        self.lead_hours = lead_hours
        self.seasons = seasons
        self.special_periods = special_periods
        self.overrides = overrides
        self.rules = [r for r in rules if r.applies_to(room_type.room_type_id)]
        self.occupancy = occupancy
        self.promo_code = promo_code


class RateService:
    """Service for Rate Plan and pricing business use cases"""

    def __init__(self,
                 rate_plan_repo: RatePlanRepository,
                 override_repo: RateOverrideRepository,
                 rule_repo: DynamicPricingRuleRepository,
                 room_type_repo: RoomTypeRepository,
                 season_service: SeasonService,
                 availability_service: AvailabilityService,
                 rate_cache: Optional[TTLCache] = None,
                 settings: Settings = default_settings):
        self.rate_plan_repo = rate_plan_repo
        self.override_repo = override_repo
        self.rule_repo = rule_repo
        self.room_type_repo = room_type_repo
        self.season_service = season_service
        self.availability_service = availability_service
        self.rate_cache = rate_cache
        self.settings = settings

    async def _invalidate(self, hotel_id: str) -> None:
        if self.rate_cache is not None:
            await self.rate_cache.invalidate_hotel(hotel_id)

    # ==================== CONFIGURATION ====================
    async def upsert_rate_plan(self, plan: RatePlan) -> RatePlan:
        saved = await self.rate_plan_repo.save(plan)
        logger.info(f"Rate plan '{plan.name}' ({plan.plan_type.value}) saved for {plan.hotel_id}")
        await self._invalidate(plan.hotel_id)
        return saved

    async def get_rate_plan(self, plan_id) -> Optional[RatePlan]:
        return await self.rate_plan_repo.find_by_id(plan_id)

    async def list_rate_plans(self, hotel_id: str, active_only: bool = True) -> List[RatePlan]:
        return await self.rate_plan_repo.find_by_hotel(hotel_id, active_only)

    async def override_rate(self, override: RateOverride) -> RateOverride:
        """Upsert keyed by date, room type and plan"""
        if override.rate_plan_id is not None:
            plan = await self.rate_plan_repo.find_by_id(override.rate_plan_id)
            if not plan or plan.hotel_id != override.hotel_id:
                raise NotFound(f"Rate plan {override.rate_plan_id} not found")
        saved = await self.override_repo.upsert(override)
        logger.info(
            f"Rate override {override.rate} for {override.room_type_id} on {override.date} "
            f"(plan {override.rate_plan_id}) approved by {override.approved_by}"
        )
        await self._invalidate(override.hotel_id)
        return saved

    async def save_dynamic_rule(self, rule: DynamicPricingRule) -> DynamicPricingRule:
        saved = await self.rule_repo.save(rule)
        logger.info(f"Dynamic pricing rule '{rule.name}' saved for {rule.hotel_id}")
        await self._invalidate(rule.hotel_id)
        return saved

    # ==================== PRICING ====================
    async def _context(
        self,
        hotel_id: str,
        room_type: RoomType,
        check_in: date,
        check_out: date,
        promo_code: Optional[str],
        now: Optional[datetime],
    ) -> PricingContext:
        seasons, special_periods = await self.season_service.load(hotel_id)
        return PricingContext(
            room_type=room_type,
            check_in=check_in,
            check_out=check_out,
            lead_hours=lead_time_hours(check_in, now),
            seasons=seasons,
            special_periods=special_periods,
            overrides=await self.override_repo.find_range(hotel_id, room_type.room_type_id, check_in, check_out),
            rules=await self.rule_repo.find_active(hotel_id),
            occupancy=await self.availability_service.daily_occupancy(hotel_id, check_in, check_out),
            promo_code=promo_code,
        )

    @staticmethod
    def _dynamic_percentage(plan: RatePlan, context: PricingContext, on: date) -> Decimal:
        """Sum of matching occupancy tiers, clamped to the daily change limit"""
        if not context.rules:
            return Decimal("0")
        occupancy = context.occupancy.get(on, 0.0)
        total = sum((rule.adjustment_for(occupancy) for rule in context.rules), Decimal("0"))

        limit = plan.constraints.max_daily_change
        if limit is None:
            limit = context.rules[0].max_daily_change
        if limit is not None:
            total = max(-limit, min(limit, total))
        return total

    @staticmethod
    def _override_for(plan_id, context: PricingContext, on: date) -> Optional[RateOverride]:
        """A plan-specific override beats one that covers every plan"""
        matches = [
            o for o in context.overrides
            if o.date == on and o.matches(context.room_type.room_type_id, plan_id)
        ]
        matches.sort(key=lambda o: o.rate_plan_id is None)
        return matches[0] if matches else None

    def price_plan(self, plan: RatePlan, context: PricingContext) -> dict:
        """Price every night of the stay under one plan"""
        room_type_id = context.room_type.room_type_id
        base = plan.base_rate_for(room_type_id)
        los_pct = plan.length_of_stay_discount(len(context.nights))
        window_pct = plan.booking_window_discount(context.lead_hours)

        breakdown = []
        for night in context.nights:
            line = NightlyRate(date=night, base_rate=base, rate=base)
            rate = base
            calendar_pct = Decimal("0")

            resolved = SeasonService.calendar_adjustment(
                context.seasons, context.special_periods, night, room_type_id, plan.plan_id
            )
            if resolved:
                period, adjustment = resolved
                if adjustment.adjustment_type == AdjustmentType.ABSOLUTE:
                    rate = adjustment.value
                elif adjustment.adjustment_type == AdjustmentType.FIXED:
                    rate = rate + adjustment.value
                else:
                    calendar_pct = adjustment.value
                if isinstance(period, SpecialPeriod):
                    line.special = adjustment.value
                else:
                    line.seasonal = adjustment.value
                line.calendar_source = period.name

            dynamic_pct = self._dynamic_percentage(plan, context, night)
            line.dynamic = dynamic_pct

            rate = (
                rate
                * (1 + calendar_pct / HUNDRED)
                * (1 + dynamic_pct / HUNDRED)
                * (1 - los_pct / HUNDRED)
                * (1 - window_pct / HUNDRED)
            )

            override = self._override_for(plan.plan_id, context, night)
            if override:
                rate = override.rate
                line.overridden = True

            line.rate = max(round_rate(rate), Decimal("0"))
            breakdown.append(line)

        total = sum((line.rate for line in breakdown), Decimal("0"))
        return {
            "plan_id": plan.plan_id,
            "plan_name": plan.name,
            "plan_type": plan.plan_type.value,
            "priority": plan.priority,
            "nights": len(breakdown),
            "nightly_rate": round_rate(total / len(breakdown)),
            "total_amount": total,
            "breakdown": breakdown,
            "adjustments": {
                "calendar": [
                    {"date": line.date, "source": line.calendar_source,
                     "seasonal": line.seasonal, "special": line.special}
                    for line in breakdown if line.calendar_source
                ],
                "dynamic_percentages": [line.dynamic for line in breakdown],
                "length_of_stay_percentage": los_pct,
                "booking_window_percentage": window_pct,
                "overridden_nights": [line.date for line in breakdown if line.overridden],
            },
            "meal_plan": plan.meal_plan.value,
            "cancellation_policy": plan.cancellation_policy,
            "requires_approval_above": plan.requires_approval_above,
        }

    def _standard_rate(self, context: PricingContext) -> dict:
        """Room type base price for every night"""
        base = round_rate(context.room_type.base_price)
        breakdown = [NightlyRate(date=d, base_rate=base, rate=base) for d in context.nights]
        return {
            "plan_id": None,
            "plan_name": STANDARD_RATE_NAME,
            "plan_type": None,
            "priority": 0,
            "nights": len(breakdown),
            "nightly_rate": base,
            "total_amount": base * len(breakdown),
            "breakdown": breakdown,
            "adjustments": {},
            "meal_plan": None,
            "cancellation_policy": None,
            "requires_approval_above": None,
        }

    async def _priced_plans(
        self,
        hotel_id: str,
        room_type_id: str,
        check_in: date,
        check_out: date,
        guests: Optional[GuestCount],
        promo_code: Optional[str],
        now: Optional[datetime],
    ):
        if check_out <= check_in:
            raise ValidationError("Check-out must be after check-in")

        room_type = await self.room_type_repo.find_by_id(room_type_id)
        if not room_type or room_type.hotel_id != hotel_id:
            return None, []
        if guests is not None and guests.total > room_type.max_occupancy:
            return None, []

        context = await self._context(hotel_id, room_type, check_in, check_out, promo_code, now)
        priced = []
        for plan in await self.rate_plan_repo.find_by_hotel(hotel_id):
            reason = plan.eligibility_failure(
                room_type_id, check_in, check_out, context.lead_hours, promo_code
            )
            if reason:
                logger.debug(f"Plan '{plan.name}' skipped for {room_type_id}: {reason}")
                continue
            priced.append(self.price_plan(plan, context))
        return context, priced

    async def best_rate(
        self,
        hotel_id: str,
        room_type_id: str,
        check_in: date,
        check_out: date,
        guests: Optional[GuestCount] = None,
        promo_code: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[dict]:
        """Cheapest qualifying plan, highest priority on ties; None for unknown room types"""
        cache_key = (hotel_id, "best", room_type_id, check_in, check_out,
                     guests.total if guests else None, promo_code)
        if now is None and self.rate_cache is not None:
            cached = await self.rate_cache.get(cache_key)
            if cached is not None:
                return cached

        context, priced = await self._priced_plans(
            hotel_id, room_type_id, check_in, check_out, guests, promo_code, now
        )
        if context is None:
            return None

        if priced:
            best = min(priced, key=lambda p: (p["total_amount"], -p["priority"]))
        elif self.settings.FALLBACK_TO_BASE_RATE:
            logger.info(f"No rate plan qualifies for {room_type_id} {check_in}..{check_out}; using standard rate")
            best = self._standard_rate(context)
        else:
            raise NoRatePlanApplicable(
                f"No rate plan applies to {room_type_id} for {check_in}..{check_out}",
                {"roomTypeId": room_type_id, "checkIn": check_in.isoformat(), "checkOut": check_out.isoformat()},
            )

        if now is None and self.rate_cache is not None:
            await self.rate_cache.set(cache_key, best)
        return best

    async def all_rates(
        self,
        hotel_id: str,
        room_type_id: str,
        check_in: date,
        check_out: date,
        guests: Optional[GuestCount] = None,
        promo_code: Optional[str] = None,
        include_details: bool = False,
        now: Optional[datetime] = None,
    ) -> List[dict]:
        """Every qualifying plan with its totals, cheapest first"""
        cache_key = (hotel_id, "all", room_type_id, check_in, check_out,
                     guests.total if guests else None, promo_code, include_details)
        if now is None and self.rate_cache is not None:
            cached = await self.rate_cache.get(cache_key)
            if cached is not None:
                return cached

        context, priced = await self._priced_plans(
            hotel_id, room_type_id, check_in, check_out, guests, promo_code, now
        )
        if context is None:
            return []

        priced.sort(key=lambda p: (p["total_amount"], -p["priority"]))
        if include_details:
            plans = {p.plan_id: p for p in await self.rate_plan_repo.find_by_hotel(hotel_id)}
            for entry in priced:
                plan = plans[entry["plan_id"]]
                entry["description"] = plan.description
                entry["min_nights"] = plan.stay_restrictions.min_nights
                entry["max_nights"] = plan.stay_restrictions.max_nights

        if now is None and self.rate_cache is not None:
            await self.rate_cache.set(cache_key, priced)
        return priced

    async def revenue_forecast(
        self, hotel_id: str, room_type_id: str, start: date, end: date
    ) -> dict:
        """Heuristic projection: best nightly rate x sellable rooms x 0.8"""
        nights = nights_between(start, end)
        if not nights:
            raise ValidationError("End date must be after start date")

        rows = {
            r.date: r for r in await self.availability_service.repository.find_range(
                hotel_id, room_type_id, start, end
            )
        }
        days = []
        for night in nights:
            row = rows.get(night)
            best = await self.best_rate(hotel_id, room_type_id, night, add_days(night, 1))
            rate = best["nightly_rate"] if best else Decimal("0")
            rooms = (row.sold_rooms + max(row.available_rooms, 0)) if row else 0
            days.append({
                "date": night,
                "rate": rate,
                "rooms": rooms,
                "projected_revenue": (rate * rooms * FORECAST_OCCUPANCY_FACTOR).quantize(Decimal("0.01")),
            })
        return {
            "room_type_id": room_type_id,
            "days": days,
            "total_projected_revenue": sum((d["projected_revenue"] for d in days), Decimal("0")),
        }
