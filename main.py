import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Room types & availability
    CreateRoomTypeRequest, RoomTypeResponse, OpenInventoryRequest, AvailabilityRowResponse,
    ReserveRoomsRequest, ReleaseRoomsRequest, BlockRoomsRequest, UnblockRoomsRequest,
    # Seasons
    CreateSeasonRequest, CreateSpecialPeriodRequest, CalendarPeriodResponse, RateAdjustmentResponse,
    # Rates
    RatePlanRequest, RatePlanResponse, RateOverrideRequest, RateOverrideResponse,
    DynamicRuleRequest, DynamicRuleResponse, RateQueryRequest, RateQuoteResponse, NightlyRateResponse,
    # Bookings
    CreateBookingRequest, BookingResponse, CancelBookingRequest, BookingCancellationResponse,
    ModifyBookingRequest, BookingModificationResponse,
    # Corporate
    CreateCompanyRequest, UpdateCompanyRequest, CompanyResponse, UpdateCreditRequest,
    CreditTransactionRequest, CreditTransactionResponse, ApproveTransactionRequest,
    RejectTransactionRequest, CancelTransactionRequest, BulkApproveRequest, ValidateCreditRequest,
    ProcessBookingCreditRequest, LimitIncreaseRequest, ProcessLimitRequest, LimitRequestResponse,
    CreditAdjustmentRequest, BatchVerifyRequest,
    # Auth
    Token, UserResponse
)

from api.dependencies import (
    get_current_active_user, fake_users_db, get_user, require_admin, require_manager, require_staff,
)
from infrastructure.config import settings
from infrastructure.security import verify_password, create_access_token
from infrastructure.cache import TTLCache
from domain.auth import User

from application.availability_service import AvailabilityService
from application.season_service import SeasonService
from application.rate_service import RateService
from application.credit_ledger_service import CreditLedgerService
from application.corporate_service import CorporateCompanyService
from application.credit_monitoring_service import CreditMonitoringService
from application.booking_coordinator import BookingCoordinator, BookingModification, BookingRequest
from infrastructure.repositories.in_memory_repositories import (
    InMemoryDatabase, InMemoryUnitOfWork, InMemoryAvailabilityRepository, InMemoryRoomTypeRepository,
    InMemorySeasonRepository, InMemorySpecialPeriodRepository, InMemoryRatePlanRepository,
    InMemoryRateOverrideRepository, InMemoryDynamicPricingRuleRepository,
    InMemoryCorporateCompanyRepository, InMemoryCreditTransactionRepository,
    InMemoryCreditLimitRequestRepository, InMemoryBookingDirectory,
)
from domain.entities import (
    CorporateCompany, CreditTransaction, DynamicPricingRule, RateOverride, RatePlan, RoomType,
    Season, SpecialPeriod,
)
from domain.enums import TransactionStatus, TransactionType
from domain.exceptions import DomainError, IntegrityViolation, NotFound
from domain.value_objects import GuestCount

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Availability, pricing and corporate credit core for hotel bookings",
    version="1.0.0"
)

# Initialize storage
db = InMemoryDatabase()
rate_cache = TTLCache(ttl=settings.CACHING_TTL_SEC, max_entries=settings.CACHE_MAX_ENTRIES)
unit_of_work = InMemoryUnitOfWork(db)
availability_repo = InMemoryAvailabilityRepository(db)
room_type_repo = InMemoryRoomTypeRepository(db)
season_repo = InMemorySeasonRepository(db)
special_period_repo = InMemorySpecialPeriodRepository(db)
rate_plan_repo = InMemoryRatePlanRepository(db)
rate_override_repo = InMemoryRateOverrideRepository(db)
dynamic_rule_repo = InMemoryDynamicPricingRuleRepository(db)
company_repo = InMemoryCorporateCompanyRepository(db)
transaction_repo = InMemoryCreditTransactionRepository(db)
limit_request_repo = InMemoryCreditLimitRequestRepository(db)
booking_directory = InMemoryBookingDirectory(db)

# Dependency injection
def get_availability_service() -> AvailabilityService:
    return AvailabilityService(availability_repo, room_type_repo, rate_cache)

def get_season_service() -> SeasonService:
    return SeasonService(season_repo, special_period_repo, rate_cache)

def get_rate_service() -> RateService:
    return RateService(
        rate_plan_repo, rate_override_repo, dynamic_rule_repo, room_type_repo,
        get_season_service(), get_availability_service(), rate_cache,
    )

def get_ledger_service() -> CreditLedgerService:
    return CreditLedgerService(transaction_repo, company_repo, unit_of_work)

def get_corporate_service() -> CorporateCompanyService:
    return CorporateCompanyService(company_repo, transaction_repo, booking_directory, get_ledger_service())

def get_monitoring_service() -> CreditMonitoringService:
    return CreditMonitoringService(
        company_repo, transaction_repo, limit_request_repo, get_ledger_service(), unit_of_work,
    )

def get_booking_coordinator() -> BookingCoordinator:
    return BookingCoordinator(
        get_availability_service(), get_rate_service(), get_season_service(),
        get_ledger_service(), company_repo, booking_directory,
    )

# ============================================================================
# ERROR HANDLERS
# ============================================================================

def _show_details(request: Request, exc: DomainError) -> bool:
    if not isinstance(exc, IntegrityViolation):
        return True
    user = getattr(request.state, "user", None)
    return bool(user and user.is_privileged)

@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message} {exc.details}")
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_dict(include_details=_show_details(request, exc))),
    )

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [{"loc": list(error["loc"]), "msg": error["msg"]} for error in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={"kind": "ValidationError", "message": "Invalid request", "details": {"errors": errors}},
    )

@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"kind": "ValidationError", "message": str(exc)})

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content={"kind": "InternalError", "message": "Internal server error"})

# ============================================================================
# HEALTH & AUTH ENDPOINTS
# ============================================================================

@app.get("/v1/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running", "cached_rate_lookups": len(rate_cache)}

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_user(fake_users_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": user.username, "role": user.role.value, "hotel_id": user.hotel_id},
        expires_delta=access_token_expires,
    )
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/v1/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# ROOM TYPE & AVAILABILITY ENDPOINTS
# ============================================================================

@app.post("/v1/room-types", response_model=RoomTypeResponse, status_code=201, tags=["Availability"])
async def create_room_type(
    request: CreateRoomTypeRequest,
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(require_manager)
):
    """Register a room type"""
    room_type = await service.register_room_type(
        RoomType(hotel_id=current_user.hotel_id, **request.model_dump())
    )
    return _room_type_to_response(room_type)

@app.get("/v1/room-types", response_model=List[RoomTypeResponse], tags=["Availability"])
async def list_room_types(
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(get_current_active_user)
):
    """Room types of the hotel"""
    return [_room_type_to_response(rt) for rt in await service.room_type_options(current_user.hotel_id)]

@app.get("/v1/availability", tags=["Availability"])
async def check_availability(
    room_type_id: str,
    check_in: date,
    check_out: date,
    qty: int = 1,
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(get_current_active_user)
):
    """Check availability for a stay"""
    return await service.check(current_user.hotel_id, room_type_id, check_in, check_out, qty)

@app.post("/v1/availability/open", response_model=List[AvailabilityRowResponse], status_code=201, tags=["Availability"])
async def open_inventory(
    request: OpenInventoryRequest,
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(require_manager)
):
    """Create or resize availability rows for [start_date, end_date)"""
    rows = await service.open_inventory(
        current_user.hotel_id, request.room_type_id, request.start_date, request.end_date,
        request.total_rooms, request.base_rate, request.selling_rate,
    )
    return [_row_to_response(r) for r in rows]

@app.post("/v1/availability/reserve", response_model=List[AvailabilityRowResponse], tags=["Availability"])
async def reserve_rooms(
    request: ReserveRoomsRequest,
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(require_staff)
):
    """Hold rooms on every night of a stay"""
    rows = await service.reserve(
        current_user.hotel_id, request.room_type_id, request.check_in, request.check_out,
        request.quantity, request.booking_id, request.source,
    )
    return [_row_to_response(r) for r in rows]

@app.post("/v1/availability/release", tags=["Availability"])
async def release_rooms(
    request: ReleaseRoomsRequest,
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(require_staff)
):
    """Release a booking's holds; idempotent"""
    return await service.release(
        current_user.hotel_id, request.booking_id, request.room_type_id, request.check_in, request.check_out,
    )

@app.post("/v1/availability/block", tags=["Availability"])
async def block_rooms(
    request: BlockRoomsRequest,
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(require_admin)
):
    """Take specific rooms out of inventory"""
    return await service.block(
        current_user.hotel_id, request.room_type_id, request.room_ids, request.start_date,
        request.end_date, request.reason.value, current_user.actor_id,
    )

@app.post("/v1/availability/unblock", tags=["Availability"])
async def unblock_rooms(
    request: UnblockRoomsRequest,
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(require_manager)
):
    """Return blocked rooms to inventory"""
    return await service.unblock(
        current_user.hotel_id, request.room_type_id, request.room_ids, request.start_date,
        request.end_date, current_user.actor_id,
    )

@app.get("/v1/availability/occupancy", tags=["Availability"])
async def get_occupancy(
    start: date,
    end: date,
    room_type_id: Optional[str] = None,
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(require_staff)
):
    """Occupancy over [start, end)"""
    return await service.occupancy(current_user.hotel_id, start, end, room_type_id)

@app.get("/v1/availability/summary", tags=["Availability"])
async def get_availability_summary(
    start: Optional[date] = None,
    end: Optional[date] = None,
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(require_staff)
):
    """Per room type totals"""
    return await service.summary(current_user.hotel_id, start, end)

@app.get("/v1/availability/calendar", tags=["Availability"])
async def get_availability_calendar(
    year: int,
    month: int,
    room_type_id: Optional[str] = None,
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(get_current_active_user)
):
    """Day-by-day availability for one month"""
    return await service.calendar(current_user.hotel_id, year, month, room_type_id)

@app.get("/v1/availability/overbooking", tags=["Availability"])
async def get_overbooking(
    start: Optional[date] = None,
    end: Optional[date] = None,
    room_type_id: Optional[str] = None,
    service: AvailabilityService = Depends(get_availability_service),
    current_user: User = Depends(require_manager)
):
    """Overbooked rows with upgrade suggestions"""
    return await service.detect_overbooking(current_user.hotel_id, start, end, room_type_id)

# ============================================================================
# SEASON & SPECIAL PERIOD ENDPOINTS
# ============================================================================

@app.post("/v1/seasons", response_model=CalendarPeriodResponse, status_code=201, tags=["Seasons"])
async def create_season(
    request: CreateSeasonRequest,
    service: SeasonService = Depends(get_season_service),
    current_user: User = Depends(require_manager)
):
    """Create season"""
    season = await service.create_season(
        Season(hotel_id=current_user.hotel_id, created_by=current_user.actor_id, **request.model_dump())
    )
    return _period_to_response(season)

@app.get("/v1/seasons", response_model=List[CalendarPeriodResponse], tags=["Seasons"])
async def list_seasons(
    active_only: bool = True,
    service: SeasonService = Depends(get_season_service),
    current_user: User = Depends(get_current_active_user)
):
    """Seasons of the hotel by priority"""
    return [_period_to_response(s) for s in await service.list_seasons(current_user.hotel_id, active_only)]

@app.delete("/v1/seasons/{season_id}", status_code=204, tags=["Seasons"])
async def deactivate_season(
    season_id: UUID,
    service: SeasonService = Depends(get_season_service),
    current_user: User = Depends(require_manager)
):
    """Deactivate season"""
    season = await service.season_repo.find_by_id(season_id)
    if not season or season.hotel_id != current_user.hotel_id:
        raise NotFound(f"Season {season_id} not found")
    await service.deactivate_season(season_id)
    return Response(status_code=204)

@app.post("/v1/special-periods", response_model=CalendarPeriodResponse, status_code=201, tags=["Seasons"])
async def create_special_period(
    request: CreateSpecialPeriodRequest,
    service: SeasonService = Depends(get_season_service),
    current_user: User = Depends(require_manager)
):
    """Create special period"""
    period = await service.create_special_period(
        SpecialPeriod(hotel_id=current_user.hotel_id, created_by=current_user.actor_id, **request.model_dump())
    )
    return _period_to_response(period)

@app.get("/v1/special-periods", response_model=List[CalendarPeriodResponse], tags=["Seasons"])
async def list_special_periods(
    active_only: bool = True,
    service: SeasonService = Depends(get_season_service),
    current_user: User = Depends(get_current_active_user)
):
    """Special periods of the hotel by priority"""
    periods = await service.list_special_periods(current_user.hotel_id, active_only)
    return [_period_to_response(p) for p in periods]

@app.delete("/v1/special-periods/{period_id}", status_code=204, tags=["Seasons"])
async def deactivate_special_period(
    period_id: UUID,
    service: SeasonService = Depends(get_season_service),
    current_user: User = Depends(require_manager)
):
    """Deactivate special period"""
    period = await service.special_period_repo.find_by_id(period_id)
    if not period or period.hotel_id != current_user.hotel_id:
        raise NotFound(f"Special period {period_id} not found")
    await service.deactivate_special_period(period_id)
    return Response(status_code=204)

@app.get("/v1/restrictions", tags=["Seasons"])
async def check_restrictions(
    room_type_id: str,
    check_in: date,
    check_out: date,
    rate_plan_id: Optional[UUID] = None,
    service: SeasonService = Depends(get_season_service),
    current_user: User = Depends(get_current_active_user)
):
    """Season and special period rules a stay would break"""
    return await service.check_booking_restrictions(
        current_user.hotel_id, room_type_id, check_in, check_out, rate_plan_id
    )

# ============================================================================
# RATE ENDPOINTS
# ============================================================================

@app.post("/v1/rates/plans", response_model=RatePlanResponse, status_code=201, tags=["Rates"])
async def upsert_rate_plan(
    request: RatePlanRequest,
    service: RateService = Depends(get_rate_service),
    current_user: User = Depends(require_manager)
):
    """Create or replace a rate plan"""
    data = request.model_dump(exclude_none=True)
    if request.plan_id is not None:
        existing = await service.get_rate_plan(request.plan_id)
        if existing and existing.hotel_id != current_user.hotel_id:
            raise NotFound(f"Rate plan {request.plan_id} not found")
    plan = await service.upsert_rate_plan(RatePlan(hotel_id=current_user.hotel_id, **data))
    return _rate_plan_to_response(plan)

@app.get("/v1/rates/plans", response_model=List[RatePlanResponse], tags=["Rates"])
async def list_rate_plans(
    active_only: bool = True,
    service: RateService = Depends(get_rate_service),
    current_user: User = Depends(get_current_active_user)
):
    """Rate plans of the hotel"""
    return [_rate_plan_to_response(p) for p in await service.list_rate_plans(current_user.hotel_id, active_only)]

@app.post("/v1/rates/overrides", response_model=RateOverrideResponse, status_code=201, tags=["Rates"])
async def override_rate(
    request: RateOverrideRequest,
    service: RateService = Depends(get_rate_service),
    current_user: User = Depends(require_manager)
):
    """Pin the rate of one night"""
    override = await service.override_rate(RateOverride(
        hotel_id=current_user.hotel_id, approved_by=current_user.actor_id, **request.model_dump()
    ))
    return _override_to_response(override)

@app.post("/v1/rates/dynamic-rules", response_model=DynamicRuleResponse, status_code=201, tags=["Rates"])
async def save_dynamic_rule(
    request: DynamicRuleRequest,
    service: RateService = Depends(get_rate_service),
    current_user: User = Depends(require_manager)
):
    """Create an occupancy based pricing rule"""
    rule = await service.save_dynamic_rule(
        DynamicPricingRule(hotel_id=current_user.hotel_id, **request.model_dump())
    )
    return _rule_to_response(rule)

@app.post("/v1/rates/best", response_model=RateQuoteResponse, tags=["Rates"])
async def get_best_rate(
    request: RateQueryRequest,
    service: RateService = Depends(get_rate_service),
    current_user: User = Depends(get_current_active_user)
):
    """Cheapest qualifying plan for a stay"""
    quote = await service.best_rate(
        current_user.hotel_id, request.room_type_id, request.check_in, request.check_out,
        GuestCount(adults=request.adults, children=request.children), request.promo_code,
    )
    if quote is None:
        raise NotFound(f"Room type {request.room_type_id} cannot be priced for these guests")
    return _quote_to_response(quote)

@app.get("/v1/rates/all", response_model=List[RateQuoteResponse], tags=["Rates"])
async def get_all_rates(
    room_type_id: str,
    check_in: date,
    check_out: date,
    adults: int = 1,
    children: int = 0,
    promo_code: Optional[str] = None,
    include_details: bool = False,
    service: RateService = Depends(get_rate_service),
    current_user: User = Depends(get_current_active_user)
):
    """Every qualifying plan with totals, cheapest first"""
    quotes = await service.all_rates(
        current_user.hotel_id, room_type_id, check_in, check_out,
        GuestCount(adults=adults, children=children), promo_code, include_details,
    )
    return [_quote_to_response(q, include_details) for q in quotes]

@app.get("/v1/rates/forecast", tags=["Rates"])
async def get_revenue_forecast(
    room_type_id: str,
    start: date,
    end: date,
    service: RateService = Depends(get_rate_service),
    current_user: User = Depends(require_manager)
):
    """Heuristic revenue projection"""
    return await service.revenue_forecast(current_user.hotel_id, room_type_id, start, end)

# ============================================================================
# BOOKING ENDPOINTS
# ============================================================================

@app.post("/v1/bookings", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_booking(
    request: CreateBookingRequest,
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
    current_user: User = Depends(get_current_active_user)
):
    """Price, hold rooms and charge corporate credit in one step"""
    result = await coordinator.create_booking(BookingRequest(
        hotel_id=current_user.hotel_id,
        room_type_id=request.room_type_id,
        check_in=request.check_in,
        check_out=request.check_out,
        booking_id=request.booking_id,
        actor=current_user.actor_id,
        rooms_count=request.rooms_count,
        guests=GuestCount(adults=request.adults, children=request.children),
        company_id=request.company_id,
        source=request.source,
        promo_code=request.promo_code,
    ))
    return BookingResponse(
        **{k: v for k, v in result.items() if k != "breakdown"},
        breakdown=[_nightly_to_response(line) for line in result["breakdown"]],
    )

@app.post("/v1/bookings/{booking_id}/cancel", response_model=BookingCancellationResponse, tags=["Bookings"])
async def cancel_booking(
    booking_id: str,
    request: CancelBookingRequest,
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
    current_user: User = Depends(get_current_active_user)
):
    """Release rooms and refund the outstanding charge"""
    result = await coordinator.cancel_booking(
        current_user.hotel_id, booking_id, current_user.actor_id, request.refund_amount, request.reason,
    )
    return BookingCancellationResponse(**result)

@app.post("/v1/bookings/{booking_id}/modify", response_model=BookingModificationResponse, tags=["Bookings"])
async def modify_booking(
    booking_id: str,
    request: ModifyBookingRequest,
    coordinator: BookingCoordinator = Depends(get_booking_coordinator),
    current_user: User = Depends(get_current_active_user)
):
    """Move a booking to new dates, room type or room count"""
    guests = None
    if request.adults is not None:
        guests = GuestCount(adults=request.adults, children=request.children or 0)
    result = await coordinator.modify_booking(
        current_user.hotel_id,
        booking_id,
        BookingModification(
            check_in=request.check_in,
            check_out=request.check_out,
            room_type_id=request.room_type_id,
            rooms_count=request.rooms_count,
            guests=guests,
            promo_code=request.promo_code,
        ),
        current_user.actor_id,
    )
    return BookingModificationResponse(**result)

# ============================================================================
# CORPORATE COMPANY ENDPOINTS
# ============================================================================

async def _company_in_hotel(service: CorporateCompanyService, company_id: UUID, user: User) -> CorporateCompany:
    company = await service.get(company_id)
    if not company or company.hotel_id != user.hotel_id:
        raise NotFound(f"Company {company_id} not found", {"companyId": str(company_id)})
    return company

@app.post("/v1/corporate/companies", response_model=CompanyResponse, status_code=201, tags=["Corporate"])
async def create_company(
    request: CreateCompanyRequest,
    service: CorporateCompanyService = Depends(get_corporate_service),
    current_user: User = Depends(require_manager)
):
    """Register corporate company"""
    company = await service.create(CorporateCompany(
        hotel_id=current_user.hotel_id, created_by=current_user.actor_id, **request.model_dump()
    ))
    return _company_to_response(company)

@app.get("/v1/corporate/companies", response_model=List[CompanyResponse], tags=["Corporate"])
async def list_companies(
    active_only: bool = False,
    service: CorporateCompanyService = Depends(get_corporate_service),
    current_user: User = Depends(require_staff)
):
    """Companies of the hotel"""
    return [_company_to_response(c) for c in await service.list_companies(current_user.hotel_id, active_only)]

@app.get("/v1/corporate/companies/low-credit", response_model=List[CompanyResponse], tags=["Corporate"])
async def list_low_credit_companies(
    threshold: Optional[Decimal] = None,
    service: CorporateCompanyService = Depends(get_corporate_service),
    current_user: User = Depends(require_staff)
):
    """Active companies below the credit threshold, lowest first"""
    return [_company_to_response(c) for c in await service.find_low_credit(current_user.hotel_id, threshold)]

@app.get("/v1/corporate/companies/{company_id}", response_model=CompanyResponse, tags=["Corporate"])
async def get_company(
    company_id: UUID,
    service: CorporateCompanyService = Depends(get_corporate_service),
    current_user: User = Depends(require_staff)
):
    """Get company by ID"""
    return _company_to_response(await _company_in_hotel(service, company_id, current_user))

@app.patch("/v1/corporate/companies/{company_id}", response_model=CompanyResponse, tags=["Corporate"])
async def update_company(
    company_id: UUID,
    request: UpdateCompanyRequest,
    service: CorporateCompanyService = Depends(get_corporate_service),
    current_user: User = Depends(require_manager)
):
    """Update company details or credit limit"""
    await _company_in_hotel(service, company_id, current_user)
    company = await service.update(company_id, request.model_dump(exclude_unset=True), current_user.actor_id)
    return _company_to_response(company)

@app.delete("/v1/corporate/companies/{company_id}", status_code=204, tags=["Corporate"])
async def delete_company(
    company_id: UUID,
    service: CorporateCompanyService = Depends(get_corporate_service),
    current_user: User = Depends(require_manager)
):
    """Soft delete; refused while bookings or pending credit are open"""
    await _company_in_hotel(service, company_id, current_user)
    await service.soft_delete(company_id, current_user.actor_id)
    return Response(status_code=204)

@app.patch("/v1/corporate/companies/{company_id}/toggle-status", response_model=CompanyResponse, tags=["Corporate"])
async def toggle_company_status(
    company_id: UUID,
    service: CorporateCompanyService = Depends(get_corporate_service),
    current_user: User = Depends(require_manager)
):
    """Flip the company's active flag"""
    await _company_in_hotel(service, company_id, current_user)
    return _company_to_response(await service.toggle_active(company_id, current_user.actor_id))

@app.get("/v1/corporate/companies/{company_id}/credit-summary", tags=["Corporate"])
async def get_company_credit_summary(
    company_id: UUID,
    service: CorporateCompanyService = Depends(get_corporate_service),
    current_user: User = Depends(require_staff)
):
    """Credit position with recent transactions"""
    await _company_in_hotel(service, company_id, current_user)
    summary = await service.credit_summary(company_id)
    summary["recent_transactions"] = [_transaction_to_response(t) for t in summary["recent_transactions"]]
    return summary

@app.patch("/v1/corporate/companies/{company_id}/update-credit", response_model=CreditTransactionResponse, tags=["Corporate"])
async def update_company_credit(
    company_id: UUID,
    request: UpdateCreditRequest,
    service: CorporateCompanyService = Depends(get_corporate_service),
    current_user: User = Depends(require_manager)
):
    """Manual signed credit change journaled as an adjustment"""
    await _company_in_hotel(service, company_id, current_user)
    transaction = await service.update_credit(company_id, request.amount, request.description, current_user.actor_id)
    return _transaction_to_response(transaction)

# ============================================================================
# CORPORATE CREDIT ENDPOINTS
# ============================================================================

async def _transaction_in_hotel(service: CreditLedgerService, transaction_id: UUID, user: User) -> CreditTransaction:
    transaction = await service.get(transaction_id)
    if not transaction or transaction.hotel_id != user.hotel_id:
        raise NotFound(f"Transaction {transaction_id} not found", {"transactionId": str(transaction_id)})
    return transaction

@app.post("/v1/corporate/credit/transactions", response_model=CreditTransactionResponse, status_code=201, tags=["Corporate Credit"])
async def post_credit_transaction(
    request: CreditTransactionRequest,
    service: CreditLedgerService = Depends(get_ledger_service),
    current_user: User = Depends(require_staff)
):
    """Journal a credit transaction"""
    transaction = CreditTransaction(
        hotel_id=current_user.hotel_id,
        created_by=current_user.actor_id,
        **request.model_dump(exclude={"link_to"}),
    )
    return _transaction_to_response(await service.post(transaction, link_to=request.link_to))

@app.get("/v1/corporate/credit/transactions", response_model=List[CreditTransactionResponse], tags=["Corporate Credit"])
async def list_credit_transactions(
    status: Optional[TransactionStatus] = None,
    transaction_type: Optional[TransactionType] = None,
    company_id: Optional[UUID] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    service: CreditLedgerService = Depends(get_ledger_service),
    current_user: User = Depends(require_staff)
):
    """Transactions of the hotel, newest first"""
    transactions = await service.list_transactions(
        current_user.hotel_id, status, transaction_type, company_id, start, end
    )
    return [_transaction_to_response(t) for t in transactions]

@app.patch("/v1/corporate/credit/transactions/{transaction_id}/approve", response_model=CreditTransactionResponse, tags=["Corporate Credit"])
async def approve_credit_transaction(
    transaction_id: UUID,
    request: ApproveTransactionRequest,
    service: CreditLedgerService = Depends(get_ledger_service),
    current_user: User = Depends(require_manager)
):
    """Approve a pending transaction and post its effect"""
    await _transaction_in_hotel(service, transaction_id, current_user)
    return _transaction_to_response(await service.approve(transaction_id, current_user.actor_id, request.notes))

@app.patch("/v1/corporate/credit/transactions/{transaction_id}/reject", response_model=CreditTransactionResponse, tags=["Corporate Credit"])
async def reject_credit_transaction(
    transaction_id: UUID,
    request: RejectTransactionRequest,
    service: CreditLedgerService = Depends(get_ledger_service),
    current_user: User = Depends(require_manager)
):
    """Reject a pending transaction"""
    await _transaction_in_hotel(service, transaction_id, current_user)
    return _transaction_to_response(await service.reject(transaction_id, current_user.actor_id, request.reason))

@app.patch("/v1/corporate/credit/transactions/{transaction_id}/cancel", response_model=CreditTransactionResponse, tags=["Corporate Credit"])
async def cancel_credit_transaction(
    transaction_id: UUID,
    request: CancelTransactionRequest,
    service: CreditLedgerService = Depends(get_ledger_service),
    current_user: User = Depends(require_manager)
):
    """Cancel a pending or approved transaction"""
    await _transaction_in_hotel(service, transaction_id, current_user)
    return _transaction_to_response(await service.cancel(transaction_id, current_user.actor_id, request.reason))

@app.patch("/v1/corporate/credit/bulk-approve", tags=["Corporate Credit"])
async def bulk_approve_transactions(
    request: BulkApproveRequest,
    service: CreditLedgerService = Depends(get_ledger_service),
    current_user: User = Depends(require_manager)
):
    """Approve many pending transactions; failures are reported per id"""
    owned, foreign = [], []
    for transaction_id in request.transaction_ids:
        transaction = await service.get(transaction_id)
        if transaction and transaction.hotel_id == current_user.hotel_id:
            owned.append(transaction_id)
        else:
            foreign.append({"transaction_id": transaction_id, "reason": "Transaction not found"})
    result = await service.bulk_approve(owned, current_user.actor_id, request.notes)
    result["failed"].extend(foreign)
    return result

@app.get("/v1/corporate/credit/overdue", tags=["Corporate Credit"])
async def get_overdue_transactions(
    days_overdue: int = 0,
    service: CreditLedgerService = Depends(get_ledger_service),
    current_user: User = Depends(require_staff)
):
    """Processed debits past their due date"""
    entries = await service.overdue(current_user.hotel_id, days_overdue)
    return [
        {
            "transaction": _transaction_to_response(e["transaction"]),
            "company_name": e["company_name"],
            "days_overdue": e["days_overdue"],
        }
        for e in entries
    ]

@app.get("/v1/corporate/credit/monthly-report", tags=["Corporate Credit"])
async def get_monthly_report(
    year: int,
    month: int,
    service: CreditLedgerService = Depends(get_ledger_service),
    current_user: User = Depends(require_manager)
):
    """Debit and credit totals per company for one month"""
    return await service.monthly_report(current_user.hotel_id, year, month)

@app.get("/v1/corporate/credit/summary/{company_id}", tags=["Corporate Credit"])
async def get_credit_summary(
    company_id: UUID,
    service: CreditLedgerService = Depends(get_ledger_service),
    corporate_service: CorporateCompanyService = Depends(get_corporate_service),
    current_user: User = Depends(require_staff)
):
    """Processed totals for a company"""
    await _company_in_hotel(corporate_service, company_id, current_user)
    return await service.summary(company_id)

@app.post("/v1/corporate/credit/validate", tags=["Corporate Credit"])
async def validate_booking_credit(
    request: ValidateCreditRequest,
    service: CreditMonitoringService = Depends(get_monitoring_service),
    corporate_service: CorporateCompanyService = Depends(get_corporate_service),
    current_user: User = Depends(get_current_active_user)
):
    """Pre-flight credit check; never changes state"""
    await _company_in_hotel(corporate_service, request.company_id, current_user)
    return await service.validate_booking_credit(request.company_id, request.amount)

@app.post("/v1/corporate/credit/process-booking", response_model=CreditTransactionResponse, tags=["Corporate Credit"])
async def process_booking_credit(
    request: ProcessBookingCreditRequest,
    service: CreditMonitoringService = Depends(get_monitoring_service),
    corporate_service: CorporateCompanyService = Depends(get_corporate_service),
    current_user: User = Depends(require_staff)
):
    """Charge an externally priced booking to company credit"""
    await _company_in_hotel(corporate_service, request.company_id, current_user)
    transaction = await service.process_booking_credit(
        request.company_id, request.amount, request.booking_id, current_user.actor_id
    )
    return _transaction_to_response(transaction)

@app.post("/v1/corporate/credit/request-limit-increase", response_model=LimitRequestResponse, status_code=201, tags=["Corporate Credit"])
async def request_limit_increase(
    request: LimitIncreaseRequest,
    service: CreditMonitoringService = Depends(get_monitoring_service),
    corporate_service: CorporateCompanyService = Depends(get_corporate_service),
    current_user: User = Depends(require_staff)
):
    """Submit a credit limit increase request"""
    await _company_in_hotel(corporate_service, request.company_id, current_user)
    limit_request = await service.request_limit_increase(
        request.company_id, request.requested_limit, request.justification, current_user.actor_id
    )
    return _limit_request_to_response(limit_request)

@app.post("/v1/corporate/credit/process-limit-request", response_model=LimitRequestResponse, tags=["Corporate Credit"])
async def process_limit_request(
    request: ProcessLimitRequest,
    service: CreditMonitoringService = Depends(get_monitoring_service),
    current_user: User = Depends(require_manager)
):
    """Approve or reject a pending limit request"""
    limit_request = await service.limit_request_repo.find_by_id(request.request_id)
    if not limit_request or limit_request.hotel_id != current_user.hotel_id:
        raise NotFound(f"Limit request {request.request_id} not found")
    processed = await service.process_limit_request(
        request.request_id, request.action, current_user.actor_id, request.comments
    )
    return _limit_request_to_response(processed)

@app.get("/v1/corporate/credit/pending-requests", response_model=List[LimitRequestResponse], tags=["Corporate Credit"])
async def get_pending_limit_requests(
    service: CreditMonitoringService = Depends(get_monitoring_service),
    current_user: User = Depends(require_manager)
):
    """Limit requests awaiting a decision"""
    return [_limit_request_to_response(r) for r in await service.pending_limit_requests(current_user.hotel_id)]

@app.post("/v1/corporate/credit/adjustment", response_model=CreditTransactionResponse, status_code=201, tags=["Corporate Credit"])
async def process_credit_adjustment(
    request: CreditAdjustmentRequest,
    service: CreditMonitoringService = Depends(get_monitoring_service),
    corporate_service: CorporateCompanyService = Depends(get_corporate_service),
    current_user: User = Depends(require_manager)
):
    """Signed manual credit adjustment"""
    await _company_in_hotel(corporate_service, request.company_id, current_user)
    transaction = await service.process_credit_adjustment(
        request.company_id, request.amount, request.reason, current_user.actor_id
    )
    return _transaction_to_response(transaction)

@app.get("/v1/corporate/monitoring/status", tags=["Corporate Credit"])
async def get_monitoring_status(
    service: CreditMonitoringService = Depends(get_monitoring_service),
    current_user: User = Depends(require_manager)
):
    """Credit health of every company, highest utilization first"""
    return await service.monitor(current_user.hotel_id)

# ============================================================================
# LEDGER SECURITY ENDPOINTS
# ============================================================================

@app.get("/v1/corporate/security/verify-transaction/{transaction_id}", tags=["Ledger Security"])
async def verify_transaction(
    transaction_id: UUID,
    service: CreditLedgerService = Depends(get_ledger_service),
    current_user: User = Depends(require_manager)
):
    """Recompute a transaction hash and check its chain link"""
    await _transaction_in_hotel(service, transaction_id, current_user)
    return await service.verify(transaction_id)

@app.post("/v1/corporate/security/batch-verify", tags=["Ledger Security"])
async def batch_verify_transactions(
    request: BatchVerifyRequest,
    service: CreditLedgerService = Depends(get_ledger_service),
    current_user: User = Depends(require_manager)
):
    """Verify several transactions"""
    for transaction_id in request.transaction_ids:
        await _transaction_in_hotel(service, transaction_id, current_user)
    return await service.batch_verify(request.transaction_ids)

@app.post("/v1/corporate/security/daily-audit", tags=["Ledger Security"])
async def run_daily_audit(
    service: CreditMonitoringService = Depends(get_monitoring_service),
    current_user: User = Depends(require_manager)
):
    """Walk every company hash chain of the hotel"""
    return await service.run_daily_audit(current_user.hotel_id)

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _optional_float(value) -> Optional[float]:
    return float(value) if value is not None else None

def _room_type_to_response(room_type) -> RoomTypeResponse:
    """Convert RoomType entity to RoomTypeResponse"""
    return RoomTypeResponse(
        room_type_id=room_type.room_type_id,
        hotel_id=room_type.hotel_id,
        name=room_type.name,
        code=room_type.code,
        base_price=float(room_type.base_price),
        max_occupancy=room_type.max_occupancy,
        legacy_category=room_type.legacy_category.value,
        is_active=room_type.is_active
    )

def _row_to_response(row) -> AvailabilityRowResponse:
    """Convert AvailabilityRow entity to AvailabilityRowResponse"""
    return AvailabilityRowResponse(
        hotel_id=row.hotel_id,
        room_type_id=row.room_type_id,
        date=row.date,
        total_rooms=row.total_rooms,
        sold_rooms=row.sold_rooms,
        blocked_rooms=row.blocked_rooms,
        available_rooms=row.available_rooms,
        base_rate=float(row.base_rate),
        selling_rate=_optional_float(row.selling_rate),
        effective_rate=float(row.effective_rate),
        is_overbooked=row.is_overbooked,
        last_updated=row.last_updated,
        version=row.version
    )

def _period_to_response(period) -> CalendarPeriodResponse:
    """Convert Season or SpecialPeriod entity to CalendarPeriodResponse"""
    is_special = isinstance(period, SpecialPeriod)
    return CalendarPeriodResponse(
        period_id=period.period_id,
        hotel_id=period.hotel_id,
        kind="special_period" if is_special else "season",
        name=period.name,
        start_date=period.start_date,
        end_date=period.end_date,
        priority=period.priority,
        is_active=period.is_active,
        season_type=None if is_special else period.season_type.value,
        booking_restriction=period.booking_restriction.value if is_special else None,
        rate_adjustments=[
            RateAdjustmentResponse(
                room_type_id=adj.room_type_id,
                adjustment_type=adj.adjustment_type.value,
                value=float(adj.value)
            )
            for adj in period.rate_adjustments
        ],
        applicable_rate_plans=period.applicable_rate_plans,
        created_by=period.created_by,
        created_at=period.created_at
    )

def _rate_plan_to_response(plan) -> RatePlanResponse:
    """Convert RatePlan entity to RatePlanResponse"""
    return RatePlanResponse(
        plan_id=plan.plan_id,
        hotel_id=plan.hotel_id,
        name=plan.name,
        description=plan.description,
        plan_type=plan.plan_type.value,
        meal_plan=plan.meal_plan.value,
        base_rates={r.room_type_id: float(r.rate) for r in plan.base_rates},
        valid_from=plan.valid_from,
        valid_to=plan.valid_to,
        min_nights=plan.stay_restrictions.min_nights,
        max_nights=plan.stay_restrictions.max_nights,
        requires_approval_above=_optional_float(plan.requires_approval_above),
        priority=plan.priority,
        is_active=plan.is_active
    )

def _override_to_response(override) -> RateOverrideResponse:
    """Convert RateOverride entity to RateOverrideResponse"""
    return RateOverrideResponse(
        override_id=override.override_id,
        hotel_id=override.hotel_id,
        date=override.date,
        room_type_id=override.room_type_id,
        rate_plan_id=override.rate_plan_id,
        rate=float(override.rate),
        reason=override.reason,
        approved_by=override.approved_by,
        is_active=override.is_active
    )

def _rule_to_response(rule) -> DynamicRuleResponse:
    """Convert DynamicPricingRule entity to DynamicRuleResponse"""
    return DynamicRuleResponse(
        rule_id=rule.rule_id,
        hotel_id=rule.hotel_id,
        name=rule.name,
        applicable_room_types=rule.applicable_room_types,
        tier_count=len(rule.tiers),
        max_daily_change=_optional_float(rule.max_daily_change),
        priority=rule.priority,
        is_active=rule.is_active
    )

def _nightly_to_response(line) -> NightlyRateResponse:
    return NightlyRateResponse(
        date=line.date,
        base_rate=float(line.base_rate),
        rate=float(line.rate),
        seasonal=float(line.seasonal),
        special=float(line.special),
        dynamic=float(line.dynamic),
        calendar_source=line.calendar_source,
        overridden=line.overridden
    )

def _quote_to_response(quote: dict, include_details: bool = True) -> RateQuoteResponse:
    """Convert a priced plan to RateQuoteResponse"""
    return RateQuoteResponse(
        plan_id=quote["plan_id"],
        plan_name=quote["plan_name"],
        plan_type=quote["plan_type"],
        priority=quote["priority"],
        nights=quote["nights"],
        nightly_rate=float(quote["nightly_rate"]),
        total_amount=float(quote["total_amount"]),
        breakdown=[_nightly_to_response(line) for line in quote["breakdown"]],
        meal_plan=quote["meal_plan"],
        requires_approval_above=_optional_float(quote["requires_approval_above"]),
        description=quote.get("description"),
        min_nights=quote.get("min_nights"),
        max_nights=quote.get("max_nights"),
        adjustments=jsonable_encoder(quote["adjustments"]) if include_details else None
    )

def _company_to_response(company) -> CompanyResponse:
    """Convert CorporateCompany entity to CompanyResponse"""
    return CompanyResponse(
        company_id=company.company_id,
        hotel_id=company.hotel_id,
        name=company.name,
        email=company.email,
        phone=company.phone,
        gst_number=company.gst_number,
        credit_limit=float(company.credit_limit),
        available_credit=float(company.available_credit),
        used_credit=float(company.used_credit),
        utilization_percentage=float(company.utilization_percentage),
        payment_terms=company.payment_terms,
        billing_cycle=company.billing_cycle.value,
        hr_contacts=company.hr_contacts,
        is_active=company.is_active,
        created_at=company.created_at,
        modified_at=company.modified_at,
        created_by=company.created_by,
        version=company.version
    )

def _transaction_to_response(transaction) -> CreditTransactionResponse:
    """Convert CreditTransaction entity to CreditTransactionResponse"""
    approval = transaction.approval_details
    return CreditTransactionResponse(
        transaction_id=transaction.transaction_id,
        hotel_id=transaction.hotel_id,
        company_id=transaction.company_id,
        booking_id=transaction.booking_id,
        transaction_type=transaction.transaction_type.value,
        adjustment_direction=transaction.adjustment_direction.value if transaction.adjustment_direction else None,
        amount=float(transaction.amount),
        balance=_optional_float(transaction.balance),
        description=transaction.description,
        reference=transaction.reference,
        transaction_date=transaction.transaction_date,
        due_date=transaction.due_date,
        status=transaction.status.value,
        approved_by=approval.approver if approval else None,
        approved_at=approval.at if approval else None,
        rejection_reason=transaction.rejection_reason,
        processed_at=transaction.processed_at,
        integrity_hash=transaction.integrity_hash,
        prev_hash=transaction.prev_hash,
        sequence=transaction.sequence,
        linked_transaction_ids=transaction.linked_transaction_ids,
        created_by=transaction.created_by,
        version=transaction.version
    )

def _limit_request_to_response(request) -> LimitRequestResponse:
    """Convert CreditLimitRequest entity to LimitRequestResponse"""
    return LimitRequestResponse(
        request_id=request.request_id,
        hotel_id=request.hotel_id,
        company_id=request.company_id,
        current_limit=float(request.current_limit),
        requested_limit=float(request.requested_limit),
        justification=request.justification,
        status=request.status.value,
        risk_level=request.risk_level.value,
        risk_findings=request.risk_findings,
        requested_by=request.requested_by,
        requested_at=request.requested_at,
        processor=request.processor,
        processed_at=request.processed_at,
        comments=request.comments
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
