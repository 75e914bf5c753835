"""Credit Monitoring & Audit"""
import logging
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from domain.entities import CorporateCompany, CreditLimitRequest, CreditTransaction
from domain.enums import (
    AdjustmentDirection, LimitRequestAction, RiskLevel, TransactionStatus, TransactionType,
)
from domain.exceptions import CompanyInactive, InsufficientCredit, NotFound, ValidationError
from domain.repositories import (
    CorporateCompanyRepository, CreditLimitRequestRepository, CreditTransactionRepository, UnitOfWork,
)
from domain.temporal import utc_now
from application.credit_ledger_service import CreditLedgerService
from application.retry import retry_on_conflict
from infrastructure.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

HIGH_RISK_INCREASE_PERCENT = Decimal("500")
HIGH_RISK_INCREASE_AMOUNT = Decimal("10000000")
FREQUENT_ADJUSTMENT_COUNT = 3
FREQUENT_ADJUSTMENT_WINDOW_DAYS = 30


class CreditMonitoringService:
    """Service for credit monitoring, limit requests and audits"""

    def __init__(self,
                 company_repo: CorporateCompanyRepository,
                 transaction_repo: CreditTransactionRepository,
                 limit_request_repo: CreditLimitRequestRepository,
                 ledger: CreditLedgerService,
                 unit_of_work: UnitOfWork,
                 settings: Settings = default_settings):
        self.company_repo = company_repo
        self.transaction_repo = transaction_repo
        self.limit_request_repo = limit_request_repo
        self.ledger = ledger
        self.unit_of_work = unit_of_work
        self.settings = settings

    async def _company(self, company_id: UUID) -> CorporateCompany:
        company = await self.company_repo.find_by_id(company_id)
        if not company:
            raise NotFound(f"Company {company_id} not found", {"companyId": str(company_id)})
        return company

    # ==================== MONITORING ====================
    async def monitor(self, hotel_id: str) -> List[dict]:
        """Credit health of every company of the hotel"""
        overdue = await self.ledger.overdue(hotel_id, 0)
        overdue_by_company = {}
        for entry in overdue:
            txn = entry["transaction"]
            amount, count = overdue_by_company.get(txn.company_id, (Decimal("0"), 0))
            overdue_by_company[txn.company_id] = (amount + txn.amount, count + 1)

        near_limit_pct = self.settings.NEAR_LIMIT_UTILIZATION * 100
        statuses = []
        for company in await self.company_repo.find_by_hotel(hotel_id):
            overdue_amount, overdue_count = overdue_by_company.get(company.company_id, (Decimal("0"), 0))
            utilization = company.utilization_percentage
            statuses.append({
                "company_id": company.company_id,
                "name": company.name,
                "credit_limit": company.credit_limit,
                "available_credit": company.available_credit,
                "utilization_percentage": utilization,
                "overdue_amount": overdue_amount,
                "overdue_count": overdue_count,
                "near_limit": utilization >= near_limit_pct,
                "low_credit": company.available_credit < self.settings.LOW_CREDIT_THRESHOLD,
                "inactive": not company.is_active,
            })
        statuses.sort(key=lambda s: s["utilization_percentage"], reverse=True)
        return statuses

    async def validate_booking_credit(self, company_id: UUID, amount: Decimal) -> dict:
        """Pre-flight credit check; never mutates"""
        amount = Decimal(amount)
        if amount <= 0:
            raise ValidationError("Booking amount must be greater than 0")
        if amount > self.settings.MAX_BOOKING_CREDIT_AMOUNT:
            raise ValidationError(f"Booking amount cannot exceed {self.settings.MAX_BOOKING_CREDIT_AMOUNT}")

        company = await self._company(company_id)
        result = {
            "company_id": company.company_id,
            "company_name": company.name,
            "requested_amount": amount,
            "available_credit": company.available_credit,
            "credit_limit": company.credit_limit,
            "valid": True,
            "reason": None,
            "remaining_after_booking": company.available_credit - amount,
        }
        if not company.is_active:
            result.update(valid=False, reason="Company account is inactive", remaining_after_booking=None)
        elif company.available_credit < amount:
            result.update(
                valid=False,
                reason=f"Insufficient credit. Available: {company.available_credit}, Required: {amount}",
                remaining_after_booking=None,
            )
        return result

    async def process_booking_credit(
        self, company_id: UUID, amount: Decimal, booking_id: str, actor: str
    ) -> CreditTransaction:
        """Debit an externally priced booking after the same pre-flight check"""
        if not booking_id:
            raise ValidationError("Booking ID is required")
        validation = await self.validate_booking_credit(company_id, amount)
        company = await self._company(company_id)
        if not company.is_active:
            raise CompanyInactive(validation["reason"], {"companyId": str(company_id)})
        if not validation["valid"]:
            raise InsufficientCredit(
                validation["reason"],
                {"companyId": str(company_id), "availableCredit": str(company.available_credit)},
            )

        transaction = await self.ledger.post(CreditTransaction(
            hotel_id=company.hotel_id,
            company_id=company_id,
            booking_id=booking_id,
            transaction_type=TransactionType.DEBIT,
            amount=Decimal(amount),
            description=f"Booking charge for {booking_id}",
            reference=booking_id,
            status=TransactionStatus.PROCESSED,
            created_by=actor,
        ))
        logger.info(f"Booking {booking_id} charged {amount} to company {company_id} by {actor}")
        return transaction

    # ==================== LIMIT REQUESTS ====================
    async def assess_limit_request_risk(
        self, company: CorporateCompany, requested_limit: Decimal
    ) -> Tuple[RiskLevel, List[str]]:
        findings = []
        level = RiskLevel.LOW
        increase = requested_limit - company.credit_limit

        if company.credit_limit > 0 and increase / company.credit_limit * 100 > HIGH_RISK_INCREASE_PERCENT:
            findings.append(f"Requested increase exceeds {HIGH_RISK_INCREASE_PERCENT}% of the current limit")
            level = RiskLevel.HIGH
        if increase > HIGH_RISK_INCREASE_AMOUNT:
            findings.append(f"Requested increase exceeds {HIGH_RISK_INCREASE_AMOUNT}")
            level = RiskLevel.HIGH

        since = utc_now() - timedelta(days=FREQUENT_ADJUSTMENT_WINDOW_DAYS)
        adjustments = await self.transaction_repo.find_by_hotel(
            company.hotel_id,
            transaction_type=TransactionType.ADJUSTMENT,
            company_id=company.company_id,
            start=since,
        )
        if len(adjustments) > FREQUENT_ADJUSTMENT_COUNT:
            findings.append(
                f"{len(adjustments)} credit adjustments in the last {FREQUENT_ADJUSTMENT_WINDOW_DAYS} days"
            )
            if level == RiskLevel.LOW:
                level = RiskLevel.MEDIUM
        return level, findings

    async def request_limit_increase(
        self, company_id: UUID, requested_limit: Decimal, justification: str, actor: str
    ) -> CreditLimitRequest:
        requested_limit = Decimal(requested_limit)
        justification = (justification or "").strip()
        if not 10 <= len(justification) <= 1000:
            raise ValidationError("Justification must be between 10 and 1000 characters")
        if requested_limit > self.settings.MAX_CREDIT_LIMIT:
            raise ValidationError(f"Requested limit cannot exceed {self.settings.MAX_CREDIT_LIMIT}")

        company = await self._company(company_id)
        if requested_limit <= company.credit_limit:
            raise ValidationError("Requested limit must be higher than the current limit")
        if await self.limit_request_repo.find_pending(company.hotel_id, company_id):
            raise ValidationError("A limit increase request is already pending for this company")

        risk_level, findings = await self.assess_limit_request_risk(company, requested_limit)
        request = await self.limit_request_repo.insert(CreditLimitRequest(
            hotel_id=company.hotel_id,
            company_id=company_id,
            current_limit=company.credit_limit,
            requested_limit=requested_limit,
            justification=justification,
            risk_level=risk_level,
            risk_findings=findings,
            requested_by=actor,
        ))

        if risk_level != RiskLevel.LOW:
            logger.warning(
                f"Limit request {request.request_id} for company {company_id} flagged "
                f"{risk_level.value} risk: {findings}"
            )
        else:
            logger.info(f"Limit request {request.request_id} for company {company_id} submitted by {actor}")
        return request

    async def process_limit_request(
        self, request_id: UUID, action: LimitRequestAction, actor: str, comments: Optional[str] = None
    ) -> CreditLimitRequest:
        """Approve or reject; approval raises limit and available credit together"""

        async def attempt() -> CreditLimitRequest:
            request = await self.limit_request_repo.find_by_id(request_id)
            if not request:
                raise NotFound(f"Limit request {request_id} not found")
            if action == LimitRequestAction.REJECT:
                request.reject(actor, comments)
                return (await self.unit_of_work.commit(updates=[request]))[0]

            request.approve(actor, comments)
            company = await self._company(request.company_id)
            company.change_credit_limit(company.credit_limit + request.delta)
            return (await self.unit_of_work.commit(updates=[request, company]))[0]

        processed = await retry_on_conflict(
            attempt,
            attempts=self.settings.MAX_CONCURRENCY_RETRIES,
            backoff_ms=self.settings.RETRY_BACKOFF_MS,
            description=f"process limit request {request_id}",
        )
        logger.info(f"Limit request {request_id} {processed.status.value} by {actor}")
        return processed

    async def pending_limit_requests(self, hotel_id: str) -> List[CreditLimitRequest]:
        return await self.limit_request_repo.find_pending(hotel_id)

    # ==================== ADJUSTMENTS & AUDIT ====================
    async def process_credit_adjustment(
        self, company_id: UUID, amount: Decimal, reason: str, actor: str
    ) -> CreditTransaction:
        """Signed manual adjustment posted straight to the ledger"""
        amount = Decimal(amount)
        reason = (reason or "").strip()
        if amount == 0:
            raise ValidationError("Adjustment amount cannot be zero")
        if abs(amount) > self.settings.MAX_ADJUSTMENT_AMOUNT:
            raise ValidationError(f"Adjustment cannot exceed {self.settings.MAX_ADJUSTMENT_AMOUNT}")
        if not 5 <= len(reason) <= 500:
            raise ValidationError("Reason must be between 5 and 500 characters")

        company = await self._company(company_id)
        transaction = await self.ledger.post(CreditTransaction(
            hotel_id=company.hotel_id,
            company_id=company_id,
            transaction_type=TransactionType.ADJUSTMENT,
            adjustment_direction=AdjustmentDirection.INCREASE if amount > 0 else AdjustmentDirection.DECREASE,
            amount=abs(amount),
            description=reason,
            reference=f"ADJ-{actor}",
            status=TransactionStatus.PROCESSED,
            created_by=actor,
        ))
        logger.info(f"Credit adjustment of {amount} for company {company_id} by {actor}: {reason}")
        return transaction

    async def run_daily_audit(self, hotel_id: str) -> dict:
        return await self.ledger.daily_audit(hotel_id)
