"""Corporate Company Registry"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from domain.entities import CorporateCompany, CreditTransaction
from domain.enums import AdjustmentDirection, TransactionStatus, TransactionType
from domain.exceptions import CompanyInactive, NotFound, ValidationError
from domain.repositories import BookingDirectory, CorporateCompanyRepository, CreditTransactionRepository
from application.credit_ledger_service import CreditLedgerService
from application.retry import retry_on_conflict
from infrastructure.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "name", "email", "phone", "gst_number", "credit_limit", "payment_terms",
    "billing_cycle", "contract_details", "hr_contacts",
}


class CorporateCompanyService:
    """Service for Corporate Company business use cases"""

    def __init__(self,
                 company_repo: CorporateCompanyRepository,
                 transaction_repo: CreditTransactionRepository,
                 booking_directory: BookingDirectory,
                 ledger: CreditLedgerService,
                 settings: Settings = default_settings):
        self.company_repo = company_repo
        self.transaction_repo = transaction_repo
        self.booking_directory = booking_directory
        self.ledger = ledger
        self.settings = settings

    async def _retry(self, operation, description: str):
        return await retry_on_conflict(
            operation,
            attempts=self.settings.MAX_CONCURRENCY_RETRIES,
            backoff_ms=self.settings.RETRY_BACKOFF_MS,
            description=description,
        )

    async def _company(self, company_id: UUID) -> CorporateCompany:
        company = await self.company_repo.find_by_id(company_id)
        if not company:
            raise NotFound(f"Company {company_id} not found", {"companyId": str(company_id)})
        return company

    # ==================== LIFECYCLE ====================
    async def create(self, company: CorporateCompany) -> CorporateCompany:
        """Register a company; available credit starts at the credit limit"""
        if company.credit_limit > self.settings.MAX_CREDIT_LIMIT:
            raise ValidationError(f"Credit limit cannot exceed {self.settings.MAX_CREDIT_LIMIT}")
        if await self.company_repo.find_by_gst_number(company.gst_number):
            raise ValidationError("GST number already registered", {"gstNumber": company.gst_number})

        saved = await self.company_repo.insert(company)
        logger.info(f"Corporate company '{saved.name}' ({saved.company_id}) created by {saved.created_by}")
        return saved

    async def get(self, company_id: UUID) -> Optional[CorporateCompany]:
        return await self.company_repo.find_by_id(company_id)

    async def list_companies(self, hotel_id: str, active_only: bool = False) -> List[CorporateCompany]:
        return await self.company_repo.find_by_hotel(hotel_id, active_only)

    async def update(self, company_id: UUID, changes: Dict[str, Any], actor: str) -> CorporateCompany:
        """Apply changes and re-run every company validator"""
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {sorted(unknown)}")
        changes = dict(changes)
        new_limit = changes.pop("credit_limit", None)
        if new_limit is not None and Decimal(new_limit) > self.settings.MAX_CREDIT_LIMIT:
            raise ValidationError(f"Credit limit cannot exceed {self.settings.MAX_CREDIT_LIMIT}")

        async def attempt() -> CorporateCompany:
            company = await self._company(company_id)
            merged = company.model_dump()
            merged.update(changes)
            updated = CorporateCompany.model_validate(merged)
            if new_limit is not None:
                updated.change_credit_limit(Decimal(new_limit))
            return await self.company_repo.update(updated)

        saved = await self._retry(attempt, f"update company {company_id}")
        if new_limit is not None:
            changes["credit_limit"] = new_limit
        logger.info(f"Company {company_id} updated by {actor}: {sorted(changes)}")
        return saved

    async def _deactivation_blockers(self, company_id: UUID) -> Dict[str, int]:
        open_bookings = await self.booking_directory.count_open_for_company(company_id)
        pending = await self.transaction_repo.find_by_company(company_id, TransactionStatus.PENDING)
        blockers = {}
        if open_bookings:
            blockers["activeBookings"] = open_bookings
        if pending:
            blockers["pendingTransactions"] = len(pending)
        return blockers

    async def set_active(self, company_id: UUID, active: bool, actor: str) -> CorporateCompany:
        if not active:
            blockers = await self._deactivation_blockers(company_id)
            if blockers:
                raise CompanyInactive(
                    "Cannot deactivate company with active bookings or pending credit transactions",
                    blockers,
                )

        async def attempt() -> CorporateCompany:
            company = await self._company(company_id)
            company.set_active(active)
            return await self.company_repo.update(company)

        saved = await self._retry(attempt, f"set company {company_id} active={active}")
        logger.info(f"Company {company_id} {'activated' if active else 'deactivated'} by {actor}")
        return saved

    async def toggle_active(self, company_id: UUID, actor: str) -> CorporateCompany:
        company = await self._company(company_id)
        return await self.set_active(company_id, not company.is_active, actor)

    async def soft_delete(self, company_id: UUID, actor: str) -> CorporateCompany:
        return await self.set_active(company_id, False, actor)

    # ==================== CREDIT ====================
    async def update_available_credit(self, company_id: UUID, delta: Decimal) -> CorporateCompany:
        """Signed change to available credit, capped at the limit; never below zero"""

        async def attempt() -> CorporateCompany:
            company = await self._company(company_id)
            company.update_available_credit(Decimal(delta))
            return await self.company_repo.update(company)

        return await self._retry(attempt, f"update available credit of {company_id}")

    async def has_available_credit(self, company_id: UUID, amount: Decimal) -> bool:
        company = await self._company(company_id)
        return company.has_available_credit(Decimal(amount))

    async def find_low_credit(self, hotel_id: str, threshold: Optional[Decimal] = None) -> List[CorporateCompany]:
        threshold = self.settings.LOW_CREDIT_THRESHOLD if threshold is None else Decimal(threshold)
        companies = await self.company_repo.find_by_hotel(hotel_id, active_only=True)
        return sorted(
            (c for c in companies if c.available_credit < threshold),
            key=lambda c: c.available_credit,
        )

    async def credit_summary(self, company_id: UUID) -> dict:
        company = await self._company(company_id)
        ledger_summary = await self.ledger.summary(company_id)
        recent = await self.ledger.recent_transactions(company_id, limit=10)
        return {
            "company_id": company.company_id,
            "name": company.name,
            "is_active": company.is_active,
            "credit_limit": company.credit_limit,
            "available_credit": company.available_credit,
            "used_credit": company.used_credit,
            "utilization_percentage": company.utilization_percentage,
            "payment_terms": company.payment_terms,
            "total_debits": ledger_summary["total_debits"],
            "total_credits": ledger_summary["total_credits"],
            "net_balance": ledger_summary["net_balance"],
            "transaction_count": ledger_summary["transaction_count"],
            "recent_transactions": recent,
        }

    async def update_credit(self, company_id: UUID, amount: Decimal, description: str, actor: str) -> CreditTransaction:
        """Manual signed credit change, journaled as a processed adjustment"""
        amount = Decimal(amount)
        if amount == 0:
            raise ValidationError("Adjustment amount cannot be zero")
        if abs(amount) > self.settings.MAX_ADJUSTMENT_AMOUNT:
            raise ValidationError(f"Adjustment cannot exceed {self.settings.MAX_ADJUSTMENT_AMOUNT}")
        company = await self._company(company_id)

        transaction = CreditTransaction(
            hotel_id=company.hotel_id,
            company_id=company_id,
            transaction_type=TransactionType.ADJUSTMENT,
            adjustment_direction=AdjustmentDirection.INCREASE if amount > 0 else AdjustmentDirection.DECREASE,
            amount=abs(amount),
            description=description,
            status=TransactionStatus.PROCESSED,
            created_by=actor,
        )
        return await self.ledger.post(transaction)
