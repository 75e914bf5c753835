"""Corporate Credit Ledger - append-only transaction journal"""
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from domain.entities import CorporateCompany, CreditTransaction
from domain.enums import AdjustmentDirection, TransactionStatus, TransactionType
from domain.exceptions import (
    CompanyInactive, IntegrityViolation, NotFound, StateTransitionError, ValidationError,
)
from domain.repositories import CorporateCompanyRepository, CreditTransactionRepository, UnitOfWork
from domain.temporal import month_range, start_of_day, today
from application.retry import retry_on_conflict
from infrastructure.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def _debit_side(transaction: CreditTransaction) -> bool:
    if transaction.transaction_type == TransactionType.DEBIT:
        return True
    return (
        transaction.transaction_type == TransactionType.ADJUSTMENT
        and transaction.adjustment_direction == AdjustmentDirection.DECREASE
    )


def totals(transactions: Sequence[CreditTransaction]) -> dict:
    """Debit and credit sums over processed transactions"""
    processed = [t for t in transactions if t.status == TransactionStatus.PROCESSED]
    total_debits = sum((t.amount for t in processed if _debit_side(t)), Decimal("0"))
    total_credits = sum((t.amount for t in processed if not _debit_side(t)), Decimal("0"))
    return {
        "total_debits": total_debits,
        "total_credits": total_credits,
        "net_balance": total_credits - total_debits,
        "transaction_count": len(processed),
    }


class CreditLedgerService:
    """Service for Credit Transaction business use cases"""

    def __init__(self,
                 transaction_repo: CreditTransactionRepository,
                 company_repo: CorporateCompanyRepository,
                 unit_of_work: UnitOfWork,
                 settings: Settings = default_settings):
        self.transaction_repo = transaction_repo
        self.company_repo = company_repo
        self.unit_of_work = unit_of_work
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

    async def _transaction(self, transaction_id: UUID) -> CreditTransaction:
        transaction = await self.transaction_repo.find_by_id(transaction_id)
        if not transaction:
            raise NotFound(f"Transaction {transaction_id} not found", {"transactionId": str(transaction_id)})
        return transaction

    async def _assert_chain_head(self, company: CorporateCompany) -> None:
        """Refuse to extend a chain whose head no longer verifies"""
        if company.ledger_head_hash is None:
            return
        processed = await self.transaction_repo.find_by_company(company.company_id, TransactionStatus.PROCESSED)
        head = next((t for t in processed if t.sequence == company.ledger_sequence), None)
        if head is None or head.integrity_hash != company.ledger_head_hash or not head.verify_integrity():
            details = {
                "companyId": str(company.company_id),
                "ledgerSequence": company.ledger_sequence,
                "headHash": company.ledger_head_hash,
                "headTransactionId": str(head.transaction_id) if head else None,
            }
            logger.error(f"Integrity violation at chain head of company {company.company_id}: {details}")
            raise IntegrityViolation("Credit ledger chain head failed verification", details)

    async def _process(self, transaction: CreditTransaction, is_new: bool,
                       actor: Optional[str] = None, notes: Optional[str] = None) -> CreditTransaction:
        """Apply the posting effect and seal the record, company and journal in one write"""

        async def attempt() -> CreditTransaction:
            if is_new:
                txn = transaction.model_copy(deep=True)
            else:
                txn = await self._transaction(transaction.transaction_id)
                if actor is not None:
                    txn.approve(actor, notes)
            company = await self._company(txn.company_id)
            await self._assert_chain_head(company)

            balance = company.update_available_credit(txn.signed_amount)
            txn.mark_processed(balance, company.ledger_head_hash, company.ledger_sequence + 1)
            company.advance_ledger(txn.integrity_hash)

            if is_new:
                stored = await self.unit_of_work.commit(inserts=[txn], updates=[company])
            else:
                stored = await self.unit_of_work.commit(updates=[txn, company])
            return stored[0]

        processed = await self._retry(attempt, f"post {transaction.transaction_type.value} {transaction.transaction_id}")
        logger.info(
            f"Processed {processed.transaction_type.value} {processed.transaction_id} of "
            f"{processed.amount} for company {processed.company_id}; balance {processed.balance}"
        )
        return processed

    # ==================== POSTING ====================
    async def post(self, transaction: CreditTransaction, link_to: Optional[UUID] = None) -> CreditTransaction:
        """Journal a new transaction.

        A transaction submitted as ``pending`` waits for approval; one submitted
        as ``processed`` takes effect immediately.
        """
        if transaction.status not in (TransactionStatus.PENDING, TransactionStatus.PROCESSED):
            raise ValidationError(f"New transactions cannot start as {transaction.status.value}")
        if transaction.amount <= 0:
            raise ValidationError("Transaction amount must be greater than 0")

        company = await self._company(transaction.company_id)
        if company.hotel_id != transaction.hotel_id:
            raise NotFound(f"Company {transaction.company_id} not found", {"companyId": str(transaction.company_id)})
        if transaction.reduces_credit and not company.is_active:
            raise CompanyInactive(f"Company {company.name} is inactive", {"companyId": str(company.company_id)})
        if transaction.transaction_type == TransactionType.DEBIT and transaction.due_date is None:
            transaction = transaction.model_copy(
                update={"due_date": company.due_date_for(transaction.transaction_date)}
            )

        if transaction.status == TransactionStatus.PENDING:
            stored = await self.transaction_repo.insert(transaction)
            logger.info(
                f"Pending {stored.transaction_type.value} {stored.transaction_id} of {stored.amount} "
                f"for company {stored.company_id} awaits approval"
            )
        else:
            pending = transaction.model_copy(update={"status": TransactionStatus.PENDING})
            stored = await self._process(pending, is_new=True)

        if link_to is not None:
            await self.link(link_to, stored.transaction_id)
            stored = await self.link(stored.transaction_id, link_to)
        return stored

    async def link(self, transaction_id: UUID, other_id: UUID) -> CreditTransaction:
        """Append-only linkage, allowed in every state"""

        async def attempt() -> CreditTransaction:
            txn = await self._transaction(transaction_id)
            txn.link(other_id)
            return await self.transaction_repo.update(txn)

        return await self._retry(attempt, f"link {transaction_id}")

    async def approve(self, transaction_id: UUID, actor: str, notes: Optional[str] = None) -> CreditTransaction:
        """Approve a pending transaction and post its effect"""
        transaction = await self._transaction(transaction_id)
        if transaction.status != TransactionStatus.PENDING:
            raise StateTransitionError(
                f"Cannot approve transaction with status {transaction.status.value}",
                {"transactionId": str(transaction_id), "status": transaction.status.value},
            )
        processed = await self._process(transaction, is_new=False, actor=actor, notes=notes)
        logger.info(f"Transaction {transaction_id} approved by {actor}")
        return processed

    async def reject(self, transaction_id: UUID, actor: str, reason: str) -> CreditTransaction:
        if not reason or not reason.strip():
            raise ValidationError("Rejection reason is required")

        async def attempt() -> CreditTransaction:
            txn = await self._transaction(transaction_id)
            txn.reject(actor, reason)
            return await self.transaction_repo.update(txn)

        rejected = await self._retry(attempt, f"reject {transaction_id}")
        logger.info(f"Transaction {transaction_id} rejected by {actor}: {reason}")
        return rejected

    async def cancel(self, transaction_id: UUID, actor: str, reason: Optional[str] = None) -> CreditTransaction:

        async def attempt() -> CreditTransaction:
            txn = await self._transaction(transaction_id)
            txn.cancel(actor, reason)
            return await self.transaction_repo.update(txn)

        cancelled = await self._retry(attempt, f"cancel {transaction_id}")
        logger.info(f"Transaction {transaction_id} cancelled by {actor}")
        return cancelled

    async def bulk_approve(self, transaction_ids: Sequence[UUID], actor: str,
                           notes: Optional[str] = None) -> dict:
        approved, failed = [], []
        for transaction_id in transaction_ids:
            try:
                await self.approve(transaction_id, actor, notes)
                approved.append(transaction_id)
            except ValueError as e:
                failed.append({"transaction_id": transaction_id, "reason": str(e)})
        logger.info(f"Bulk approval by {actor}: {len(approved)} approved, {len(failed)} failed")
        return {"approved": approved, "failed": failed}

    # ==================== QUERIES ====================
    async def get(self, transaction_id: UUID) -> Optional[CreditTransaction]:
        return await self.transaction_repo.find_by_id(transaction_id)

    async def list_transactions(
        self,
        hotel_id: str,
        status: Optional[TransactionStatus] = None,
        transaction_type: Optional[TransactionType] = None,
        company_id: Optional[UUID] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[CreditTransaction]:
        return await self.transaction_repo.find_by_hotel(
            hotel_id,
            status=status,
            transaction_type=transaction_type,
            company_id=company_id,
            start=start_of_day(start) if start else None,
            end=start_of_day(end) if end else None,
        )

    async def recent_transactions(self, company_id: UUID, limit: int = 10) -> List[CreditTransaction]:
        return (await self.transaction_repo.find_by_company(company_id))[:limit]

    async def transactions_for_booking(self, booking_id: str) -> List[CreditTransaction]:
        return await self.transaction_repo.find_by_booking(booking_id)

    async def summary(self, company_id: UUID) -> dict:
        await self._company(company_id)
        transactions = await self.transaction_repo.find_by_company(company_id, TransactionStatus.PROCESSED)
        return {"company_id": company_id, **totals(transactions)}

    async def overdue(self, hotel_id: str, days_overdue: int = 0, now: Optional[datetime] = None) -> List[dict]:
        """Processed debits whose due date is more than ``days_overdue`` days past"""
        if days_overdue < 0:
            raise ValidationError("days_overdue cannot be negative")
        current = now.date() if now else today()
        cutoff = current - timedelta(days=days_overdue)
        transactions = await self.transaction_repo.find_overdue(hotel_id, cutoff)

        companies: Dict[UUID, Optional[CorporateCompany]] = {}
        results = []
        for txn in transactions:
            if txn.company_id not in companies:
                companies[txn.company_id] = await self.company_repo.find_by_id(txn.company_id)
            company = companies[txn.company_id]
            results.append({
                "transaction": txn,
                "company_name": company.name if company else None,
                "days_overdue": (current - txn.due_date).days,
            })
        return results

    async def monthly_report(self, hotel_id: str, year: int, month: int) -> dict:
        if not 1 <= month <= 12:
            raise ValidationError("Month must be between 1 and 12")
        first, next_month = month_range(year, month)
        transactions = await self.transaction_repo.find_by_hotel(
            hotel_id,
            status=TransactionStatus.PROCESSED,
            start=start_of_day(first),
            end=start_of_day(next_month),
        )

        grouped: Dict[UUID, List[CreditTransaction]] = defaultdict(list)
        for txn in transactions:
            grouped[txn.company_id].append(txn)

        companies = []
        for company_id, company_transactions in grouped.items():
            company = await self.company_repo.find_by_id(company_id)
            company_totals = totals(company_transactions)
            companies.append({
                "company_id": company_id,
                "company_name": company.name if company else None,
                "month": f"{year:04d}-{month:02d}",
                "total_debits": company_totals["total_debits"],
                "total_credits": company_totals["total_credits"],
                "transaction_count": company_totals["transaction_count"],
            })
        companies.sort(key=lambda c: c["total_debits"], reverse=True)

        overall = totals(transactions)
        return {
            "year": year,
            "month": month,
            "companies": companies,
            "summary": {
                "total_debits": overall["total_debits"],
                "total_credits": overall["total_credits"],
                "total_companies": len(companies),
                "total_transactions": overall["transaction_count"],
            },
        }

    # ==================== INTEGRITY ====================
    async def verify(self, transaction_id: UUID) -> dict:
        """Recompute one transaction's hash and check its link to the previous one"""
        txn = await self._transaction(transaction_id)
        if txn.status != TransactionStatus.PROCESSED:
            return {"transaction_id": transaction_id, "valid": True, "sealed": False,
                    "status": txn.status.value}

        hash_valid = txn.verify_integrity()
        chain_valid = True
        if txn.sequence and txn.sequence > 1:
            processed = await self.transaction_repo.find_by_company(txn.company_id, TransactionStatus.PROCESSED)
            previous = next((t for t in processed if t.sequence == txn.sequence - 1), None)
            chain_valid = previous is not None and previous.integrity_hash == txn.prev_hash
        elif txn.prev_hash is not None:
            chain_valid = False

        result = {
            "transaction_id": transaction_id,
            "valid": hash_valid and chain_valid,
            "sealed": True,
            "hash_valid": hash_valid,
            "chain_valid": chain_valid,
            "stored_hash": txn.integrity_hash,
            "computed_hash": txn.compute_integrity_hash(),
        }
        if not result["valid"]:
            logger.error(f"Integrity violation on transaction {transaction_id}: {result}")
        return result

    async def batch_verify(self, transaction_ids: Sequence[UUID]) -> dict:
        verified, invalid, details = 0, 0, []
        for transaction_id in transaction_ids:
            try:
                result = await self.verify(transaction_id)
            except NotFound as e:
                invalid += 1
                details.append({"transaction_id": transaction_id, "valid": False, "error": e.message})
                continue
            if result["valid"]:
                verified += 1
            else:
                invalid += 1
                details.append(result)
        return {"verified": verified, "invalid": invalid, "details": details}

    async def daily_audit(self, hotel_id: str) -> dict:
        """Walk every company chain of the hotel in sequence order"""
        transactions = await self.transaction_repo.find_by_hotel(hotel_id, status=TransactionStatus.PROCESSED)
        chains: Dict[UUID, List[CreditTransaction]] = defaultdict(list)
        for txn in transactions:
            chains[txn.company_id].append(txn)

        verified, invalid, details = 0, 0, []
        for company_id, chain in chains.items():
            previous_hash = None
            for txn in sorted(chain, key=lambda t: t.sequence or 0):
                hash_valid = txn.verify_integrity()
                chain_valid = txn.prev_hash == previous_hash
                if hash_valid and chain_valid:
                    verified += 1
                else:
                    invalid += 1
                    details.append({
                        "transaction_id": txn.transaction_id,
                        "company_id": company_id,
                        "sequence": txn.sequence,
                        "hash_valid": hash_valid,
                        "chain_valid": chain_valid,
                    })
                previous_hash = txn.integrity_hash

        if invalid:
            logger.error(f"Daily audit of hotel {hotel_id}: {invalid} invalid transactions: {details}")
        else:
            logger.info(f"Daily audit of hotel {hotel_id}: {verified} transactions verified")
        return {"verified": verified, "invalid": invalid, "details": details}
