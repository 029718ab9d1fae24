"""Credit ledger - merchant prepaid credit balances"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from reviewloop.core.config import settings
from reviewloop.core.metrics import credits_counter
from reviewloop.models.credit_transaction import CreditTransaction
from reviewloop.models.merchant import Merchant

logger = logging.getLogger(__name__)


def get_credit_pack_amount(plan_id: Optional[str]) -> Optional[int]:
    """Map a platform plan id to the credits it grants, or None if it is not a credit pack"""
    if not plan_id:
        return None
    return settings.CREDIT_PACKS.get(plan_id)


def get_credit_balance(merchant_id: int, db: Session) -> Optional[int]:
    """Current balance, or None if the merchant does not exist"""
    return db.query(Merchant.credit_balance).filter(Merchant.id == merchant_id).scalar()


def _record_transaction(
    merchant_id: int,
    credits: int,
    transaction_type: str,
    db: Session,
    review_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> int:
    balance_after = get_credit_balance(merchant_id, db)
    db.add(CreditTransaction(
        merchant_id=merchant_id,
        review_id=review_id,
        transaction_type=transaction_type,
        credits=credits,
        balance_after=balance_after,
        transaction_metadata=metadata or {}
    ))
    return balance_after


def increment_credits(
    merchant_id: int,
    amount: int,
    db: Session,
    transaction_type: str = "purchase",
    metadata: Optional[Dict[str, Any]] = None
) -> Optional[int]:
    """Atomically add credits to a merchant's balance.

    Expressed as a single UPDATE so concurrent increments never lose writes.

    Returns:
        New balance, or None if the merchant does not exist
    """
    if amount <= 0:
        raise ValueError("Credit increment must be positive")

    try:
        updated = (
            db.query(Merchant)
            .filter(Merchant.id == merchant_id)
            .update({Merchant.credit_balance: Merchant.credit_balance + amount}, synchronize_session=False)
        )
        if updated == 0:
            db.rollback()
            logger.error(f"Merchant {merchant_id} not found for credit increment")
            return None

        balance_after = _record_transaction(merchant_id, amount, transaction_type, db, metadata=metadata)
        db.commit()
    except Exception:
        db.rollback()
        raise

    credits_counter.labels(direction="added").inc(amount)
    logger.info(f"Credits added for merchant {merchant_id}: +{amount} (balance: {balance_after})")
    return balance_after


def decrement_credits_if_available(
    merchant_id: int,
    amount: int,
    db: Session,
    transaction_type: str = "review_request",
    review_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> bool:
    """Atomically deduct credits only if the balance covers them.

    A single conditional UPDATE (balance = balance - n WHERE balance >= n);
    the affected row count decides the outcome, so the balance can never be
    observed below zero however many callers race.

    Returns:
        True if the credits were deducted, False if the balance was insufficient
    """
    if amount <= 0:
        raise ValueError("Credit decrement must be positive")

    try:
        updated = (
            db.query(Merchant)
            .filter(Merchant.id == merchant_id, Merchant.credit_balance >= amount)
            .update({Merchant.credit_balance: Merchant.credit_balance - amount}, synchronize_session=False)
        )
        if updated == 0:
            db.rollback()
            logger.warning(f"Insufficient credits for merchant {merchant_id} (required: {amount})")
            return False

        balance_after = _record_transaction(
            merchant_id, -amount, transaction_type, db, review_id=review_id, metadata=metadata
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    credits_counter.labels(direction="consumed").inc(amount)
    logger.info(f"Credits deducted for merchant {merchant_id}: -{amount} (balance: {balance_after})")
    return True


def get_credit_transactions(merchant_id: int, limit: int = 50, db: Session = None) -> List[Dict[str, Any]]:
    """Recent credit transactions, newest first"""
    transactions = (
        db.query(CreditTransaction)
        .filter(CreditTransaction.merchant_id == merchant_id)
        .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": t.id,
            "transaction_type": t.transaction_type,
            "credits": t.credits,
            "balance_after": t.balance_after,
            "review_id": t.review_id,
            "metadata": t.transaction_metadata or {},
            "created_at": t.created_at.isoformat() if t.created_at else None,
        }
        for t in transactions
    ]
