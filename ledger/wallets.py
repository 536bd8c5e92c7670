# ledger/wallets.py
"""
Low-level statements shared by the ledger transitions.

All helpers run inside the caller's open session transaction and never
commit. Balances are changed with SQL increments so concurrent transitions
cannot overwrite each other's deltas.
"""
import logging
from sqlalchemy import update
from extensions import db
from models import Wallet, User, AdminStats, RequestStatus, utcnow

logger = logging.getLogger(__name__)

_NO_SYNC = {"synchronize_session": False}


def claim_pending(model, record_id: int, **values) -> bool:
    """
    Move a PENDING row to its next status in one conditional UPDATE.
    False means another caller already moved it.
    """
    values.setdefault("updated_at", utcnow())
    result = db.session.execute(
        update(model)
        .where(model.id == record_id, model.status == RequestStatus.PENDING.value)
        .values(**values),
        execution_options=_NO_SYNC,
    )
    return result.rowcount == 1


def credit_wallet(user_id: int, amount: int) -> bool:
    result = db.session.execute(
        update(Wallet)
        .where(Wallet.user_id == user_id)
        .values(balance=Wallet.balance + amount, last_updated=utcnow(), updated_at=utcnow()),
        execution_options=_NO_SYNC,
    )
    return result.rowcount == 1


def debit_wallet(user_id: int, amount: int) -> bool:
    """Debit only when the balance covers the amount."""
    result = db.session.execute(
        update(Wallet)
        .where(Wallet.user_id == user_id, Wallet.balance >= amount)
        .values(balance=Wallet.balance - amount, last_updated=utcnow(), updated_at=utcnow()),
        execution_options=_NO_SYNC,
    )
    return result.rowcount == 1


def bump_user_stats(user_id: int, **increments) -> bool:
    values = {name: getattr(User, name) + delta for name, delta in increments.items()}
    values["updated_at"] = utcnow()
    result = db.session.execute(
        update(User).where(User.id == user_id).values(**values),
        execution_options=_NO_SYNC,
    )
    return result.rowcount == 1


def bump_admin_stats(earnings: int, activations: int = 1):
    """Merge-upsert of the AdminStats singleton."""
    if db.session.get(AdminStats, AdminStats.EARNINGS_ID) is None:
        db.session.add(AdminStats(id=AdminStats.EARNINGS_ID, total_earnings=0, total_activations=0))
        db.session.flush()

    db.session.execute(
        update(AdminStats)
        .where(AdminStats.id == AdminStats.EARNINGS_ID)
        .values(
            total_earnings=AdminStats.total_earnings + earnings,
            total_activations=AdminStats.total_activations + activations,
            updated_at=utcnow(),
        ),
        execution_options=_NO_SYNC,
    )


def current_balance(user_id: int) -> int:
    wallet = Wallet.query.filter_by(user_id=user_id).first()
    return wallet.balance if wallet else 0
