# ledger/withdrawal.py - withdrawal requests, approvals and admin payouts
from decimal import Decimal, InvalidOperation
import logging
import re
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from extensions import db
from models import (
    Withdrawal, AdminPayout, User, Transaction,
    RequestStatus, TransactionType, TransactionStatus, NotificationType, utcnow,
)
from ledger.config import LedgerConfig
from ledger.exceptions import (
    LedgerException, NotFoundError, ValidationError, ConflictError, UpstreamError,
)
from ledger.outcome import LedgerOutcome
from ledger.notifications import NotificationHelper
from ledger import wallets
from logger import AUDIT_LOGGER

logger = logging.getLogger(__name__)
ledger_log = logging.getLogger(AUDIT_LOGGER)

UPI_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+@[a-zA-Z]{3,}$")
ACCOUNT_NUMBER_PATTERN = re.compile(r"^\d{9,18}$")
IFSC_PATTERN = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")


# ==========================================================
#                  WITHDRAWAL VALIDATOR
# ==========================================================
class WithdrawalValidator:

    @staticmethod
    def parse_amount(amount, maximum: Optional[int] = LedgerConfig.MAX_WITHDRAWAL) -> int:
        """Whole rupees only; bools and fractional values are refused."""
        if amount is None or amount == "" or isinstance(amount, bool):
            raise ValidationError(f"Minimum withdrawal is ₹{LedgerConfig.MIN_WITHDRAWAL}")
        try:
            amount_dec = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            raise ValidationError("Invalid amount format")

        if not amount_dec.is_finite() or amount_dec != amount_dec.to_integral_value():
            raise ValidationError("Amount must be a whole number of rupees")

        if amount_dec < LedgerConfig.MIN_WITHDRAWAL:
            raise ValidationError(f"Minimum withdrawal is ₹{LedgerConfig.MIN_WITHDRAWAL}")
        if maximum is not None and amount_dec > maximum:
            raise ValidationError(f"Maximum withdrawal is ₹{maximum}")
        return int(amount_dec)

    @staticmethod
    def validate_upi(upi_id) -> str:
        if not isinstance(upi_id, str) or not UPI_PATTERN.match(upi_id.strip()):
            raise ValidationError("Invalid UPI ID format")
        return upi_id.strip().lower()

    @staticmethod
    def validate_bank_details(details) -> dict:
        if not isinstance(details, dict):
            raise ValidationError("Please fill all bank details")

        values = {}
        for field in ("accountNumber", "ifscCode", "accountHolderName"):
            value = details.get(field)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError("Please fill all bank details")
            values[field] = value.strip()

        account = values["accountNumber"].replace(" ", "")
        if not ACCOUNT_NUMBER_PATTERN.match(account):
            raise ValidationError("Invalid bank account number")
        ifsc = values["ifscCode"].upper()
        if not IFSC_PATTERN.match(ifsc):
            raise ValidationError("Invalid IFSC code")

        bank_name = details.get("bankName")
        return {
            "account_number": account,
            "ifsc_code": ifsc,
            "account_holder_name": values["accountHolderName"],
            "bank_name": bank_name.strip() if isinstance(bank_name, str) and bank_name.strip() else None,
        }


# ==========================================================
#                  MAIN WITHDRAWAL PROCESSOR
# ==========================================================
class WithdrawalLedger:

    @staticmethod
    def create_request(user_id: int, amount, upi_id) -> LedgerOutcome:
        """
        Store a PENDING withdrawal. The balance is checked against the row
        read now; nothing is reserved or deducted until approval.
        """
        amount = WithdrawalValidator.parse_amount(amount)
        upi = WithdrawalValidator.validate_upi(upi_id)

        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")

        if amount > user.balance:
            raise ValidationError("Insufficient balance")

        withdrawal = Withdrawal(
            user_id=user_id,
            user_name=user.name,
            user_email=user.email,
            amount=amount,
            upi_id=upi,
            status=RequestStatus.PENDING.value,
        )
        try:
            db.session.add(withdrawal)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to create withdrawal record for user {user_id}: {e}")
            raise UpstreamError("Failed to submit withdrawal request")

        logger.info(f"Withdrawal {withdrawal.id} requested by user {user_id}: ₹{amount} to {upi}")
        return LedgerOutcome.committed("Withdrawal request submitted", record_id=withdrawal.id)

    @staticmethod
    def approve(withdrawal_id: int, admin_note: Optional[str], approver_id: int) -> LedgerOutcome:
        """
        Approve and pay out in one transaction: status flip, wallet debit,
        WITHDRAWAL ledger line and the user's notification.
        The debit is refused when the balance no longer covers the amount.
        """
        withdrawal = db.session.get(Withdrawal, withdrawal_id)
        if not withdrawal:
            raise NotFoundError("Withdrawal not found")

        if withdrawal.status != RequestStatus.PENDING.value:
            raise ConflictError("Withdrawal already processed")

        user_id = withdrawal.user_id
        amount = withdrawal.amount
        upi = withdrawal.upi_id

        try:
            if not wallets.claim_pending(
                Withdrawal, withdrawal_id,
                status=RequestStatus.APPROVED.value,
                approved_by=approver_id,
                approved_at=utcnow(),
                admin_note=(admin_note or "").strip() or "Approved and processed",
            ):
                raise ConflictError("Withdrawal already processed")

            if not wallets.debit_wallet(user_id, amount):
                if db.session.get(User, user_id) is None:
                    raise NotFoundError("User not found")
                raise ConflictError("Insufficient balance")

            db.session.add(Transaction(
                user_id=user_id,
                amount=amount,
                type=TransactionType.WITHDRAWAL.value,
                status=TransactionStatus.SUCCESS.value,
                description=f"Withdrawal to UPI: {upi}",
                withdrawal_id=withdrawal_id,
                upi_id=upi,
                created_at=utcnow(),
            ))
            db.session.add(NotificationHelper.build(
                user_id,
                NotificationType.WITHDRAWAL_APPROVED,
                "✅ Withdrawal Approved!",
                f"Your withdrawal of ₹{amount} to {upi} has been processed.",
                amount=amount,
            ))
            db.session.commit()

        except LedgerException:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Withdrawal approval {withdrawal_id} rolled back: {e}", exc_info=True)
            raise UpstreamError("Failed to approve withdrawal")

        ledger_log.info(
            f"WITHDRAWAL id={withdrawal_id} user={user_id} amount={amount} upi={upi} approver={approver_id}"
        )
        return LedgerOutcome.committed("Withdrawal approved", record_id=withdrawal_id)

    @staticmethod
    def reject(withdrawal_id: int, reason: Optional[str], rejector_id: int) -> LedgerOutcome:
        withdrawal = db.session.get(Withdrawal, withdrawal_id)
        if not withdrawal:
            raise NotFoundError("Withdrawal not found")

        if withdrawal.status != RequestStatus.PENDING.value:
            raise ConflictError("Withdrawal already processed")

        user_id = withdrawal.user_id
        reason = (reason or "").strip()

        try:
            if not wallets.claim_pending(
                Withdrawal, withdrawal_id,
                status=RequestStatus.REJECTED.value,
                rejected_by=rejector_id,
                rejected_at=utcnow(),
                admin_note=reason or "Withdrawal rejected",
            ):
                raise ConflictError("Withdrawal already processed")
            db.session.commit()
        except LedgerException:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Withdrawal rejection {withdrawal_id} rolled back: {e}")
            raise UpstreamError("Failed to reject withdrawal")

        logger.info(f"Withdrawal {withdrawal_id} rejected by {rejector_id}")

        outcome = LedgerOutcome.committed("Withdrawal rejected", record_id=withdrawal_id)
        warning = NotificationHelper.send_best_effort(NotificationHelper.build(
            user_id,
            NotificationType.WITHDRAWAL_REJECTED,
            "❌ Withdrawal Rejected",
            reason or "Your withdrawal request was rejected. Please contact support.",
        ))
        if warning:
            outcome.with_warning(warning)
        return outcome

    # ==========================================================
    #                  ADMIN EARNINGS PAYOUT
    # ==========================================================
    @staticmethod
    def admin_payout(admin_id: int, amount, bank_details) -> LedgerOutcome:
        """
        Pay the admin's earnings out to a bank account. There is no review
        step: the payout row, the wallet debit and the WITHDRAWAL ledger
        line are committed together or not at all.
        """
        amount = WithdrawalValidator.parse_amount(amount, maximum=None)
        bank = WithdrawalValidator.validate_bank_details(bank_details)

        admin = db.session.get(User, admin_id)
        if not admin or not admin.is_admin:
            raise NotFoundError("Admin user not found")

        if amount > admin.balance:
            raise ValidationError("Insufficient balance")

        admin_name = admin.name
        admin_email = admin.email
        now = utcnow()

        try:
            if not wallets.debit_wallet(admin_id, amount):
                raise ConflictError("Insufficient balance")

            payout = AdminPayout(
                admin_id=admin_id,
                admin_name=admin_name,
                admin_email=admin_email,
                amount=amount,
                status=RequestStatus.APPROVED.value,
                approved_at=now,
                **bank,
            )
            db.session.add(payout)
            db.session.flush()

            db.session.add(Transaction(
                user_id=admin_id,
                amount=amount,
                type=TransactionType.WITHDRAWAL.value,
                status=TransactionStatus.SUCCESS.value,
                description=f"Admin withdrawal to bank account {payout.masked_account}",
                admin_payout_id=payout.id,
                created_at=now,
            ))
            db.session.commit()

        except LedgerException:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Admin payout for {admin_id} rolled back: {e}", exc_info=True)
            raise UpstreamError("Failed to process withdrawal")

        ledger_log.info(
            f"ADMIN_PAYOUT id={payout.id} admin={admin_id} amount={amount} "
            f"account={payout.masked_account} ifsc={payout.ifsc_code}"
        )
        return LedgerOutcome.committed("Withdrawal processed successfully!", record_id=payout.id)

    # ==========================================================
    #                  QUERY HELPERS
    # ==========================================================
    @staticmethod
    def get_admin_payouts(admin_id: Optional[int] = None, limit: int = 50):
        query = AdminPayout.query
        if admin_id is not None:
            query = query.filter_by(admin_id=admin_id)
        return query.order_by(AdminPayout.created_at.desc(), AdminPayout.id.desc()).limit(limit).all()

    @staticmethod
    def get_user_withdrawals(user_id: int, limit: int = 20):
        return Withdrawal.query.filter_by(user_id=user_id)\
                               .order_by(Withdrawal.created_at.desc())\
                               .limit(limit)\
                               .all()

    @staticmethod
    def get_withdrawals(status: Optional[str] = None, limit: int = 100):
        query = Withdrawal.query
        if status:
            query = query.filter_by(status=status.upper())
        return query.order_by(Withdrawal.created_at.desc()).limit(limit).all()
