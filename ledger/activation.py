#======================================================================================
#
#   ACTIVATION LEDGER: submit / approve / reject activation requests
#
#======================================================================================
import logging
from typing import Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from extensions import db
from models import (
    ActivationRequest, User, Transaction, ReferralCode,
    RequestStatus, TransactionType, TransactionStatus, NotificationType, utcnow,
)
from ledger.config import LedgerConfig
from ledger.exceptions import (
    LedgerException, NotFoundError, ValidationError, ConflictError, UpstreamError,
)
from ledger.outcome import LedgerOutcome
from ledger.admin_account import AdminAccountResolver
from ledger.notifications import NotificationHelper
from ledger import wallets
from logger import AUDIT_LOGGER

logger = logging.getLogger(__name__)
ledger_log = logging.getLogger(AUDIT_LOGGER)


class ActivationLedger:

    # ==========================================================
    #                  SUBMISSION
    # ==========================================================
    @staticmethod
    def submit_request(user_id: int, utr_number) -> LedgerOutcome:
        """
        Record a user's proof of the activation payment for admin review.
        No money moves here.
        """
        if not isinstance(utr_number, str) or len(utr_number.strip()) < LedgerConfig.MIN_UTR_LENGTH:
            raise ValidationError(
                f"Invalid UTR number. Must be at least {LedgerConfig.MIN_UTR_LENGTH} characters."
            )
        utr = utr_number.strip().upper()

        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")

        if user.is_referral_active:
            raise ConflictError("Account already activated")

        pending = ActivationRequest.query.filter_by(
            user_id=user_id, status=RequestStatus.PENDING.value
        ).first()
        if pending:
            raise ConflictError("You already have a pending activation request")

        if ActivationRequest.query.filter_by(utr_number=utr).first():
            raise ConflictError("This UTR number has already been used")

        has_referrer = bool(user.referrer_id)
        referrer_name = None
        if has_referrer:
            try:
                referrer = db.session.get(User, user.referrer_id)
                referrer_name = referrer.name if referrer else None
            except SQLAlchemyError as e:
                logger.error(f"Error fetching referrer {user.referrer_id}: {e}")

        activation = ActivationRequest(
            user_id=user_id,
            user_name=user.name,
            user_email=user.email,
            user_phone=user.phone or "",
            utr_number=utr,
            amount=LedgerConfig.ACTIVATION_AMOUNT,
            has_referrer=has_referrer,
            referrer_id=user.referrer_id,
            referrer_name=referrer_name,
            status=RequestStatus.PENDING.value,
        )

        try:
            db.session.add(activation)
            db.session.commit()
        except IntegrityError as e:
            # a concurrent submission won the UTR or pending-request index
            db.session.rollback()
            logger.warning(f"Activation request for user {user_id} rejected by constraint: {e.orig}")
            raise ConflictError("Duplicate activation request or UTR number")
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to store activation request for user {user_id}: {e}")
            raise UpstreamError("Failed to store activation request")

        logger.info(f"Activation request {activation.id} submitted by user {user_id} (UTR {utr})")

        outcome = LedgerOutcome.committed(
            "Activation request submitted! Admin will verify your payment.",
            record_id=activation.id,
        )
        warning = NotificationHelper.send_best_effort(NotificationHelper.build(
            user_id,
            NotificationType.ACTIVATION_SUBMITTED,
            "Activation Request Submitted",
            "Your payment is being verified. You'll be notified once approved.",
        ))
        # the submitter sees the pending request anyway; no warning surfaced
        if warning:
            logger.warning(f"Submission notice for request {activation.id} not stored")
        return outcome

    # ==========================================================
    #                  APPROVAL
    # ==========================================================
    @staticmethod
    def approve(request_id: int, approver_id: int) -> LedgerOutcome:
        """
        Split the activation fee and apply every resulting write in one
        transaction: user, referrer and admin wallets, their ledger lines and
        notifications, the admin stats singleton and the request itself.

        The referral code flag is flipped afterwards in its own commit; if
        that fails the outcome carries a warning instead of an error.
        """
        activation = db.session.get(ActivationRequest, request_id)
        if not activation:
            raise NotFoundError("Request not found")

        if activation.status != RequestStatus.PENDING.value:
            raise ConflictError("Request already processed")

        user = db.session.get(User, activation.user_id)
        if not user:
            raise NotFoundError("User not found")

        split = LedgerConfig.split_activation(activation.has_referrer)
        admin_id = AdminAccountResolver.get_admin_user_id()

        # snapshot before the session expires on commit
        user_id = user.id
        user_name = activation.user_name or user.name
        referral_code = user.referral_code
        referrer_id = activation.referrer_id if activation.has_referrer else None
        utr = activation.utr_number
        now = utcnow()

        try:
            if not wallets.claim_pending(
                ActivationRequest, request_id,
                status=RequestStatus.APPROVED.value,
                approved_by=approver_id,
                approved_at=now,
            ):
                raise ConflictError("Request already processed")

            # 1. the activated user
            if not wallets.credit_wallet(user_id, split.user_credit):
                raise NotFoundError("User wallet not found")
            user.is_referral_active = True
            user.activated_at = now

            db.session.add(Transaction(
                user_id=user_id,
                amount=split.user_credit,
                type=TransactionType.ACTIVATION_PAYMENT.value,
                status=TransactionStatus.SUCCESS.value,
                utr_number=utr,
                description=(
                    "Account activation (Referral bonus to referrer)"
                    if activation.has_referrer
                    else f"Account activation (₹{split.user_credit} credited to wallet)"
                ),
                created_at=now,
            ))

            # 2. the referrer
            if referrer_id and split.referrer_bonus > 0:
                if not wallets.credit_wallet(referrer_id, split.referrer_bonus):
                    raise NotFoundError("Referrer not found")
                wallets.bump_user_stats(
                    referrer_id,
                    total_referrals=1,
                    active_referrals=1,
                    total_earnings=split.referrer_bonus,
                )
                db.session.add(Transaction(
                    user_id=referrer_id,
                    amount=split.referrer_bonus,
                    type=TransactionType.REFERRAL_BONUS.value,
                    status=TransactionStatus.SUCCESS.value,
                    description=f"Referral bonus from {user_name}",
                    referred_user_id=user_id,
                    created_at=now,
                ))
                db.session.add(NotificationHelper.build(
                    referrer_id,
                    NotificationType.REFERRAL_ACTIVATED,
                    "🎉 New Referral Activated!",
                    f"{user_name} activated their account. You earned ₹{split.referrer_bonus}!",
                    amount=split.referrer_bonus,
                ))

            # 3. the platform
            if split.admin_share > 0:
                if not wallets.credit_wallet(admin_id, split.admin_share):
                    AdminAccountResolver.reset_cache()
                    raise NotFoundError("Admin user not found")
                wallets.bump_user_stats(admin_id, total_earnings=split.admin_share)
                db.session.add(Transaction(
                    user_id=admin_id,
                    amount=split.admin_share,
                    type=TransactionType.PLATFORM_FEE.value,
                    status=TransactionStatus.SUCCESS.value,
                    description=f"Platform fee from {user_name}'s activation",
                    source_user_id=user_id,
                    utr_number=utr,
                    created_at=now,
                ))
                wallets.bump_admin_stats(earnings=split.admin_share, activations=1)

            db.session.add(NotificationHelper.build(
                user_id,
                NotificationType.ACTIVATION_APPROVED,
                "🎉 Activation Approved!",
                "Your account is activated! Start referring to earn more."
                if activation.has_referrer
                else f"Your account is activated with ₹{split.user_credit} bonus!",
            ))

            db.session.commit()

        except LedgerException:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Activation approval {request_id} rolled back: {e}", exc_info=True)
            raise UpstreamError("Failed to approve activation")

        ledger_log.info(
            f"ACTIVATION request={request_id} user={user_id} user_credit={split.user_credit} "
            f"referrer={referrer_id} referrer_bonus={split.referrer_bonus} "
            f"admin={admin_id} admin_share={split.admin_share} approver={approver_id}"
        )

        outcome = LedgerOutcome.committed("Activation approved successfully", record_id=request_id)

        warning = ReferralCodeActivator.activate(user_id, referral_code, user_name)
        if warning:
            outcome.with_warning(warning)
        return outcome

    # ==========================================================
    #                  REJECTION
    # ==========================================================
    @staticmethod
    def reject(request_id: int, reason: Optional[str], rejector_id: int) -> LedgerOutcome:
        activation = db.session.get(ActivationRequest, request_id)
        if not activation:
            raise NotFoundError("Request not found")

        if activation.status != RequestStatus.PENDING.value:
            raise ConflictError("Request already processed")

        user_id = activation.user_id
        reason = (reason or "").strip()

        try:
            if not wallets.claim_pending(
                ActivationRequest, request_id,
                status=RequestStatus.REJECTED.value,
                rejected_by=rejector_id,
                rejected_at=utcnow(),
                rejection_reason=reason or "Payment verification failed",
            ):
                raise ConflictError("Request already processed")
            db.session.commit()
        except LedgerException:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Activation rejection {request_id} rolled back: {e}")
            raise UpstreamError("Failed to reject activation")

        logger.info(f"Activation request {request_id} rejected by {rejector_id}")

        outcome = LedgerOutcome.committed("Activation rejected", record_id=request_id)
        warning = NotificationHelper.send_best_effort(NotificationHelper.build(
            user_id,
            NotificationType.ACTIVATION_REJECTED,
            "❌ Activation Rejected",
            reason or "Payment verification failed. Please contact support.",
        ))
        if warning:
            outcome.with_warning(warning)
        return outcome


class ReferralCodeActivator:
    """Best-effort flip of ReferralCode.is_active after an activation commits."""

    @staticmethod
    def activate(user_id: int, code: Optional[str], user_name: Optional[str]) -> Optional[str]:
        if not code:
            logger.warning(f"User {user_id} has no referral code")
            return f"User {user_id} has no referral code"

        try:
            ReferralCodeActivator.upsert(user_id, code, user_name)
            db.session.commit()
            logger.info(f"Referral code {code} activated for user {user_id}")
            return None
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to activate referral code {code} for user {user_id}: {e}")
            return f"Referral code {code} is still inactive"

    @staticmethod
    def upsert(user_id: int, code: str, user_name: Optional[str]):
        row = db.session.get(ReferralCode, code)
        if row is None:
            row = ReferralCode(code=code, user_id=user_id)
            db.session.add(row)
        row.user_name = user_name
        row.is_active = True
        row.updated_at = utcnow()
