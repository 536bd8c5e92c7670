"""
Activation ledger tests

Tests cover:
1. Fee split with and without a referrer
2. Double approval and lost status races
3. Rejection
4. UTR submission rules
5. The referral-code follow-up write
"""
import pytest
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import (
    ActivationRequest, AdminStats, Notification, ReferralCode, Transaction, User,
    NotificationType, RequestStatus, TransactionType,
)
from ledger import wallets
from ledger.activation import ActivationLedger, ReferralCodeActivator
from ledger.config import LedgerConfig
from ledger.exceptions import ConflictError, NotFoundError, ValidationError
from ledger.outcome import OutcomeStatus


def _transactions(user_id, kind=None):
    query = Transaction.query.filter_by(user_id=user_id)
    if kind:
        query = query.filter_by(type=kind.value)
    return query.all()


class TestFeeSplit:

    def test_split_sums_to_activation_amount(self):
        assert LedgerConfig.REFERRAL_BONUS + LedgerConfig.ADMIN_SHARE == LedgerConfig.ACTIVATION_AMOUNT
        for has_referrer in (True, False):
            assert LedgerConfig.split_activation(has_referrer).total == LedgerConfig.ACTIVATION_AMOUNT

    def test_split_with_referrer_pays_referrer_not_user(self):
        split = LedgerConfig.split_activation(True)
        assert (split.user_credit, split.referrer_bonus, split.admin_share) == (0, 10, 10)

    def test_split_without_referrer_credits_user(self):
        split = LedgerConfig.split_activation(False)
        assert (split.user_credit, split.referrer_bonus, split.admin_share) == (10, 0, 10)


class TestApproval:

    def test_no_referrer_end_to_end(self, ctx, factory):
        """User without referrer pays, submits UTR, admin approves."""
        admin_id = factory.admin(balance=50)
        user_id = factory.user(name="Rahul Sharma")

        submitted = ActivationLedger.submit_request(user_id, "123456789012")
        outcome = ActivationLedger.approve(submitted.record_id, admin_id)

        assert outcome.status == OutcomeStatus.COMMITTED
        assert outcome.message == "Activation approved successfully"
        assert factory.balance(user_id) == 10
        assert factory.balance(admin_id) == 60

        user = db.session.get(User, user_id)
        assert user.is_referral_active is True
        assert user.activated_at is not None

        payments = _transactions(user_id, TransactionType.ACTIVATION_PAYMENT)
        assert [t.amount for t in payments] == [10]
        assert payments[0].utr_number == "123456789012"
        fees = _transactions(admin_id, TransactionType.PLATFORM_FEE)
        assert [t.amount for t in fees] == [10]
        assert fees[0].source_user_id == user_id

        request = db.session.get(ActivationRequest, submitted.record_id)
        assert request.status == RequestStatus.APPROVED.value
        assert request.approved_by == admin_id

        stats = db.session.get(AdminStats, AdminStats.EARNINGS_ID)
        assert (stats.total_earnings, stats.total_activations) == (10, 1)

        code = db.session.get(ReferralCode, user.referral_code)
        assert code.is_active is True

    def test_referred_user_end_to_end(self, ctx, factory):
        """U2 referred by U1: U1 gets the bonus, U2's wallet stays at zero."""
        admin_id = factory.admin()
        u1 = factory.user(name="Priya", balance=30, active=True)
        u2 = factory.user(name="Amit", referrer_id=u1)

        submitted = ActivationLedger.submit_request(u2, "ABCDEFGHIJKL")
        ActivationLedger.approve(submitted.record_id, admin_id)

        assert factory.balance(u2) == 0
        assert factory.balance(u1) == 40
        assert factory.balance(admin_id) == 10

        referrer = db.session.get(User, u1)
        assert referrer.total_referrals == 1
        assert referrer.active_referrals == 1
        assert referrer.total_earnings == 10
        assert db.session.get(User, u2).is_referral_active is True

        bonus = _transactions(u1, TransactionType.REFERRAL_BONUS)
        assert len(bonus) == 1
        assert bonus[0].amount == 10
        assert bonus[0].referred_user_id == u2
        assert bonus[0].description == "Referral bonus from Amit"

        activation = _transactions(u2, TransactionType.ACTIVATION_PAYMENT)
        assert activation[0].amount == 0

        kinds = {n.type for n in Notification.query.filter_by(user_id=u1)}
        assert NotificationType.REFERRAL_ACTIVATED.value in kinds

    def test_approving_twice_conflicts_without_moving_money(self, ctx, factory):
        admin_id = factory.admin()
        user_id = factory.user()
        request_id = ActivationLedger.submit_request(user_id, "UTR000000000001").record_id
        ActivationLedger.approve(request_id, admin_id)

        with pytest.raises(ConflictError) as exc:
            ActivationLedger.approve(request_id, admin_id)

        assert exc.value.message == "Request already processed"
        assert factory.balance(user_id) == 10
        assert factory.balance(admin_id) == 10
        assert len(_transactions(admin_id, TransactionType.PLATFORM_FEE)) == 1

    def test_lost_status_race_rolls_back(self, ctx, factory, monkeypatch):
        """Another approver flipped the status between the read and the update."""
        admin_id = factory.admin()
        user_id = factory.user()
        request_id = ActivationLedger.submit_request(user_id, "UTR000000000002").record_id

        monkeypatch.setattr(wallets, "claim_pending", lambda *args, **kwargs: False)

        with pytest.raises(ConflictError):
            ActivationLedger.approve(request_id, admin_id)

        assert factory.balance(user_id) == 0
        assert factory.balance(admin_id) == 0
        assert Transaction.query.count() == 0
        assert db.session.get(User, user_id).is_referral_active is False

    def test_missing_admin_leaves_request_pending(self, ctx, factory):
        user_id = factory.user()
        request_id = ActivationLedger.submit_request(user_id, "UTR000000000003").record_id

        with pytest.raises(NotFoundError) as exc:
            ActivationLedger.approve(request_id, approver_id=user_id)

        assert exc.value.message == "Admin user not found"
        request = db.session.get(ActivationRequest, request_id)
        assert request.status == RequestStatus.PENDING.value
        assert factory.balance(user_id) == 0

    def test_unknown_request(self, ctx, factory):
        admin_id = factory.admin()
        with pytest.raises(NotFoundError) as exc:
            ActivationLedger.approve(9999, admin_id)
        assert exc.value.message == "Request not found"

    def test_referral_code_failure_is_reported_as_warning(self, ctx, factory, monkeypatch):
        admin_id = factory.admin()
        user_id = factory.user()
        request_id = ActivationLedger.submit_request(user_id, "UTR000000000004").record_id

        def broken_upsert(*args, **kwargs):
            raise SQLAlchemyError("write refused")

        monkeypatch.setattr(ReferralCodeActivator, "upsert", staticmethod(broken_upsert))

        outcome = ActivationLedger.approve(request_id, admin_id)

        assert outcome.status == OutcomeStatus.COMMITTED_WITH_WARNING
        assert "still inactive" in outcome.warning
        assert outcome.to_dict()["warning"] == outcome.warning
        # the money movement itself is committed
        assert factory.balance(user_id) == 10
        assert db.session.get(User, user_id).is_referral_active is True
        code = db.session.get(ReferralCode, db.session.get(User, user_id).referral_code)
        assert code.is_active is False

    def test_configured_admin_receives_fee(self, ctx, factory):
        first_admin = factory.admin(name="First Admin")
        second_admin = factory.admin(name="Second Admin")
        ctx.config["ADMIN_USER_ID"] = str(second_admin)
        user_id = factory.user()

        request_id = ActivationLedger.submit_request(user_id, "UTR000000000005").record_id
        ActivationLedger.approve(request_id, first_admin)

        assert factory.balance(second_admin) == 10
        assert factory.balance(first_admin) == 0


class TestRejection:

    def test_reject_leaves_balances_and_blocks_retry(self, ctx, factory):
        admin_id = factory.admin()
        user_id = factory.user(balance=5)
        request_id = ActivationLedger.submit_request(user_id, "UTR000000000010").record_id

        outcome = ActivationLedger.reject(request_id, "Payment not received", admin_id)

        assert outcome.message == "Activation rejected"
        request = db.session.get(ActivationRequest, request_id)
        assert request.status == RequestStatus.REJECTED.value
        assert request.rejection_reason == "Payment not received"
        assert request.rejected_by == admin_id
        assert factory.balance(user_id) == 5
        assert factory.balance(admin_id) == 0

        with pytest.raises(ConflictError):
            ActivationLedger.reject(request_id, "again", admin_id)
        with pytest.raises(ConflictError):
            ActivationLedger.approve(request_id, admin_id)

        rejected_notes = Notification.query.filter_by(
            user_id=user_id, type=NotificationType.ACTIVATION_REJECTED.value
        ).all()
        assert len(rejected_notes) == 1
        assert rejected_notes[0].message == "Payment not received"

    def test_reject_without_reason_uses_default(self, ctx, factory):
        admin_id = factory.admin()
        user_id = factory.user()
        request_id = ActivationLedger.submit_request(user_id, "UTR000000000011").record_id

        ActivationLedger.reject(request_id, None, admin_id)

        request = db.session.get(ActivationRequest, request_id)
        assert request.rejection_reason == "Payment verification failed"

    def test_user_can_resubmit_after_rejection(self, ctx, factory):
        admin_id = factory.admin()
        user_id = factory.user()
        first = ActivationLedger.submit_request(user_id, "UTR000000000012").record_id
        ActivationLedger.reject(first, "wrong UTR", admin_id)

        second = ActivationLedger.submit_request(user_id, "UTR000000000013")
        assert second.record_id != first


class TestSubmission:

    def test_short_utr_rejected(self, ctx, factory):
        user_id = factory.user()
        with pytest.raises(ValidationError) as exc:
            ActivationLedger.submit_request(user_id, "12345")
        assert "at least 12 characters" in exc.value.message
        assert ActivationRequest.query.count() == 0

    def test_missing_utr_rejected(self, ctx, factory):
        user_id = factory.user()
        with pytest.raises(ValidationError):
            ActivationLedger.submit_request(user_id, None)

    def test_same_utr_in_any_case_conflicts(self, ctx, factory):
        first = factory.user()
        second = factory.user()
        ActivationLedger.submit_request(first, "abcdefghijkl")

        with pytest.raises(ConflictError) as exc:
            ActivationLedger.submit_request(second, "ABCDEFGHIJKL")
        assert exc.value.message == "This UTR number has already been used"

    def test_pending_request_blocks_second_submission(self, ctx, factory):
        user_id = factory.user()
        ActivationLedger.submit_request(user_id, "UTR000000000020")

        with pytest.raises(ConflictError) as exc:
            ActivationLedger.submit_request(user_id, "UTR000000000021")
        assert exc.value.message == "You already have a pending activation request"

    def test_active_user_cannot_submit(self, ctx, factory):
        user_id = factory.user(active=True)
        with pytest.raises(ConflictError) as exc:
            ActivationLedger.submit_request(user_id, "UTR000000000022")
        assert exc.value.message == "Account already activated"

    def test_unknown_user(self, ctx):
        with pytest.raises(NotFoundError):
            ActivationLedger.submit_request(4242, "UTR000000000023")

    def test_request_snapshots_referrer(self, ctx, factory):
        referrer = factory.user(name="Neha", active=True)
        user_id = factory.user(name="Vikram", referrer_id=referrer)

        outcome = ActivationLedger.submit_request(user_id, " utr000000000024 ")

        request = db.session.get(ActivationRequest, outcome.record_id)
        assert request.utr_number == "UTR000000000024"
        assert request.amount == 20
        assert request.has_referrer is True
        assert request.referrer_name == "Neha"
        assert request.status == RequestStatus.PENDING.value
        assert Notification.query.filter_by(
            user_id=user_id, type=NotificationType.ACTIVATION_SUBMITTED.value
        ).count() == 1


class TestAuditLog:

    def test_submission_and_rejection_are_not_audited(self, ctx, factory, audit_records):
        admin_id = factory.admin()
        user_id = factory.user()

        request_id = ActivationLedger.submit_request(user_id, "123456789012").record_id
        ActivationLedger.reject(request_id, "UTR not found", admin_id)

        assert audit_records == []

    def test_approval_writes_one_audit_line(self, ctx, factory, audit_records):
        admin_id = factory.admin()
        user_id = factory.user()
        request_id = ActivationLedger.submit_request(user_id, "123456789012").record_id

        ActivationLedger.approve(request_id, admin_id)

        assert len(audit_records) == 1
        assert audit_records[0].getMessage().startswith(f"ACTIVATION request={request_id} user={user_id}")
