# models.py - Flask-SQLAlchemy models for users, wallets and the activation ledger
from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import CheckConstraint, Index, text
from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash
from extensions import db

# ===========================================================
# ENUM DEFINITIONS
# ===========================================================

class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class RequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TransactionType(str, Enum):
    ACTIVATION_PAYMENT = "ACTIVATION_PAYMENT"
    REFERRAL_BONUS = "REFERRAL_BONUS"
    PLATFORM_FEE = "PLATFORM_FEE"
    WITHDRAWAL = "WITHDRAWAL"
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class TransactionStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class NotificationType(str, Enum):
    WELCOME = "WELCOME"
    ACTIVATION_SUBMITTED = "ACTIVATION_SUBMITTED"
    ACTIVATION_APPROVED = "ACTIVATION_APPROVED"
    ACTIVATION_REJECTED = "ACTIVATION_REJECTED"
    REFERRAL_ACTIVATED = "REFERRAL_ACTIVATED"
    WITHDRAWAL_APPROVED = "WITHDRAWAL_APPROVED"
    WITHDRAWAL_REJECTED = "WITHDRAWAL_REJECTED"
    SUPPORT_REQUEST = "SUPPORT_REQUEST"


class TicketStatus(str, Enum):
    PENDING = "PENDING"
    REPLIED = "REPLIED"
    RESOLVED = "RESOLVED"


def utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None

# ===========================================================
# BASE MIXIN FOR COMMON FIELDS
# ===========================================================

class BaseMixin:
    """Provides created_at and updated_at timestamps to inheriting models."""
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

# ===========================================================
# USER & WALLET
# ===========================================================

class User(db.Model, BaseMixin):
    """Core user entity: one wallet, one referral code, many transactions."""
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    password_hash = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(20), nullable=False, default=UserRole.USER.value, index=True)

    referral_code = db.Column(db.String(20), unique=True, nullable=False)
    referred_by = db.Column(db.String(20), nullable=True)  # The referral code used during signup
    referrer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    is_referral_active = db.Column(db.Boolean, nullable=False, default=False)
    activated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    total_referrals = db.Column(db.Integer, nullable=False, default=0)
    active_referrals = db.Column(db.Integer, nullable=False, default=0)
    total_earnings = db.Column(db.Integer, nullable=False, default=0)

    wallet = db.relationship("Wallet", uselist=False, back_populates="user", cascade="all,delete-orphan")
    referrer = db.relationship("User", remote_side=[id])

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def balance(self) -> int:
        return self.wallet.balance if self.wallet else 0

    def to_dict(self, base_url=None):
        result = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "referralCode": self.referral_code,
            "referredBy": self.referred_by,
            "referrerId": self.referrer_id,
            "isReferralActive": self.is_referral_active,
            "activatedAt": _iso(self.activated_at),
            "wallet": {
                "balance": self.balance,
                "lastUpdated": _iso(self.wallet.last_updated) if self.wallet else None,
            },
            "stats": {
                "totalReferrals": self.total_referrals,
                "activeReferrals": self.active_referrals,
                "totalEarnings": self.total_earnings,
            },
            "createdAt": _iso(self.created_at),
        }
        if base_url:
            result["referralLink"] = f"{base_url.rstrip('/')}/register?ref={self.referral_code}"
        return result


class Wallet(db.Model, BaseMixin):
    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    balance = db.Column(db.Integer, nullable=False, default=0)  # whole rupees
    last_updated = db.Column(db.DateTime(timezone=True), default=utcnow)

    user = db.relationship("User", back_populates="wallet")


class ReferralCode(db.Model, BaseMixin):
    """Lookup row used by the registration form; is_active trails the owner's activation."""
    __tablename__ = "referral_codes"

    code = db.Column(db.String(20), primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user_name = db.Column(db.String(80))
    is_active = db.Column(db.Boolean, nullable=False, default=False)

# ===========================================================
# ACTIVATION REQUESTS & WITHDRAWALS
# ===========================================================

class ActivationRequest(db.Model, BaseMixin):
    __tablename__ = "activation_requests"
    __table_args__ = (
        # at most one PENDING request per user
        Index(
            "uq_activation_requests_pending_user",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'PENDING'"),
            postgresql_where=text("status = 'PENDING'"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    user_name = db.Column(db.String(80))
    user_email = db.Column(db.String(120))
    user_phone = db.Column(db.String(20), default="")
    utr_number = db.Column(db.String(64), unique=True, nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    has_referrer = db.Column(db.Boolean, nullable=False, default=False)
    referrer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    referrer_name = db.Column(db.String(80), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=RequestStatus.PENDING.value, index=True)

    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True))
    rejected_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True))
    rejection_reason = db.Column(db.String(255))

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user_name,
            "userEmail": self.user_email,
            "userPhone": self.user_phone,
            "utrNumber": self.utr_number,
            "amount": self.amount,
            "hasReferrer": self.has_referrer,
            "referrerId": self.referrer_id,
            "referrerName": self.referrer_name,
            "status": self.status,
            "approvedBy": self.approved_by,
            "approvedAt": _iso(self.approved_at),
            "rejectedBy": self.rejected_by,
            "rejectedAt": _iso(self.rejected_at),
            "rejectionReason": self.rejection_reason,
            "createdAt": _iso(self.created_at),
        }


class Withdrawal(db.Model, BaseMixin):
    __tablename__ = "withdrawals"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    user_name = db.Column(db.String(80))
    user_email = db.Column(db.String(120))
    amount = db.Column(db.Integer, nullable=False)
    upi_id = db.Column(db.String(120), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=RequestStatus.PENDING.value, index=True)
    admin_note = db.Column(db.String(255))

    approved_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True))
    rejected_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True))

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user_name,
            "userEmail": self.user_email,
            "amount": self.amount,
            "upiId": self.upi_id,
            "status": self.status,
            "adminNote": self.admin_note,
            "approvedAt": _iso(self.approved_at),
            "rejectedAt": _iso(self.rejected_at),
            "createdAt": _iso(self.created_at),
        }


class AdminPayout(db.Model, BaseMixin):
    """Platform earnings paid out to the admin's bank account; approved on creation."""
    __tablename__ = "admin_withdrawals"

    id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    admin_name = db.Column(db.String(80))
    admin_email = db.Column(db.String(120))
    amount = db.Column(db.Integer, nullable=False)
    account_holder_name = db.Column(db.String(120), nullable=False)
    account_number = db.Column(db.String(34), nullable=False)
    ifsc_code = db.Column(db.String(11), nullable=False)
    bank_name = db.Column(db.String(120))
    status = db.Column(db.String(20), nullable=False, default=RequestStatus.APPROVED.value)
    approved_at = db.Column(db.DateTime(timezone=True))

    @property
    def masked_account(self):
        return f"****{self.account_number[-4:]}"

    def to_dict(self):
        return {
            "id": self.id,
            "adminId": self.admin_id,
            "amount": self.amount,
            "bankDetails": {
                "accountHolderName": self.account_holder_name,
                "accountNumber": self.masked_account,
                "ifscCode": self.ifsc_code,
                "bankName": self.bank_name,
            },
            "status": self.status,
            "approvedAt": _iso(self.approved_at),
            "createdAt": _iso(self.created_at),
        }

# ===========================================================
# LEDGER RECORDS
# ===========================================================

class Transaction(db.Model):
    """Append-only ledger line, one per wallet movement."""
    __tablename__ = "transactions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(32), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=TransactionStatus.SUCCESS.value)
    description = db.Column(db.String(255))
    utr_number = db.Column(db.String(64))
    referred_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    source_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    withdrawal_id = db.Column(db.Integer, db.ForeignKey("withdrawals.id"), nullable=True)
    admin_payout_id = db.Column(db.Integer, db.ForeignKey("admin_withdrawals.id"), nullable=True)
    upi_id = db.Column(db.String(120))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "amount": self.amount,
            "type": self.type,
            "status": self.status,
            "description": self.description,
            "utrNumber": self.utr_number,
            "withdrawalId": self.withdrawal_id,
            "createdAt": _iso(self.created_at),
        }


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False)
    title = db.Column(db.String(120), nullable=False)
    message = db.Column(db.Text, nullable=False)
    amount = db.Column(db.Integer, nullable=True)
    ticket_id = db.Column(db.Integer, db.ForeignKey("support_tickets.id"), nullable=True)
    read = db.Column(db.Boolean, nullable=False, default=False, index=True)
    read_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "amount": self.amount,
            "ticketId": self.ticket_id,
            "read": self.read,
            "createdAt": _iso(self.created_at),
        }


class AdminStats(db.Model):
    """Singleton row (id = "earnings") with the platform's lifetime totals."""
    __tablename__ = "admin_stats"

    EARNINGS_ID = "earnings"

    id = db.Column(db.String(32), primary_key=True)
    total_earnings = db.Column(db.Integer, nullable=False, default=0)
    total_activations = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow)

# ===========================================================
# SUPPORT
# ===========================================================

class SupportTicket(db.Model, BaseMixin):
    __tablename__ = "support_tickets"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    user_name = db.Column(db.String(80), nullable=False)
    user_email = db.Column(db.String(120), nullable=False)
    user_phone = db.Column(db.String(20), default="")
    subject = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=TicketStatus.PENDING.value, index=True)
    last_reply = db.Column(db.Text)
    replied_at = db.Column(db.DateTime(timezone=True))
    resolved_at = db.Column(db.DateTime(timezone=True))

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user_name,
            "userEmail": self.user_email,
            "userPhone": self.user_phone,
            "subject": self.subject,
            "message": self.message,
            "status": self.status,
            "lastReply": self.last_reply,
            "repliedAt": _iso(self.replied_at),
            "resolvedAt": _iso(self.resolved_at),
            "createdAt": _iso(self.created_at),
        }

# ===========================================================
# AUTHENTICATED IDENTITY
# ===========================================================

class TokenIdentity(UserMixin):
    """Caller identity decoded from a bearer token; the profile row is loaded separately."""

    def __init__(self, uid):
        self.id = uid

    def get_id(self):
        return str(self.id)
