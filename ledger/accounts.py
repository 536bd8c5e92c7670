# ledger/accounts.py - user registration and referral code lookup
import logging
import re
import secrets
import uuid
from typing import Optional, Tuple
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from extensions import db
from models import User, Wallet, ReferralCode, UserRole, NotificationType, utcnow
from ledger.exceptions import ValidationError, ConflictError, UpstreamError
from ledger.notifications import NotificationHelper

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")
NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")
CODE_PATTERN = re.compile(r"^[A-Z0-9]+$")


def _text(value) -> str:
    return value if isinstance(value, str) else ""


class AccountValidator:

    @staticmethod
    def validate_name(name) -> str:
        name = _text(name).strip()
        if len(name) < 2:
            raise ValidationError("Name must be at least 2 characters long")
        if len(name) > 50:
            raise ValidationError("Name is too long")
        if not NAME_PATTERN.match(name):
            raise ValidationError("Name can only contain letters and spaces")
        return name

    @staticmethod
    def validate_email(email) -> str:
        email = _text(email).strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Please enter a valid email address")
        return email

    @staticmethod
    def validate_phone(phone) -> str:
        phone = _text(phone).strip()
        if not PHONE_PATTERN.match(phone):
            raise ValidationError("Please enter a valid 10-digit Indian phone number")
        return phone

    @staticmethod
    def validate_password(password) -> str:
        password = _text(password)
        if len(password) < 6:
            raise ValidationError("Password must be at least 6 characters long")
        if len(password) > 128:
            raise ValidationError("Password is too long")
        return password


class ReferralCodeHelper:

    @staticmethod
    def generate_code(name: str) -> str:
        """NAM + 4 random digits + 4 random hex chars, e.g. RAH4821A9F3."""
        for _ in range(10):
            prefix = re.sub(r"[^A-Za-z]", "", name)[:3].upper() or "USR"
            code = f"{prefix}{secrets.randbelow(9000) + 1000}{uuid.uuid4().hex[:4].upper()}"
            if db.session.get(ReferralCode, code) is None and not User.query.filter_by(referral_code=code).first():
                return code
        raise ConflictError("Could not allocate a referral code, please retry")

    @staticmethod
    def lookup(code) -> dict:
        """Validate a code typed into the registration form."""
        code = _text(code).strip().upper()
        if len(code) < 3:
            return {"valid": False, "message": "Referral code is too short"}
        if not CODE_PATTERN.match(code):
            return {"valid": False, "message": "Referral code can only contain letters and numbers"}

        row = db.session.get(ReferralCode, code)
        if row is None:
            return {"valid": False, "message": "Invalid referral code"}

        if not row.is_active:
            display_name = row.user_name or "This user"
            return {
                "valid": False,
                "message": f"{display_name}'s account is not activated yet",
                "referrerName": row.user_name,
            }

        return {
            "valid": True,
            "message": f"You will be referred by {row.user_name}",
            "referrerName": row.user_name,
            "referrerId": row.user_id,
        }


class AccountService:

    @staticmethod
    def register(name, email, phone, password, referral_code: Optional[str] = None,
                 role: str = UserRole.USER.value) -> User:
        """
        Create the user with an empty wallet, mint their referral code and
        send the welcome notification, all in one commit.
        """
        name = AccountValidator.validate_name(name)
        email = AccountValidator.validate_email(email)
        phone = AccountValidator.validate_phone(phone)
        password = AccountValidator.validate_password(password)

        if User.query.filter_by(email=email).first():
            raise ConflictError("Email already registered")

        referrer_id, referred_by = AccountService._resolve_referrer(referral_code)

        try:
            code = ReferralCodeHelper.generate_code(name)
            user = User(
                name=name,
                email=email,
                phone=phone,
                role=role,
                referral_code=code,
                referred_by=referred_by,
                referrer_id=referrer_id,
                is_referral_active=False,
            )
            user.set_password(password)
            user.wallet = Wallet(balance=0, last_updated=utcnow())
            db.session.add(user)
            db.session.flush()

            db.session.add(ReferralCode(code=code, user_id=user.id, user_name=name, is_active=False))
            db.session.add(NotificationHelper.build(
                user.id,
                NotificationType.WELCOME,
                "Welcome to Refer & Earn!",
                f"Your referral code is {code}. Activate your account to start earning!",
            ))
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            logger.warning(f"Registration for {email} hit a constraint: {e.orig}")
            raise ConflictError("Email already registered")
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Registration for {email} failed: {e}")
            raise UpstreamError("Failed to create user profile")

        logger.info(f"User {user.id} registered (code {code}, referrer {referrer_id})")
        return user

    @staticmethod
    def _resolve_referrer(referral_code) -> Tuple[Optional[int], Optional[str]]:
        if not _text(referral_code).strip():
            return None, None

        result = ReferralCodeHelper.lookup(referral_code)
        if not result["valid"]:
            raise ValidationError(result["message"])
        return result["referrerId"], referral_code.strip().upper()

    @staticmethod
    def promote_to_admin(email: str) -> User:
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            raise ValidationError(f"No user with email {email}")
        user.role = UserRole.ADMIN.value
        db.session.commit()
        return user
