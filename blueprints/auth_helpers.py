#======================================================================================
#
#   BEARER TOKEN AUTH: token issue/verify, Flask-Login loader, route decorators
#
#======================================================================================
import logging
from functools import wraps
from flask import current_app, g, request
from flask_login import current_user
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from extensions import db, login_manager
from models import User, TokenIdentity
from ledger.exceptions import UnauthenticatedError, ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)


def _serializer():
    return URLSafeTimedSerializer(
        current_app.config["SECRET_KEY"], salt=current_app.config.get("TOKEN_SALT", "referearn-id-token")
    )


def issue_id_token(user_id: int) -> str:
    return _serializer().dumps({"uid": user_id})


def verify_id_token(token: str) -> int:
    """Return the uid carried by a valid token."""
    try:
        payload = _serializer().loads(token, max_age=current_app.config.get("TOKEN_MAX_AGE"))
    except SignatureExpired:
        raise UnauthenticatedError("Token expired")
    except BadSignature:
        raise UnauthenticatedError("Invalid token")

    uid = payload.get("uid") if isinstance(payload, dict) else None
    if uid is None:
        raise UnauthenticatedError("Invalid token")
    return uid


def _bearer_token():
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None


@login_manager.request_loader
def load_identity_from_request(req):
    token = _bearer_token()
    if not token:
        return None
    try:
        return TokenIdentity(verify_id_token(token))
    except UnauthenticatedError as e:
        logger.info(f"Rejected bearer token: {e.message}")
        g.auth_error = e.message
        return None


def _require_identity() -> int:
    if not current_user.is_authenticated:
        if _bearer_token() is None:
            raise UnauthenticatedError("No authentication token provided")
        raise UnauthenticatedError(g.get("auth_error") or "Invalid token")
    return current_user.id


def token_required(f):
    """Authenticated callers only; g.user is the caller's profile row."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        uid = _require_identity()
        user = db.session.get(User, uid)
        if not user:
            raise NotFoundError("User not found")
        g.user = user
        return f(*args, **kwargs)

    return decorated_function


def admin_required(f):
    """
    Restrict a route to admins.
    - 401 without a valid bearer token.
    - 403 when the caller's profile is missing or is not an admin.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        uid = _require_identity()
        admin = db.session.get(User, uid)
        if not admin or not admin.is_admin:
            raise ForbiddenError("Admin access required")
        g.admin = admin
        return f(*args, **kwargs)

    return decorated_function
