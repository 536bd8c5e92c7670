import logging
import requests
from flask import request
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from ledger.exceptions import ValidationError

logger = logging.getLogger(__name__)


def get_json_body() -> dict:
    """Parsed JSON object from the request, or ValidationError."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid or missing JSON body")
    return data


def require_field(data: dict, field: str, message: str):
    value = data.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(message)
    return value


def require_int_id(data: dict, field: str, message: str) -> int:
    """Positive integer id: an int, a whole float, or a string of digits."""
    value = require_field(data, field, message)
    if isinstance(value, bool):
        raise ValidationError(message)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(message)
        value = int(value)
    elif isinstance(value, str):
        value = value.strip()
        if not value.isdecimal():
            raise ValidationError(message)
        value = int(value)
    elif not isinstance(value, int):
        raise ValidationError(message)

    if value < 1:
        raise ValidationError(message)
    return value


def get_limit_arg(default: int, maximum: int = 100) -> int:
    try:
        limit = int(request.args.get("limit", default))
    except (TypeError, ValueError):
        return default
    return max(1, min(limit, maximum))


def retrying_session(total: int = 3, backoff_factor: float = 1) -> requests.Session:
    """requests session that retries on throttling and 5xx answers"""
    session = requests.Session()
    retry_strategy = Retry(
        total=total,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET", "POST"],
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session
