# ledger/admin_account.py
import logging
from flask import current_app
from extensions import db
from models import User, UserRole
from ledger.exceptions import NotFoundError

logger = logging.getLogger(__name__)

_CACHE_KEY = "referearn.admin_user_id"


class AdminAccountResolver:
    """
    Finds the platform admin that receives the activation fee.

    ADMIN_USER_ID wins when configured. Otherwise the lowest-id user with
    role "admin" is resolved once per application and cached in
    app.extensions; the several-admins warning is logged on each uncached
    lookup.
    """

    @staticmethod
    def get_admin_user_id() -> int:
        configured = current_app.config.get("ADMIN_USER_ID")
        if configured:
            admin_id = int(configured)
            admin = db.session.get(User, admin_id)
            if not admin or not admin.is_admin:
                raise NotFoundError("Admin user not found")
            return admin_id

        cached = current_app.extensions.get(_CACHE_KEY)
        if cached is not None:
            return cached

        admins = (
            User.query.filter_by(role=UserRole.ADMIN.value)
            .order_by(User.id)
            .limit(2)
            .all()
        )
        if not admins:
            raise NotFoundError("Admin user not found")

        if len(admins) > 1:
            # TODO: product decision needed on fee routing with several admins; set ADMIN_USER_ID meanwhile
            logger.warning(
                f"More than one admin account exists; platform fees go to user {admins[0].id}"
            )

        current_app.extensions[_CACHE_KEY] = admins[0].id
        return admins[0].id

    @staticmethod
    def reset_cache():
        current_app.extensions.pop(_CACHE_KEY, None)
