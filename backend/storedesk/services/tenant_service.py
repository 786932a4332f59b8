"""
Tenant context helpers.

Every authenticated request has g.business_id set by @require_auth; services
take business_id explicitly, routes read it from here.
"""

from flask import current_app, g

from ..errors import AuthError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Business, BusinessSettings
from .concurrency import run_with_retry


def get_current_business_id() -> int:
    business_id = getattr(g, "business_id", None)
    if business_id is None:
        raise AuthError("Tenant context not established")
    return business_id


def get_current_user_id() -> int | None:
    user = getattr(g, "current_user", None)
    return user.id if user is not None else None


def require_active_business(business_id: int) -> Business:
    business = db.session.query(Business).filter_by(id=business_id).first()
    if business is None or not business.is_active:
        raise NotFoundError("Business not found", details={"id": business_id})
    return business


def create_business(name: str) -> Business:
    """Create a business and its default settings row, without any users."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("business_name is required")

    def _op():
        business = Business(name=name, is_active=True)
        db.session.add(business)
        db.session.flush()
        db.session.add(BusinessSettings(
            business_id=business.id,
            currency=current_app.config.get("DEFAULT_CURRENCY", "USD"),
            currency_symbol=current_app.config.get("DEFAULT_CURRENCY_SYMBOL", "$"),
        ))
        db.session.commit()
        return business

    return run_with_retry(_op)
