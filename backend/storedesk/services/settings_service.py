from __future__ import annotations

import re

from flask import current_app

from ..extensions import db
from ..errors import ValidationError
from ..models import BusinessSettings
from .concurrency import run_with_retry


CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def _defaults(business_id: int) -> dict:
    return {
        "business_id": business_id,
        "currency": current_app.config.get("DEFAULT_CURRENCY", "USD"),
        "currency_symbol": current_app.config.get("DEFAULT_CURRENCY_SYMBOL", "$"),
    }


def get_settings(business_id: int) -> dict:
    """Effective settings; a business without a settings row gets the defaults."""
    row = db.session.query(BusinessSettings).filter_by(business_id=business_id).first()
    if row is None:
        return _defaults(business_id)
    return row.to_dict()


def update_settings(business_id: int, payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    unknown = sorted(set(payload) - {"currency", "currency_symbol"})
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    changes = {}
    if "currency" in payload:
        currency = str(payload["currency"] or "").strip().upper()
        if not CURRENCY_RE.match(currency):
            raise ValidationError("currency must be a 3-letter ISO 4217 code")
        changes["currency"] = currency
    if "currency_symbol" in payload:
        symbol = str(payload["currency_symbol"] or "").strip()
        if not symbol or len(symbol) > 8:
            raise ValidationError("currency_symbol must be 1-8 characters")
        changes["currency_symbol"] = symbol

    def _op():
        row = db.session.query(BusinessSettings).filter_by(business_id=business_id).first()
        if row is None:
            defaults = _defaults(business_id)
            row = BusinessSettings(
                business_id=business_id,
                currency=defaults["currency"],
                currency_symbol=defaults["currency_symbol"],
            )
            db.session.add(row)
        for key, value in changes.items():
            setattr(row, key, value)
        db.session.commit()
        return row.to_dict()

    return run_with_retry(_op)
