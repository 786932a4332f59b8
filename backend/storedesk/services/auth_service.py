# Overview: Accounts; bcrypt password hashing, business signup, login and staff user management.

"""
Authentication Service

MULTI-TENANT: Users belong to exactly one business. Signup creates the
business, its settings row and the first ADMIN user in one transaction.

Login is by email, so an email may only be registered once across all
businesses.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters with upper, lower, digit and special character
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Business, BusinessSettings, ROLES, Sale, SessionToken, User
from storedesk.time_utils import utcnow
from . import data_access
from .concurrency import run_with_retry

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        raise ValidationError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        raise ValidationError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one digit")
    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-]", password):
        raise ValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed hash
        return False


def _clean_email(email: str | None) -> str:
    value = (email or "").strip().lower()
    if not EMAIL_RE.match(value):
        raise ValidationError("A valid email is required")
    return value


def _clean_username(username: str | None) -> str:
    value = (username or "").strip()
    if not value:
        raise ValidationError("username is required")
    if len(value) > 64:
        raise ValidationError("username exceeds max length 64")
    return value


def _clean_role(role: str | None) -> str:
    value = (role or "").strip().upper()
    if value not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
    return value


def _email_taken(email: str, *, exclude_user_id: int | None = None) -> bool:
    query = db.session.query(User.id).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def signup(*, business_name: str, username: str, email: str, password: str) -> tuple[Business, User]:
    """Register a new business with its first ADMIN user."""
    name = (business_name or "").strip()
    if not name:
        raise ValidationError("business_name is required")
    username = _clean_username(username)
    email = _clean_email(email)
    password_hash = hash_password(password)

    def _op():
        if _email_taken(email):
            raise ConflictError("Email is already registered", details={"email": email})

        business = Business(name=name, is_active=True)
        db.session.add(business)
        db.session.flush()

        db.session.add(BusinessSettings(
            business_id=business.id,
            currency=current_app.config.get("DEFAULT_CURRENCY", "USD"),
            currency_symbol=current_app.config.get("DEFAULT_CURRENCY_SYMBOL", "$"),
        ))
        user = User(
            business_id=business.id,
            username=username,
            email=email,
            password_hash=password_hash,
            role="ADMIN",
            is_active=True,
        )
        db.session.add(user)
        db.session.commit()
        current_app.logger.info("Business registered: business=%s admin=%s", business.id, user.id)
        return business, user

    return run_with_retry(_op)


def create_user(
    business_id: int,
    *,
    username: str,
    email: str,
    password: str,
    role: str = "SALES",
) -> User:
    username = _clean_username(username)
    email = _clean_email(email)
    role = _clean_role(role)
    password_hash = hash_password(password)

    def _op():
        business = db.session.query(Business).filter_by(id=business_id).first()
        if business is None:
            raise NotFoundError("Business not found", details={"id": business_id})
        if not business.is_active:
            raise ValidationError("Business is not active")
        if _email_taken(email):
            raise ConflictError("Email is already registered", details={"email": email})

        user = User(
            business_id=business_id,
            username=username,
            email=email,
            password_hash=password_hash,
            role=role,
            is_active=True,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return run_with_retry(_op)


def authenticate(email: str, password: str) -> User | None:
    """
    Return the active user for these credentials, or None.

    Unknown email, wrong password, deactivated user and deactivated business
    are indistinguishable to the caller.
    """
    value = (email or "").strip().lower()
    if not value or not password:
        return None
    user = db.session.query(User).filter(User.email == value).first()
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    if user.business is None or not user.business.is_active:
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def list_users(business_id: int) -> list[User]:
    return (
        db.session.query(User)
        .filter(User.business_id == business_id)
        .order_by(User.username.asc(), User.id.asc())
        .all()
    )


def get_user(business_id: int, user_id: int) -> User:
    return data_access.get_scoped(User, business_id, user_id, label="User")


def update_user(business_id: int, user_id: int, payload: dict, *, actor_user_id: int | None = None) -> User:
    """
    Admin edit of a staff account. Accepts username, email, role, is_active
    and password. An admin cannot demote or deactivate themselves.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    allowed = {"username", "email", "role", "is_active", "password"}
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    changes: dict = {}
    if "username" in payload:
        changes["username"] = _clean_username(payload["username"])
    if "email" in payload:
        changes["email"] = _clean_email(payload["email"])
    if "role" in payload:
        changes["role"] = _clean_role(payload["role"])
    if "is_active" in payload:
        if not isinstance(payload["is_active"], bool):
            raise ValidationError("is_active must be a boolean")
        changes["is_active"] = payload["is_active"]
    if payload.get("password"):
        changes["password_hash"] = hash_password(payload["password"])

    def _op():
        user = get_user(business_id, user_id)
        if actor_user_id == user.id:
            if changes.get("role", user.role) != user.role or changes.get("is_active") is False:
                raise ValidationError("You cannot change your own role or deactivate yourself")
        if "email" in changes and _email_taken(changes["email"], exclude_user_id=user.id):
            raise ConflictError("Email is already registered", details={"email": changes["email"]})
        for key, value in changes.items():
            setattr(user, key, value)
        db.session.commit()
        return user

    return run_with_retry(_op)


def delete_user(business_id: int, user_id: int, *, actor_user_id: int | None = None) -> None:
    """
    Remove a staff login. Users referenced by sales are deactivated instead so
    ticket attribution survives.
    """
    def _op():
        user = get_user(business_id, user_id)
        if actor_user_id == user.id:
            raise ValidationError("You cannot delete your own account")
        referenced = db.session.query(Sale.id).filter(
            db.or_(Sale.created_by_user_id == user.id, Sale.completed_by_user_id == user.id)
        ).first()
        if referenced:
            user.is_active = False
        else:
            db.session.query(SessionToken).filter(SessionToken.user_id == user.id).delete()
            db.session.delete(user)
        db.session.commit()

    run_with_retry(_op)
