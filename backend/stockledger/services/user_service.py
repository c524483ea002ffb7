# Overview: Minimal user roster management (attribution and notification recipients).

from __future__ import annotations

from ..extensions import db
from ..models import STATUS_ACTIVE, User, VALID_ROLES
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, validate_payload


USER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"email", "first_name", "last_name", "role"},
    required_on_create={"email", "role"},
)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def create_user(*, email, role, first_name=None, last_name=None) -> User:
    patch = validate_payload(
        model=User,
        payload={"email": email, "role": role, "first_name": first_name, "last_name": last_name},
        policy=USER_CREATE_POLICY,
        partial=False,
    )
    email = normalize_email(patch["email"])
    if "@" not in email:
        raise ValidationError("email must be a valid address")
    role = patch["role"].upper()
    if role not in VALID_ROLES:
        raise ValidationError(f"Invalid role '{role}'. Must be one of: {', '.join(sorted(VALID_ROLES))}")

    if db.session.query(User.id).filter(User.email == email).first() is not None:
        raise ConflictError(f"User with email {email} already exists")

    user = User(
        email=email,
        first_name=patch["first_name"] or None,
        last_name=patch["last_name"] or None,
        role=role,
        status=STATUS_ACTIVE,
    )
    db.session.add(user)
    db.session.commit()
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.id.asc()).all()
