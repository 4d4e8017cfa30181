# Overview: Service-layer operations for users and credentials.

"""
Authentication and User Service

WHY: Every product and sale is attributed to a user, and the role on the
user record drives every authorization decision.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, with uppercase, lowercase, digit and special char
- The hash is computed only by set_password(), i.e. when a plaintext
  password is supplied on create or update, never otherwise
- Users are deactivated, not deleted; history keeps pointing at them
"""

import re

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..models import User
from ..permissions import UserRole
from ..time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class UserValidationError(Exception):
    """Raised for malformed user input."""
    pass


class UserConflictError(Exception):
    """Raised when a username or email is already taken."""
    pass


class UserNotFoundError(Exception):
    pass


class SelfDeactivationError(Exception):
    """An administrator tried to deactivate their own account."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str):
        raise PasswordValidationError("Password must be a string")

    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    A malformed stored hash verifies as False rather than raising.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def set_password(user: User, password: str) -> None:
    """The only writer of User.password_hash."""
    user.password_hash = hash_password(password)


def _normalize_username(username) -> str:
    if not isinstance(username, str) or not username.strip():
        raise UserValidationError("username is required")
    username = username.strip()
    if len(username) > 64:
        raise UserValidationError("username exceeds max length 64")
    return username


def _normalize_email(email) -> str:
    if not isinstance(email, str) or not email.strip():
        raise UserValidationError("email is required")
    email = email.strip().lower()
    if "@" not in email or len(email) > 255:
        raise UserValidationError("email must be a valid address")
    return email


def _parse_role(role) -> str:
    try:
        return UserRole.parse(role).value
    except ValueError as exc:
        raise UserValidationError(str(exc))


def _ensure_unique(username: str | None, email: str | None, exclude_user_id: int | None = None) -> None:
    filters = []
    if username is not None:
        filters.append(User.username == username)
    if email is not None:
        filters.append(User.email == email)
    if not filters:
        return

    query = db.session.query(User).filter(db.or_(*filters))
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        raise UserConflictError("Username or email already exists")


def create_user(username: str, email: str, password: str, role: str = UserRole.INVENTORY.value) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        UserValidationError: malformed username/email/role
        PasswordValidationError: password doesn't meet requirements
        UserConflictError: username or email already exists
    """
    username = _normalize_username(username)
    email = _normalize_email(email)
    role = _parse_role(role)

    _ensure_unique(username, email)

    user = User(username=username, email=email, role=role, is_active=True)
    set_password(user, password)

    db.session.add(user)
    db.session.commit()
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise UserNotFoundError(f"User {user_id} not found")
    return user


def list_users(include_inactive: bool = False) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.role.asc(), User.username.asc()).all()


def update_user(user_id: int, data: dict) -> User:
    """
    Update username, email, role, password and/or is_active.

    The password is re-hashed only when a new plaintext password is given.
    """
    user = get_user(user_id)

    allowed = {"username", "email", "role", "password", "is_active"}
    unknown = set(data) - allowed
    if unknown:
        raise UserValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    username = _normalize_username(data["username"]) if data.get("username") is not None else None
    email = _normalize_email(data["email"]) if data.get("email") is not None else None
    _ensure_unique(username, email, exclude_user_id=user.id)

    if username is not None:
        user.username = username
    if email is not None:
        user.email = email
    if data.get("role") is not None:
        user.role = _parse_role(data["role"])
    if data.get("is_active") is not None:
        if not isinstance(data["is_active"], bool):
            raise UserValidationError("is_active must be a boolean")
        user.is_active = data["is_active"]
    if data.get("password"):
        set_password(user, data["password"])

    db.session.commit()
    return user


def deactivate_user(user_id: int, actor_user_id: int) -> User:
    """Deactivate a user account. Admins cannot deactivate themselves."""
    if user_id == actor_user_id:
        raise SelfDeactivationError("An administrator cannot delete their own account while logged in")

    user = get_user(user_id)
    user.is_active = False
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username (or email) and password.

    Returns User if credentials valid and the account is active, None
    otherwise. Updates last_login_at on success.
    """
    if not username or not password:
        return None

    identifier = username.strip()
    user = db.session.query(User).filter(
        db.or_(User.username == identifier, User.email == identifier.lower()),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
