# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service (identity collaborator)

WHY: Every action must be attributable to an identity. Uses bcrypt for
password hashing and validates password strength.

An identity (User) carries no tenant or role by itself. Organisation and
role come from Profile and UserRole, resolved by identity_service on every
request. Self sign-up therefore yields a "not yet provisioned" identity
until an administrator (or the CLI) attaches a profile.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..validation import ValidationError
from taxcontrib.time_utils import utcnow


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Le mot de passe doit contenir au moins 8 caractères")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Le mot de passe doit contenir au moins une majuscule")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Le mot de passe doit contenir au moins une minuscule")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Le mot de passe doit contenir au moins un chiffre")

    if not re.search(r"[!@#$%^&*(),.?'\":{}|<>_\-+=/\;\[\]~`]", password):
        raise PasswordValidationError("Le mot de passe doit contenir au moins un caractère spécial")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() compares in constant time.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in database
        return False


def get_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=normalize_email(email)).first()


def sign_up(email: str, password: str, metadata: dict | None = None, *, commit: bool = True) -> User:
    """
    Create a new authentication identity.

    Email is unique across the whole system (one identity, one organisation).
    The password must meet strength requirements.

    commit=False lets staff_service create identity, profile and role in
    one transaction.

    Raises:
        ValidationError: invalid email or email already registered
        PasswordValidationError: weak password
    """
    email = normalize_email(email)
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Adresse e-mail invalide")

    if get_user_by_email(email):
        raise ValidationError("Cette adresse e-mail est déjà utilisée")

    user = User(
        email=email,
        password_hash=hash_password(password),
        user_metadata=metadata or {},
        is_active=True,
    )

    db.session.add(user)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate identity with email and password.

    Returns User if credentials valid and the identity is active, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        User.email == normalize_email(email),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password or "", user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
