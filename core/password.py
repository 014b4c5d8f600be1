from passlib.context import CryptContext

# bcrypt via passlib
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verifies a password against a stored hash. A malformed or empty hash is
    treated as a mismatch instead of an error.
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def get_password_hash(password: str) -> str:
    """Generates a bcrypt hash for a new password."""
    return pwd_context.hash(password)


def needs_rehash(hashed_password: str) -> bool:
    """True when the stored hash uses outdated parameters."""
    try:
        return pwd_context.needs_update(hashed_password)
    except (ValueError, TypeError):
        return True
