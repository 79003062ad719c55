from passlib.context import CryptContext

pwd_ctx = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def hash_password(plain: str) -> str:
    """Return pbkdf2_sha256 hash for plain password."""
    return pwd_ctx.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """Verify plain password against hash."""
    if not plain or not hashed:
        return False
    try:
        return pwd_ctx.verify(plain, hashed)
    except ValueError:
        return False


def check_password(plain: str, hashed: str) -> bool:
    """Backward-compatible alias for verify_password."""
    return verify_password(plain, hashed)
