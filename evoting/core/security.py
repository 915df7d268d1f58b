import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from evoting.core.config import settings

# CryptContext handles password hashing using bcrypt
# Rounds are pinned so hashes stay compatible with existing accounts
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# Printable ASCII without whitespace, the alphabet issued passwords are drawn from
TEMP_PASSWORD_ALPHABET = string.ascii_letters + string.digits + string.punctuation


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash using constant-time comparison"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    # bcrypt generates a salt per call, so equal passwords hash differently
    return pwd_context.hash(password)


def generate_temporary_password(length: Optional[int] = None) -> str:
    """Generate a random password for credential emails"""
    length = length or settings.TEMP_PASSWORD_LENGTH
    return "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length))


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token with expiration"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(
            timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    # JWT standard 'exp' claim
    to_encode.update({"exp": expire})

    encoded_jwt = jwt.encode(
        to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and verify a JWT token"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY,
                             algorithms=[settings.ALGORITHM])
        return payload
    except JWTError:
        # Expired, tampered with, or signed with another key
        return None
