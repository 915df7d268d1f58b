from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from evoting.core.database import get_db
from evoting.core.security import decode_access_token
from evoting.schemas.user import UserWithRole
from evoting.services.mail_service import MailService, mail_service
from evoting.services.user_service import UserService

# OAuth2 password bearer scheme - extracts token from Authorization header
# tokenUrl tells FastAPI where to find the login endpoint for Swagger UI
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)


def get_mail_service() -> MailService:
    return mail_service


def get_user_service(mail: MailService = Depends(get_mail_service)) -> UserService:
    return UserService(mail=mail)


async def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> UserWithRole:
    """
    Get current authenticated user from JWT token.

    Raises 401 when the token is missing, invalid or points at a
    user that no longer exists.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if token is None:
        raise credentials_exception

    payload = decode_access_token(token)
    if payload is None:
        raise credentials_exception

    # JWT standard uses 'sub' (subject) claim for user identifier
    user_id_str = payload.get("sub")
    if user_id_str is None:
        raise credentials_exception

    try:
        user_id: int = int(user_id_str)
    except (ValueError, TypeError):
        raise credentials_exception

    # Deleted after the token was issued
    user = UserService.is_exist(db, user_id)
    if user is None:
        raise credentials_exception

    return user


async def get_current_admin(
    current_user: UserWithRole = Depends(get_current_user)
) -> UserWithRole:
    """Require the authenticated user to be an administrator"""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return current_user
