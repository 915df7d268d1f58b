from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from evoting.core.database import get_db
from evoting.core.security import verify_password, create_access_token
from evoting.core.config import settings
from evoting.schemas.user import Token, UserWithRole
from evoting.services.user_service import UserService
from evoting.api.dependencies import get_current_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """Login with email or nim and get an access token"""
    user = UserService.login(db, form_data.username)

    # Voters without issued credentials have no password yet
    # Same message for every failure so accounts can't be enumerated
    if not user or not user.password or not verify_password(form_data.password, user.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email/nim or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token_expires = timedelta(
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": str(user.id), "admin": user.is_admin},
        expires_delta=access_token_expires
    )

    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=UserWithRole)
async def get_current_user_info(current_user: UserWithRole = Depends(get_current_user)):
    """Get current user information"""
    return current_user
