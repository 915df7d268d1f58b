from pathlib import Path
from typing import List
import pandas as pd
from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile, File as FastAPIFile, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from evoting.core.database import get_db
from evoting.api.dependencies import get_current_admin, get_user_service
from evoting.schemas.user import (
    AdminResponse,
    UserCreate,
    UserResponse,
    UserStats,
    UserWithRole,
    VoteUpdate,
)
from evoting.services.user_service import UserService

# Every route here manages other accounts, so all of them require an admin
router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(get_current_admin)])


def _not_found(user_id: int) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found")


@router.post("/", response_model=UserWithRole, status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate, db: Session = Depends(get_db)):
    """Create an admin or a voter"""
    # Explicit checks give clearer messages than the unique constraint
    if UserService.validate_nim(db, body.nim):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="NIM already registered")
    if UserService.validate_email(db, body.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
    try:
        return UserService.create_user(db, body)
    except IntegrityError:
        # Inserted concurrently after the checks above passed
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="NIM or email already registered")


@router.post("/bulk", response_model=List[UserResponse], status_code=status.HTTP_201_CREATED)
async def bulk_import(
    file: UploadFile = FastAPIFile(...),
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service)
):
    """Import users from a CSV file"""
    if not file.filename or Path(file.filename).suffix.lower() != ".csv":
        raise HTTPException(status_code=400, detail="File type not supported. Allowed: .csv")

    try:
        return await service.bulk_data(db, file)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Error parsing file: {str(e)}")


@router.get("/", response_model=List[UserResponse])
async def list_users(request: Request, db: Session = Depends(get_db)):
    """List voters. Accepts nim, email, name, yearClass, search, limit, skip, sort"""
    return UserService.find_all_non_admin(db, dict(request.query_params))


@router.get("/admins", response_model=List[AdminResponse])
async def list_admins(request: Request, db: Session = Depends(get_db)):
    """List administrators"""
    return UserService.find_all_admin(db, dict(request.query_params))


@router.get("/stats", response_model=UserStats)
async def user_stats(db: Session = Depends(get_db)):
    return {
        "non_admin": UserService.total_non_admin_user(db),
        "admin": UserService.total_admin_user(db),
    }


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, db: Session = Depends(get_db)):
    user = UserService.find_user_by_id(db, user_id)
    if not user:
        raise _not_found(user_id)
    return user


@router.delete("/{user_id}", response_model=UserResponse)
async def delete_user(user_id: int, db: Session = Depends(get_db)):
    """Delete a user permanently"""
    user = UserService.delete_user_by_id(db, user_id)
    if not user:
        raise _not_found(user_id)
    return user


@router.post("/{user_id}/credentials", response_model=UserResponse)
def send_credentials(
    user_id: int,
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service)
):
    """Issue a new password and email it to the user"""
    user = service.send_credentials(db, user_id)
    if not user:
        raise _not_found(user_id)
    return user


@router.patch("/{user_id}/vote", response_model=UserResponse)
async def update_vote(user_id: int, body: VoteUpdate, db: Session = Depends(get_db)):
    user = UserService.update_vote_field(db, user_id, body.voted)
    if not user:
        raise _not_found(user_id)
    return user
