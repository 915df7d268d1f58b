import io
import logging
from typing import Any, Dict, List, Mapping, Optional
import pandas as pd
from fastapi import HTTPException, UploadFile, status
from pydantic import ValidationError
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from evoting.core.security import generate_temporary_password, get_password_hash
from evoting.models.user import User
from evoting.schemas.user import (
    AdminResponse,
    AdminUserCreate,
    NonAdminUserCreate,
    UserCreate,
    UserCredentials,
    UserResponse,
    UserWithRole,
)
from evoting.services.mail_service import MailService, mail_service
from evoting.utils.query_params import (
    USER_FILTER,
    apply_query_params,
    parse_query_params,
    to_snake_case,
)

logger = logging.getLogger(__name__)

# Columns a CSV import may populate
IMPORT_COLUMNS = {"nim", "email", "name", "password", "is_admin", "year_class"}
TRUE_VALUES = {"true", "1", "yes", "y"}
FALSE_VALUES = {"false", "0", "no", "n"}


def _as_bool(value: str, column: str) -> bool:
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"Column '{column}' expects true/false, got {value!r}")


class UserService:
    """User accounts for the election: creation, lookups, imports and credentials"""

    def __init__(self, mail: Optional[MailService] = None):
        self.mail = mail or mail_service

    # Validation lookups
    # -----------------------------

    @staticmethod
    def validate_nim(db: Session, nim: str) -> Optional[UserResponse]:
        user = db.query(User).filter(User.nim == nim).first()
        return UserResponse.model_validate(user) if user else None

    @staticmethod
    def validate_email(db: Session, email: str) -> Optional[UserResponse]:
        user = db.query(User).filter(User.email == email).first()
        return UserResponse.model_validate(user) if user else None

    @staticmethod
    def is_exist(db: Session, user_id: int) -> Optional[UserWithRole]:
        """Look a user up by id, including the admin flag"""
        user = db.query(User).filter(User.id == user_id).first()
        return UserWithRole.model_validate(user) if user else None

    # Creation
    # -----------------------------

    @staticmethod
    def _commit(db: Session) -> None:
        """Commit, rolling the session back before re-raising on failure"""
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

    @staticmethod
    def _build_user(body: UserCreate) -> User:
        if isinstance(body, AdminUserCreate):
            return User(
                nim=body.nim,
                email=body.email,
                name=body.name,
                is_admin=True,
                password=get_password_hash(body.password),
            )
        return User(
            nim=body.nim,
            email=body.email,
            name=body.name,
            is_admin=False,
            year_class=body.year_class,
        )

    @staticmethod
    def create_user(db: Session, body: UserCreate) -> UserWithRole:
        """
        Create an admin or a voter.

        Admins are stored with a bcrypt hash of the given password. Voters
        are stored without a password until credentials are issued.
        Uniqueness violations on nim/email are not translated here.
        """
        db_user = UserService._build_user(body)
        db.add(db_user)
        UserService._commit(db)
        db.refresh(db_user)

        logger.info(f"Created {'admin' if db_user.is_admin else 'user'} {db_user.id} ({db_user.email})")
        return UserWithRole.model_validate(db_user)

    @staticmethod
    def parse_csv(content: bytes) -> List[Dict[str, Any]]:
        """
        Parse CSV content into one dict per data row, keyed by header.

        Headers may be camelCase (yearClass) or snake_case (year_class).
        Columns that are not user fields are dropped and empty cells become None.
        """
        # dtype=str keeps leading zeros in nim values
        df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False)
        df.columns = [to_snake_case(str(col).strip()) for col in df.columns]

        unknown = [col for col in df.columns if col not in IMPORT_COLUMNS]
        if unknown:
            logger.warning(f"Ignoring unknown CSV columns: {', '.join(unknown)}")
            df = df.drop(columns=unknown)

        rows = []
        for record in df.to_dict(orient="records"):
            row = {}
            for column, value in record.items():
                value = value.strip()
                if value == "":
                    row[column] = None
                elif column == "year_class":
                    row[column] = int(value)
                elif column == "is_admin":
                    row[column] = _as_bool(value, column)
                else:
                    row[column] = value
            rows.append(row)
        return rows

    @staticmethod
    def build_import_user(row: Dict[str, Any], line: int) -> User:
        """
        Validate one CSV row as an admin or a voter and build its record.

        Rows follow the same rules as single creation: voters need nim
        and year_class, admins need a password. Fields the chosen variant
        does not carry (year_class on an admin, password on a voter) are
        not stored.
        """
        values = {k: v for k, v in row.items() if v is not None}
        is_admin = values.get("is_admin", False)
        model = AdminUserCreate if is_admin else NonAdminUserCreate

        try:
            body = model.model_validate(values)
        except ValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            kind = "admin" if is_admin else "user"
            logger.warning(f"CSV line {line} rejected: {e}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Row {line} is not a valid {kind}: check {', '.join(fields)}"
            )

        return UserService._build_user(body)

    async def bulk_data(self, db: Session, file: UploadFile) -> List[UserResponse]:
        """
        Import users from an uploaded CSV file.

        Every row is validated before anything is written; an invalid row
        rejects the whole file. All rows are inserted in one transaction:
        a duplicate nim or email anywhere in the batch rolls back every row.
        """
        content = await file.read()
        rows = self.parse_csv(content)

        # Header is line 1, so the first data row is line 2
        users = [self.build_import_user(row, line) for line, row in enumerate(rows, start=2)]

        db.add_all(users)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Bulk import of {len(users)} users rejected: {e.orig}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Make sure all email and nim values are unique"
            )

        for user in users:
            db.refresh(user)
        logger.info(f"Imported {len(users)} users from {file.filename}")
        return [UserResponse.model_validate(user) for user in users]

    # Deletion
    # -----------------------------

    @staticmethod
    def delete_user_by_id(db: Session, user_id: int) -> Optional[UserResponse]:
        """Delete a user and return the record as it was before deletion"""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            return None

        snapshot = UserResponse.model_validate(user)
        # TODO: remove the user's ballot as well once ballots are stored alongside users
        db.delete(user)
        UserService._commit(db)

        logger.info(f"Deleted user {user_id}")
        return snapshot

    # Listing
    # -----------------------------

    @staticmethod
    def find_all_non_admin(db: Session, query: Mapping[str, Any]) -> List[UserResponse]:
        params = parse_query_params(query, USER_FILTER)
        users = apply_query_params(
            db.query(User).filter(User.is_admin.is_(False)), User, params, USER_FILTER
        ).all()
        return [UserResponse.model_validate(user) for user in users]

    @staticmethod
    def find_all_admin(db: Session, query: Mapping[str, Any]) -> List[AdminResponse]:
        params = parse_query_params(query, USER_FILTER)
        users = apply_query_params(
            db.query(User).filter(User.is_admin.is_(True)), User, params, USER_FILTER
        ).all()
        return [AdminResponse.model_validate(user) for user in users]

    # Point lookups
    # -----------------------------

    @staticmethod
    def find_user_by_id(db: Session, user_id: int) -> Optional[UserResponse]:
        user = db.query(User).filter(User.id == user_id).first()
        return UserResponse.model_validate(user) if user else None

    @staticmethod
    def login(db: Session, email_nim: str) -> Optional[UserCredentials]:
        """Find a user by email or nim, including the password hash"""
        user = db.query(User).filter(
            or_(User.email == email_nim, User.nim == email_nim)
        ).first()
        return UserCredentials.model_validate(user) if user else None

    @staticmethod
    def non_admin_login_method(db: Session, nim: str) -> Optional[UserCredentials]:
        user = db.query(User).filter(User.nim == nim).first()
        return UserCredentials.model_validate(user) if user else None

    @staticmethod
    def admin_login_method(db: Session, email: str) -> Optional[UserCredentials]:
        user = db.query(User).filter(User.email == email).first()
        return UserCredentials.model_validate(user) if user else None

    # Credentials
    # -----------------------------

    def send_credentials(self, db: Session, user_id: int) -> Optional[UserResponse]:
        """
        Issue a new random password and email it to the user.

        The new hash is committed before the email is sent, so a failed
        send leaves the password rotated and the caller gets a 400.
        """
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            logger.warning(f"Credentials requested for unknown user {user_id}")
            return None

        temporary_password = generate_temporary_password()
        user.password = get_password_hash(temporary_password)
        self._commit(db)
        db.refresh(user)

        try:
            self.mail.send_credentials(user, temporary_password)
        except Exception as e:
            logger.error(f"Password for user {user_id} rotated but credentials email failed: {e}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Failed on sending the user credentials"
            )

        return UserResponse.model_validate(user)

    # Voting
    # -----------------------------

    @staticmethod
    def update_vote_field(db: Session, user_id: int, voted: bool) -> Optional[UserResponse]:
        """Set the voted flag; the model validator rejects non-boolean values"""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            return None

        user.voted = voted
        UserService._commit(db)
        db.refresh(user)
        return UserResponse.model_validate(user)

    # Counts
    # -----------------------------

    @staticmethod
    def total_non_admin_user(db: Session) -> int:
        return db.query(User).filter(User.is_admin.is_(False)).count()

    @staticmethod
    def total_admin_user(db: Session) -> int:
        return db.query(User).filter(User.is_admin.is_(True)).count()


user_service = UserService()
