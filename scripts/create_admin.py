import argparse
import getpass
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy.exc import IntegrityError

from evoting.core.database import Base, SessionLocal, engine
from evoting.schemas.user import AdminUserCreate
from evoting.services.user_service import UserService


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create an e-voting administrator")
    parser.add_argument("name", help="Display name for the admin")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument("nim", help="Unique member number")
    return parser.parse_args()


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < 8:
            print("Password must be at least 8 characters long.", file=sys.stderr)
            continue
        return password
    raise SystemExit("Failed to set password after three attempts.")


def main() -> int:
    args = parse_args()
    password = prompt_for_password()

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        body = AdminUserCreate(
            nim=args.nim.strip(),
            email=args.email.strip().lower(),
            name=args.name.strip(),
            password=password,
            is_admin=True,
        )
        user = UserService.create_user(db, body)
    except IntegrityError:
        print("Error: nim or email already registered", file=sys.stderr)
        return 1
    finally:
        db.close()

    print(f"Created admin #{user.id}: {user.name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
