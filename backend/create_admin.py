"""Create the first administrator account, or promote an existing one.

Usage:
    python -m backend.create_admin EMAIL PASSWORD [NAME] [LASTNAME]
"""
import sys

from sqlalchemy.orm import Session

from backend.auth.passwords import hash_password
from backend.database import Base, SessionLocal, engine
from backend.models import appointment, provider  # noqa: F401
from backend.models.user import ROLE_ADMIN, User


def ensure_admin(db: Session, email: str, password: str, name: str = 'Admin', lastname: str = 'Clinic') -> tuple[User, bool]:
    normalized_email = email.strip().lower()
    user = db.query(User).filter(User.email == normalized_email).first()
    created = user is None
    if created:
        user = User(
            name=name,
            lastname=lastname,
            email=normalized_email,
            hashed_password=hash_password(password),
            role=ROLE_ADMIN,
        )
        db.add(user)
    else:
        user.role = ROLE_ADMIN
        user.hashed_password = hash_password(password)
    db.commit()
    db.refresh(user)
    return user, created


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if len(args) < 2:
        print(__doc__.strip(), file=sys.stderr)
        sys.exit(2)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        user, created = ensure_admin(db, *args[:4])
    finally:
        db.close()

    action = "Created" if created else "Promoted"
    print(f"{action} admin {user.email} (usersId={user.id})")


if __name__ == "__main__":
    main()
