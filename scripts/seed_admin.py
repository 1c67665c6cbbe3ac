"""Create the default admin account if it does not exist."""

from sqlalchemy import select

from gradebook.core.config import settings
from gradebook.core.database import SessionLocal
from gradebook.core.security import hash_password
from gradebook.models.user import User, UserRole


def main() -> None:
    with SessionLocal() as session:
        existing = session.execute(
            select(User).where(User.username == settings.DEFAULT_ADMIN_USERNAME)
        ).scalar_one_or_none()
        if existing:
            print(f"Admin '{existing.username}' already exists (id={existing.id}) - nothing to do")
            return

        admin = User(
            username=settings.DEFAULT_ADMIN_USERNAME,
            name=settings.DEFAULT_ADMIN_NAME,
            password_hash=hash_password(settings.DEFAULT_ADMIN_PASSWORD),
            role=UserRole.ADMIN,
        )
        session.add(admin)
        session.commit()
        print(f"Created admin '{admin.username}' (id={admin.id})")
        print("Change the default password after first login!")


if __name__ == "__main__":
    main()
