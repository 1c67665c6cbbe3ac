"""Drop every gradebook table and enum type, then recreate the schema.

Destroys all data. Intended for local development only.
"""

import sys

from sqlalchemy import text

from gradebook import models  # noqa: F401  registers all tables on Base.metadata
from gradebook.core.database import Base, engine

# Dependents first
TABLES = [
    "enrollments",
    "subject_instructors",
    "subjects",
    "students",
    "groups",
    "users",
    "instructors",
]
ENUM_TYPES = ["user_role", "subject_category", "class_type"]


def main() -> None:
    if "--yes" not in sys.argv:
        answer = input(f"This drops all data in {engine.url.render_as_string(hide_password=True)}. Continue? [y/N] ")
        if answer.strip().lower() != "y":
            print("Aborted")
            return

    with engine.begin() as conn:
        for table in TABLES:
            conn.execute(text(f"DROP TABLE IF EXISTS {table} CASCADE"))
            print(f"Dropped table {table}")
        for enum_type in ENUM_TYPES:
            conn.execute(text(f"DROP TYPE IF EXISTS {enum_type} CASCADE"))
            print(f"Dropped type {enum_type}")
        conn.execute(text("DROP TABLE IF EXISTS alembic_version"))

    Base.metadata.create_all(engine)
    print("Schema recreated. Run `alembic stamp head` to mark it as migrated.")


if __name__ == "__main__":
    main()
