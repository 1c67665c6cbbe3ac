"""Reference resolution: group labels and instructor names to ids."""

import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from gradebook.models.instructor import Instructor
from gradebook.models.student import Group

logger = logging.getLogger(__name__)

GroupKey = tuple[int, str]


class ReferenceResolver:
    """Maps human-readable references to persisted ids.

    Only groups are ever created here; students and instructors are read-only.
    """

    def __init__(self, db: Session):
        self.db = db
        self._groups: dict[GroupKey, int] = {}
        self._instructors: dict[str, int] | None = None

    def find_group(self, year: int | None, label: str | None) -> int | None:
        """Look up a group id without creating it."""
        if not year or not label:
            return None
        key = (year, label)
        if key not in self._groups:
            group_id = self.db.execute(
                select(Group.id).where(Group.year == year, Group.label == label)
            ).scalar_one_or_none()
            if group_id is None:
                return None
            self._groups[key] = group_id
        return self._groups[key]

    def ensure_groups(self, keys: Iterable[GroupKey]) -> dict[GroupKey, int]:
        """Create-if-absent every distinct (year, label) pair, in first-seen order.

        A pair whose creation fails is logged and left out of the result.
        """
        resolved: dict[GroupKey, int] = {}
        for key in dict.fromkeys(keys):
            group_id = self.find_group(*key)
            if group_id is None:
                group_id = self._create_group(*key)
            if group_id is not None:
                resolved[key] = group_id
        return resolved

    def _create_group(self, year: int, label: str) -> int | None:
        try:
            with self.db.begin_nested():
                group = Group(year=year, label=label)
                self.db.add(group)
                self.db.flush()
        except IntegrityError:
            # Created concurrently by another import
            logger.info(f"[RESOLVE] Group {year}-{label} appeared concurrently, re-reading")
            return self.find_group(year, label)
        except SQLAlchemyError as e:
            logger.warning(f"[RESOLVE] Failed to create group {year}-{label}: {e}")
            return None
        logger.info(f"[RESOLVE] Created group {year}-{label} (id={group.id})")
        self._groups[(year, label)] = group.id
        return group.id

    def find_instructor(self, name: str | None) -> int | None:
        """Exact display-name lookup; the lowest id wins when names repeat."""
        if not name:
            return None
        if self._instructors is None:
            self._instructors = {}
            rows = self.db.execute(select(Instructor.id, Instructor.name).order_by(Instructor.id))
            for instructor_id, instructor_name in rows:
                self._instructors.setdefault(instructor_name, instructor_id)
        return self._instructors.get(name)
