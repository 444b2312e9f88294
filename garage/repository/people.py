import logging
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union

from sqlalchemy import delete, select, update

from garage.db.models import ASSOCIATIONS, Person as DBPerson
from garage.domain import Person, Vehicle
from garage.exceptions import InvalidMatchFieldError
from garage.repository.base import (
    PersonRef,
    SessionRepository,
    attach_member,
    live_members,
    load_person,
    person_to_domain,
    write_back,
)

logger = logging.getLogger(__name__)

# Columns with a unique constraint; the only valid upsert keys.
UNIQUE_FIELDS = ("name", "person_id")


class UpsertMode(str, Enum):
    """How an upsert treats the collections of an existing person.

    APPEND inserts the given vehicles and leaves the old ones linked, so the
    person ends up owning both sets. Upserting the same payload twice
    duplicates every vehicle. It is the default only because it matches
    what a plain ORM "upsert all" does.

    RELINK inserts the given vehicles and orphans the previous ones.

    RECONCILE matches vehicles by name: matches are updated in place, new
    names inserted, and vehicles missing from the payload deleted.
    """

    APPEND = "append"
    RELINK = "relink"
    RECONCILE = "reconcile"


class PeopleRepository(SessionRepository):
    """Person rows and the lifecycle operations that span their collections."""

    def __init__(self, session_factory, default_upsert_mode: Union[UpsertMode, str] = UpsertMode.APPEND):
        super().__init__(session_factory)
        self.default_upsert_mode = UpsertMode(default_upsert_mode)

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _insert_collections(self, session, person_row: DBPerson, person: Person, pending: list) -> None:
        for collection_name, model in ASSOCIATIONS.items():
            for member in getattr(person, collection_name) or []:
                row = attach_member(session, model, person_row.person_id, member)
                pending.append((member, row.vehicle_id, row.person_id))

    @staticmethod
    def _reload(session, person_id: int) -> Person:
        return person_to_domain(load_person(session, person_id, preload=True))

    @staticmethod
    def _write_back(person: Person, out: Person, pending: list) -> Person:
        # Runs after commit only; a failed write leaves the caller's objects as they were.
        write_back(pending)
        person.person_id = out.person_id
        return out

    def insert_person(self, person: Person) -> Person:
        """Insert a new person with any vehicles it carries.

        Raises ConstraintViolationError when the name is taken, including by a
        soft-deleted person. Nothing is written in that case.
        """
        pending = []
        with self.session_scope() as session:
            row = DBPerson(name=person.name, age=person.age, sex=person.sex)
            session.add(row)
            session.flush()
            self._insert_collections(session, row, person, pending)
            logger.info("Inserted person %s (id=%s)", row.name, row.person_id)
            out = self._reload(session, row.person_id)
        return self._write_back(person, out, pending)

    def get_person(self, ref: PersonRef) -> Person:
        with self.session_scope() as session:
            return person_to_domain(load_person(session, ref, preload=True))

    def find_by_key(self, name: str) -> Person:
        """Return the live person called `name` with both collections loaded."""
        logger.debug("Looking up person %s", name)
        return self.get_person(name)

    def list_people(self, include_deleted: bool = False) -> List[Person]:
        with self.session_scope() as session:
            q = select(DBPerson).order_by(DBPerson.person_id)
            if not include_deleted:
                q = q.where(DBPerson.deleted_at.is_(None))
            rows = session.execute(q).scalars().all()
            return [person_to_domain(r, with_collections=False) for r in rows]

    def upsert_person(self, person: Person, match_field: str = "name", mode: Optional[Union[UpsertMode, str]] = None) -> Person:
        """Insert `person` or update the row sharing its `match_field` value.

        Scalars are always overwritten and a soft-deleted match is revived.
        Only collections the caller set (not None) are touched, following
        `mode` (see UpsertMode). Exactly one row exists for the key afterwards.
        """
        if match_field not in UNIQUE_FIELDS:
            raise InvalidMatchFieldError(match_field, UNIQUE_FIELDS)
        mode = UpsertMode(mode) if mode is not None else self.default_upsert_mode
        value = getattr(person, match_field)

        pending = []
        with self.session_scope() as session:
            row = None
            if value is not None:
                q = select(DBPerson).where(getattr(DBPerson, match_field) == value)
                row = session.execute(q).scalars().first()
            if row is None:
                row = DBPerson(name=person.name, age=person.age, sex=person.sex)
                session.add(row)
                session.flush()
                self._insert_collections(session, row, person, pending)
                logger.info("Upsert inserted person %s (id=%s)", row.name, row.person_id)
            else:
                if row.deleted_at is not None:
                    logger.info("Upsert revives soft-deleted person %s (id=%s)", row.name, row.person_id)
                    row.deleted_at = None
                row.name = person.name
                row.age = person.age
                row.sex = person.sex
                session.flush()
                for collection_name, model in ASSOCIATIONS.items():
                    members = getattr(person, collection_name)
                    if members is None:
                        continue
                    self._apply_upsert_mode(session, model, row, collection_name, members, mode, pending)
                logger.info("Upsert updated person %s (id=%s, mode=%s)", row.name, row.person_id, mode.value)
            out = self._reload(session, row.person_id)
        return self._write_back(person, out, pending)

    def _apply_upsert_mode(self, session, model, row: DBPerson, collection_name: str, members: List[Vehicle], mode: UpsertMode, pending: list) -> None:
        existing = live_members(session, model, row.person_id)

        def attach(member, vehicle_id=None):
            attached = attach_member(session, model, row.person_id, member, vehicle_id=vehicle_id)
            pending.append((member, attached.vehicle_id, attached.person_id))
            return attached

        if mode is UpsertMode.APPEND:
            if existing and members:
                logger.warning(
                    "Upsert of %s appends %d %s next to %d existing ones; repeated upserts duplicate rows",
                    row.name, len(members), collection_name, len(existing),
                )
            for member in members:
                attach(member)
            return

        if mode is UpsertMode.RELINK:
            keep = {m.vehicle_id for m in members if m.vehicle_id is not None}
            for old in existing:
                if old.vehicle_id not in keep:
                    old.person_id = None
            for member in members:
                attach(member)
            return

        by_id = {old.vehicle_id: old for old in existing}
        by_name = {}
        for old in existing:
            by_name.setdefault(old.name, old)
        matched = set()
        for member in members:
            old = by_id.get(member.vehicle_id) if member.vehicle_id is not None else by_name.get(member.name)
            reuse = old.vehicle_id if old is not None and old.vehicle_id not in matched else None
            matched.add(attach(member, vehicle_id=reuse).vehicle_id)
        for old in existing:
            if old.vehicle_id not in matched:
                session.delete(old)
        session.flush()

    def update_scalars(self, person: Person) -> Person:
        """Update age/sex of the live person with `person.name`, never its collections.

        Fields left as None are not written.
        """
        with self.session_scope() as session:
            row = load_person(session, person.name)
            if person.age is not None:
                row.age = person.age
            if person.sex is not None:
                row.sex = person.sex
            session.flush()
            logger.info("Updated scalars of person %s (id=%s)", row.name, row.person_id)
            out = self._reload(session, row.person_id)
        return self._write_back(person, out, [])

    def delete_person(self, ref: PersonRef, cascade: bool = True, permanent: bool = False) -> int:
        """Delete a live person. Returns the former person id.

        cascade and permanent: vehicles and person rows are removed.
        cascade only: vehicles are soft-deleted with the person and keep
        their owner reference, as an ORM delete selecting all associations
        does on soft-delete models. They are not orphaned.
        no cascade: vehicles are orphaned, then the person is deleted
        (soft or hard per `permanent`).
        """
        with self.session_scope() as session:
            row = load_person(session, ref)
            person_id = row.person_id
            now = self._now()
            for collection_name, model in ASSOCIATIONS.items():
                if cascade and permanent:
                    stmt = delete(model).where(model.person_id == person_id)
                elif cascade:
                    stmt = (
                        update(model)
                        .where(model.person_id == person_id, model.deleted_at.is_(None))
                        .values(deleted_at=now)
                    )
                else:
                    stmt = update(model).where(model.person_id == person_id).values(person_id=None)
                result = session.execute(stmt.execution_options(synchronize_session=False))
                logger.debug("delete_person %s: %d %s affected", person_id, result.rowcount, collection_name)
            if permanent:
                session.delete(row)
            else:
                row.deleted_at = now
            logger.info(
                "Deleted person %s (id=%s, cascade=%s, permanent=%s)", row.name, person_id, cascade, permanent
            )
        return person_id

    def count_by_name(self, name: str, include_deleted: bool = True) -> int:
        with self.session_scope() as session:
            q = select(DBPerson.person_id).where(DBPerson.name == name)
            if not include_deleted:
                q = q.where(DBPerson.deleted_at.is_(None))
            return len(session.execute(q).scalars().all())

