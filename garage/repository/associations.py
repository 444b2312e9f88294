import logging
from typing import Iterable, List

from garage.domain import Vehicle
from garage.exceptions import NotFoundError
from garage.repository.base import (
    PersonRef,
    SessionRepository,
    association_model,
    attach_member,
    live_members,
    load_person,
    vehicle_to_domain,
    write_back,
)

logger = logging.getLogger(__name__)


class AssociationsRepository(SessionRepository):
    """Membership of the `cars` / `bikes` collections of a person.

    Every method takes the collection by name and fails with
    InvalidAssociationError for names Person does not declare, before any
    query runs. Each call is a single transaction.
    """

    def find(self, ref: PersonRef, collection_name: str) -> List[Vehicle]:
        model = association_model(collection_name)
        with self.session_scope() as session:
            person = load_person(session, ref)
            rows = live_members(session, model, person.person_id)
            return [vehicle_to_domain(collection_name, r) for r in rows]

    def count(self, ref: PersonRef, collection_name: str) -> int:
        return len(self.find(ref, collection_name))

    def append(self, ref: PersonRef, collection_name: str, members: Iterable[Vehicle]) -> List[Vehicle]:
        """Link `members` to the person, leaving current members alone.

        New vehicles are inserted; vehicles with an id are moved over. The
        ids land on `members` only once the write has committed.
        """
        model = association_model(collection_name)
        members = list(members)
        with self.session_scope() as session:
            person = load_person(session, ref)
            rows = [attach_member(session, model, person.person_id, m) for m in members]
            logger.info("Appended %d %s to person %s", len(rows), collection_name, person.person_id)
            out = [vehicle_to_domain(collection_name, r) for r in rows]
        write_back((m, v.vehicle_id, v.person_id) for m, v in zip(members, out))
        return out

    def replace(self, ref: PersonRef, collection_name: str, members: Iterable[Vehicle], permanent: bool = False) -> List[Vehicle]:
        """Make the collection exactly `members`.

        Previous members that are not in `members` are orphaned: their owner
        reference is cleared and the rows are kept. With `permanent` they are
        deleted instead.
        """
        model = association_model(collection_name)
        members = list(members)
        with self.session_scope() as session:
            person = load_person(session, ref)
            keep = {m.vehicle_id for m in members if m.vehicle_id is not None}
            dropped = [r for r in live_members(session, model, person.person_id) if r.vehicle_id not in keep]
            for row in dropped:
                if permanent:
                    session.delete(row)
                else:
                    row.person_id = None
            session.flush()
            rows = [attach_member(session, model, person.person_id, m) for m in members]
            logger.info(
                "Replaced %s of person %s: %d in, %d %s",
                collection_name, person.person_id, len(rows), len(dropped), "deleted" if permanent else "orphaned",
            )
            out = [vehicle_to_domain(collection_name, r) for r in rows]
        write_back((m, v.vehicle_id, v.person_id) for m, v in zip(members, out))
        return out

    def delete(self, ref: PersonRef, collection_name: str, members: Iterable[Vehicle], permanent: bool = False) -> int:
        """Remove `members` from the collection and return how many were removed.

        Without `permanent` the vehicles are only unlinked and stay reachable
        by id; with it their rows are deleted. Every member must currently
        belong to the collection, otherwise NotFoundError and nothing changes.
        """
        model = association_model(collection_name)
        members = list(members)
        with self.session_scope() as session:
            person = load_person(session, ref)
            current = {r.vehicle_id: r for r in live_members(session, model, person.person_id)}
            targets = []
            for m in members:
                row = current.get(m.vehicle_id) if m.vehicle_id is not None else None
                if row is None:
                    raise NotFoundError(
                        model.__name__, m.vehicle_id if m.vehicle_id is not None else m.name,
                        f"is not in {collection_name} of person {person.person_id}",
                    )
                targets.append(row)
            for row in targets:
                if permanent:
                    session.delete(row)
                else:
                    row.person_id = None
            logger.info(
                "%s %d %s of person %s",
                "Deleted" if permanent else "Unlinked", len(targets), collection_name, person.person_id,
            )
        for m in members:
            m.person_id = None
        return len(targets)

    def clear(self, ref: PersonRef, collection_name: str, permanent: bool = False) -> int:
        """Remove every member of the collection (unlink, or delete with `permanent`)."""
        model = association_model(collection_name)
        with self.session_scope() as session:
            person = load_person(session, ref)
            rows = live_members(session, model, person.person_id)
            for row in rows:
                if permanent:
                    session.delete(row)
                else:
                    row.person_id = None
            logger.info("Cleared %d %s of person %s", len(rows), collection_name, person.person_id)
            return len(rows)
