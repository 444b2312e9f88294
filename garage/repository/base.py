from contextlib import contextmanager
from typing import Iterable, Iterator, Optional, Tuple, Type, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, selectinload

from garage.db.models import ASSOCIATIONS, Bike as DBBike, Car as DBCar, Person as DBPerson
from garage.domain import Bike, Car, Person, Vehicle
from garage.exceptions import (
    ConstraintViolationError,
    InvalidAssociationError,
    NotFoundError,
    StoreConnectionError,
)

PersonRef = Union[Person, int, str]

DOMAIN_TYPES = {
    "cars": Car,
    "bikes": Bike,
}


def association_model(collection_name: str) -> Type:
    """Return the ORM model behind a Person collection name."""
    try:
        return ASSOCIATIONS[collection_name]
    except (KeyError, TypeError):
        raise InvalidAssociationError(str(collection_name), ASSOCIATIONS) from None


def vehicle_to_domain(collection_name: str, row) -> Vehicle:
    cls = DOMAIN_TYPES[collection_name]
    return cls(vehicle_id=row.vehicle_id, name=row.name, brand=row.brand, person_id=row.person_id)


def person_to_domain(row: DBPerson, with_collections: bool = True) -> Person:
    person = Person(person_id=row.person_id, name=row.name, age=row.age, sex=row.sex)
    if with_collections:
        person.cars = [vehicle_to_domain("cars", c) for c in row.cars]
        person.bikes = [vehicle_to_domain("bikes", b) for b in row.bikes]
    return person


def _describe(ref: PersonRef):
    if isinstance(ref, Person):
        return ref.person_id if ref.person_id is not None else ref.name
    return ref


def load_person(session: Session, ref: PersonRef, preload: bool = False, include_deleted: bool = False) -> DBPerson:
    """Resolve a person by domain object, id or name.

    A domain Person is matched on `person_id` when it has one, otherwise on
    `name`. Soft-deleted rows are skipped unless `include_deleted` is set.
    With `preload`, both collections are loaded (live members only) and any
    stale copy in the session is refreshed.
    """
    q = select(DBPerson)
    if isinstance(ref, Person):
        if ref.person_id is not None:
            q = q.where(DBPerson.person_id == ref.person_id)
        else:
            q = q.where(DBPerson.name == ref.name)
    elif isinstance(ref, int):
        q = q.where(DBPerson.person_id == ref)
    elif isinstance(ref, str):
        q = q.where(DBPerson.name == ref)
    else:
        raise TypeError(f"cannot resolve a person from {type(ref).__name__}")
    if not include_deleted:
        q = q.where(DBPerson.deleted_at.is_(None))
    if preload:
        q = q.options(
            selectinload(DBPerson.cars.and_(DBCar.deleted_at.is_(None))),
            selectinload(DBPerson.bikes.and_(DBBike.deleted_at.is_(None))),
        ).execution_options(populate_existing=True)
    row = session.execute(q).scalars().first()
    if row is None:
        raise NotFoundError("Person", _describe(ref))
    return row


def live_members(session: Session, model, person_id: int) -> list:
    q = (
        select(model)
        .where(model.person_id == person_id, model.deleted_at.is_(None))
        .order_by(model.vehicle_id)
    )
    return list(session.execute(q).scalars().all())


def attach_member(session: Session, model, person_id: Optional[int], member: Vehicle, vehicle_id: Optional[int] = None):
    """Link `member` to `person_id`, inserting it when it has no id yet.

    `vehicle_id` overrides `member.vehicle_id`. An id must name a live row
    of `model`; that row is relinked and its name/brand overwritten.
    `member` itself is not modified, see `write_back`.
    """
    vehicle_id = vehicle_id if vehicle_id is not None else member.vehicle_id
    if vehicle_id is not None:
        row = session.get(model, vehicle_id)
        if row is None or row.deleted_at is not None:
            raise NotFoundError(model.__name__, vehicle_id)
        row.name = member.name
        row.brand = member.brand
        row.person_id = person_id
    else:
        row = model(name=member.name, brand=member.brand, person_id=person_id)
        session.add(row)
    session.flush()
    return row


def write_back(pending: Iterable[Tuple[Vehicle, int, Optional[int]]]) -> None:
    """Copy `(member, vehicle_id, person_id)` onto the caller's objects.

    Only call once the transaction has committed, so a rolled back write
    never leaves ids behind.
    """
    for member, vehicle_id, person_id in pending:
        member.vehicle_id = vehicle_id
        member.person_id = person_id


class SessionRepository:
    """Base for repositories that open one session per operation.

    Requires an explicit `session_factory` (callable returning a `Session`).
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def get_session(self) -> Session:
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Run a block in one transaction: commit on success, roll back on any error.

        Integrity failures surface as ConstraintViolationError and lost
        connections as StoreConnectionError.
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise ConstraintViolationError("write rejected", e) from e
        except (OperationalError, InterfaceError) as e:
            session.rollback()
            raise StoreConnectionError(e) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
