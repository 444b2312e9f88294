import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Union

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from garage.db.engine import check_connection, init_orm, make_engine
from garage.domain import Person, Vehicle
from garage.repository.associations import AssociationsRepository
from garage.repository.base import PersonRef
from garage.repository.people import PeopleRepository, UpsertMode
from garage.repository.vehicles import VehiclesRepository

logger = logging.getLogger(__name__)


class AssociationStore:
    """People and their `cars` / `bikes` collections.

    Collection policy in one place:
    - `replace_association` orphans the previous members (owner cleared,
      rows kept) unless `permanent=True`, which deletes them.
    - `delete_association` unlinks, or deletes rows with `permanent=True`.
    - `upsert_by_key` follows UpsertMode. The default APPEND mode inserts
      fresh vehicles next to the existing ones, so every repeated upsert
      of the same payload duplicates vehicles. Pass RECONCILE (or RELINK)
      unless duplicates are what you want.

    The store owns `engine` when it is given one and disposes it on `close()`.
    """

    def __init__(
        self,
        people_repo: PeopleRepository,
        associations_repo: AssociationsRepository,
        vehicles_repo: VehiclesRepository,
        engine: Optional[Engine] = None,
    ):
        self.people_repo = people_repo
        self.associations_repo = associations_repo
        self.vehicles_repo = vehicles_repo
        self.engine = engine
        self._closed = False

    @classmethod
    def from_engine(cls, engine: Engine, upsert_mode: Union[UpsertMode, str] = UpsertMode.APPEND) -> "AssociationStore":
        session_factory = sessionmaker(bind=engine, future=True)
        return cls(
            people_repo=PeopleRepository(session_factory, default_upsert_mode=upsert_mode),
            associations_repo=AssociationsRepository(session_factory),
            vehicles_repo=VehiclesRepository(session_factory),
            engine=engine,
        )

    @classmethod
    @contextmanager
    def open(cls, database_url: Optional[str] = None, upsert_mode: Union[UpsertMode, str] = UpsertMode.APPEND) -> Iterator["AssociationStore"]:
        """Connect, create the schema and yield a store; the engine is disposed on exit.

        Raises StoreConnectionError before yielding when the database is unreachable.
        """
        engine = make_engine(database_url)
        store = cls.from_engine(engine, upsert_mode=upsert_mode)
        try:
            check_connection(engine)
            init_orm(engine)
            yield store
        finally:
            store.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database connection closed")

    def __enter__(self) -> "AssociationStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Person lifecycle

    def insert(self, parent: Person) -> Person:
        return self.people_repo.insert_person(parent)

    def upsert_by_key(self, parent: Person, match_field: str = "name", mode: Optional[Union[UpsertMode, str]] = None) -> Person:
        return self.people_repo.upsert_person(parent, match_field=match_field, mode=mode)

    def find_by_key(self, key: str) -> Person:
        return self.people_repo.find_by_key(key)

    def update_scalars(self, parent: Person) -> Person:
        """Write age/sex of `parent` (looked up by name) without touching its vehicles."""
        return self.people_repo.update_scalars(parent.without_collections())

    def list_parents(self, include_deleted: bool = False) -> List[Person]:
        """People without their collections, oldest first."""
        return self.people_repo.list_people(include_deleted=include_deleted)

    def count_by_key(self, key: str, include_deleted: bool = True) -> int:
        """Rows stored under `key`; an upsert keeps this at one."""
        return self.people_repo.count_by_name(key, include_deleted=include_deleted)

    def delete_parent(self, parent: PersonRef, cascade: bool = True, permanent: bool = False) -> int:
        """Delete a person, see PeopleRepository.delete_person for the matrix.

        `cascade` without `permanent` soft-deletes the vehicles along with the
        person, the same as an ORM delete that selects every association.
        """
        return self.people_repo.delete_person(parent, cascade=cascade, permanent=permanent)

    # Collections

    def get_association(self, parent: PersonRef, collection_name: str) -> List[Vehicle]:
        return self.associations_repo.find(parent, collection_name)

    def count_association(self, parent: PersonRef, collection_name: str) -> int:
        return self.associations_repo.count(parent, collection_name)

    def replace_association(self, parent: PersonRef, collection_name: str, new_members: Iterable[Vehicle], permanent: bool = False) -> List[Vehicle]:
        return self.associations_repo.replace(parent, collection_name, new_members, permanent=permanent)

    def append_association(self, parent: PersonRef, collection_name: str, members: Iterable[Vehicle]) -> List[Vehicle]:
        return self.associations_repo.append(parent, collection_name, members)

    def delete_association(self, parent: PersonRef, collection_name: str, members: Iterable[Vehicle], permanent: bool = False) -> int:
        return self.associations_repo.delete(parent, collection_name, members, permanent=permanent)

    def clear_association(self, parent: PersonRef, collection_name: str, permanent: bool = False) -> int:
        return self.associations_repo.clear(parent, collection_name, permanent=permanent)

    # Vehicles

    def add_child(self, collection_name: str, child: Vehicle) -> Vehicle:
        return self.vehicles_repo.insert_vehicle(collection_name, child)

    def get_child(self, collection_name: str, child_id: int) -> Vehicle:
        return self.vehicles_repo.get_vehicle(collection_name, child_id)

    def list_orphans(self, collection_name: str) -> List[Vehicle]:
        return self.vehicles_repo.list_orphans(collection_name)

    def list_children_of(self, collection_name: str, person_id: int) -> List[Vehicle]:
        return self.vehicles_repo.list_by_owner_id(collection_name, person_id)
