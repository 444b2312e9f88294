import logging
from typing import Optional

from garage.container import Container
from garage.db.engine import check_connection, init_orm
from garage.domain import Bike, Car, Person
from garage.services.association_store import AssociationStore

logger = logging.getLogger("garage.run")


def sample_people():
    john = Person(
        name="John",
        age=20,
        sex="Male",
        cars=[Car("Car1", "Brand1"), Car("Car2", "Brand2")],
        bikes=[Bike("Bike1", "Brand1"), Bike("Bike2", "Brand2")],
    )
    jane = Person(
        name="Jane",
        age=20,
        sex="Female",
        cars=[Car("Car3", "Brand3"), Car("Car4", "Brand4")],
        bikes=[Bike("Bike3", "Brand3"), Bike("Bike4", "Brand4")],
    )
    return john, jane


def sample_updates():
    john = Person(
        name="John",
        age=21,
        sex="Male",
        cars=[Car("Car1", "Brand1"), Car("Car2", "Brand1")],
        bikes=[Bike("Bike1", "Brand1"), Bike("Bike2", "Brand1")],
    )
    jane = Person(
        name="Jane",
        age=23,
        sex="Female",
        cars=[Car("Car3", "Brand3"), Car("Car4", "Brand3")],
        bikes=[Bike("Bike3", "Brand3"), Bike("Bike4", "Brand3")],
    )
    return john, jane


def run_demo(store: AssociationStore) -> None:
    """Walk through insert, lookup, upsert and the association operations."""
    john, jane = sample_people()
    store.upsert_by_key(john)
    store.upsert_by_key(jane)

    p1 = store.find_by_key(john.name)
    logger.info("Person 1: %s", p1)
    p2 = store.find_by_key(jane.name)
    logger.info("Person 2: %s", p2)

    john_update, jane_update = sample_updates()

    # Upsert Jane with fresh vehicles; see UpsertMode for how the old ones are treated.
    p2 = store.upsert_by_key(jane_update)
    logger.info("After upsert: %s cars=%s", p2, p2.cars)

    logger.info("Found cars: %s", store.get_association(p1, "cars"))

    # Scalars only, the vehicles stay as they are.
    p1 = store.update_scalars(john_update)
    logger.info("After scalar update: %s", p1)

    # Replace orphans Car1 and Car2 rather than deleting them.
    c2 = [Car("Car5", "Brand5"), Car("Car6", "Brand6")]
    store.replace_association(p1, "cars", c2)
    logger.info("Replaced cars: %s", c2)
    logger.info("Orphaned cars: %s", store.list_orphans("cars"))

    store.delete_association(p1, "cars", c2, permanent=True)
    logger.info("Cleared cars for %s", p1.name)

    c3 = [Car("Car7", "Brand7"), Car("Car8", "Brand8")]
    store.append_association(p1, "cars", c3)
    logger.info("Appended cars: %s", c3)

    former_id = store.delete_parent(p2, cascade=True, permanent=True)
    logger.info("Deleted %s (id=%s) with all vehicles", p2.name, former_id)
    logger.info("Remaining people: %s", store.list_parents())
    logger.info("Rows named %s: %d", p1.name, store.count_by_key(p1.name))


def main(container: Optional[Container] = None):
    container = container or Container()
    logging.basicConfig(
        level=container.config.GARAGE_LOG_LEVEL() or "INFO",
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    store = container.association_store()
    try:
        engine = container.db_engine()
        check_connection(engine)
        init_orm(engine)
        run_demo(store)
    finally:
        store.close()


if __name__ == '__main__':
    main()
