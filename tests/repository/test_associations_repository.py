import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from garage.db.models import Base
from garage.domain import Bike, Car, Person
from garage.exceptions import InvalidAssociationError, NotFoundError
from garage.repository.associations import AssociationsRepository
from garage.repository.people import PeopleRepository
from garage.repository.vehicles import VehiclesRepository


def _setup():
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    session_factory = sessionmaker(bind=engine, future=True)
    people = PeopleRepository(session_factory)
    john = people.insert_person(Person(
        name="John", age=20, sex="Male",
        cars=[Car("Car1", "Brand1"), Car("Car2", "Brand2")],
        bikes=[Bike("Bike1", "Brand1")],
    ))
    return john, AssociationsRepository(session_factory), VehiclesRepository(session_factory)


def test_find_returns_members_of_named_collection():
    john, assoc, _ = _setup()
    assert [c.name for c in assoc.find(john, "cars")] == ["Car1", "Car2"]
    assert [b.name for b in assoc.find("John", "bikes")] == ["Bike1"]
    assert assoc.count(john.person_id, "cars") == 2


def test_unknown_collection_is_invalid_association():
    john, assoc, _ = _setup()
    for call in (
        lambda: assoc.find(john, "boats"),
        lambda: assoc.append(john, "boats", [Car("X")]),
        lambda: assoc.replace(john, "boats", []),
        lambda: assoc.delete(john, "boats", []),
        lambda: assoc.clear(john, "boats"),
    ):
        with pytest.raises(InvalidAssociationError):
            call()


def test_unknown_person_is_not_found():
    _, assoc, _ = _setup()
    with pytest.raises(NotFoundError):
        assoc.find("Nobody", "cars")
    with pytest.raises(NotFoundError):
        assoc.append(12345, "cars", [Car("Car9")])


def test_replace_orphans_previous_members():
    john, assoc, vehicles = _setup()
    old = {c.vehicle_id: c.name for c in john.cars}

    new = assoc.replace(john, "cars", [Car("Car5", "Brand5"), Car("Car6", "Brand6")])

    assert {c.name for c in assoc.find(john, "cars")} == {"Car5", "Car6"}
    assert {c.vehicle_id for c in new} == {c.vehicle_id for c in assoc.find(john, "cars")}
    for vehicle_id, name in old.items():
        orphan = vehicles.get_vehicle("cars", vehicle_id)
        assert orphan.name == name
        assert orphan.person_id is None
    # the other collection is independent
    assert [b.name for b in assoc.find(john, "bikes")] == ["Bike1"]


def test_replace_permanent_deletes_previous_members():
    john, assoc, vehicles = _setup()
    old_ids = [c.vehicle_id for c in john.cars]

    new = assoc.replace(john, "cars", [Car("Car5", "Brand5")], permanent=True)

    # deleted ids are not handed out again
    assert new[0].vehicle_id not in old_ids
    for vehicle_id in old_ids:
        with pytest.raises(NotFoundError):
            vehicles.get_vehicle("cars", vehicle_id)
    assert vehicles.list_orphans("cars") == []


def test_replace_keeps_existing_member_passed_by_id():
    john, assoc, vehicles = _setup()
    car1 = next(c for c in john.cars if c.name == "Car1")

    assoc.replace(john, "cars", [car1, Car("Car5", "Brand5")])

    current = assoc.find(john, "cars")
    assert {c.name for c in current} == {"Car1", "Car5"}
    assert car1.vehicle_id in {c.vehicle_id for c in current}
    assert [o.name for o in vehicles.list_orphans("cars")] == ["Car2"]


def test_append_adds_without_touching_existing():
    john, assoc, _ = _setup()
    added = [Car("Car7", "Brand7"), Car("Car8", "Brand8")]
    assoc.append(john, "cars", added)

    assert [c.name for c in assoc.find(john, "cars")] == ["Car1", "Car2", "Car7", "Car8"]
    assert all(c.person_id == john.person_id and c.vehicle_id is not None for c in added)


def test_append_moves_an_orphan_back():
    john, assoc, vehicles = _setup()
    stray = vehicles.insert_vehicle("cars", Car("Stray", "BrandX"))
    assert stray.is_orphan

    assoc.append(john, "cars", [stray])
    assert vehicles.get_vehicle("cars", stray.vehicle_id).person_id == john.person_id


def test_delete_unlinks_by_default():
    john, assoc, vehicles = _setup()
    car1 = john.cars[0]

    removed = assoc.delete(john, "cars", [car1])

    assert removed == 1
    assert [c.name for c in assoc.find(john, "cars")] == ["Car2"]
    still_there = vehicles.get_vehicle("cars", car1.vehicle_id)
    assert still_there.person_id is None
    assert car1.person_id is None


def test_delete_permanent_removes_rows():
    john, assoc, vehicles = _setup()
    ids = [c.vehicle_id for c in john.cars]

    assert assoc.delete(john, "cars", john.cars, permanent=True) == 2

    assert assoc.find(john, "cars") == []
    for vehicle_id in ids:
        with pytest.raises(NotFoundError):
            vehicles.get_vehicle("cars", vehicle_id)


def test_delete_non_member_fails_and_changes_nothing():
    john, assoc, vehicles = _setup()
    stray = vehicles.insert_vehicle("cars", Car("Stray"))

    with pytest.raises(NotFoundError):
        assoc.delete(john, "cars", [john.cars[0], stray], permanent=True)

    assert assoc.count(john, "cars") == 2


def test_clear_unlinks_or_deletes_everything():
    john, assoc, vehicles = _setup()
    assert assoc.clear(john, "cars") == 2
    assert assoc.find(john, "cars") == []
    assert len(vehicles.list_orphans("cars")) == 2

    assert assoc.clear(john, "bikes", permanent=True) == 1
    assert vehicles.list_orphans("bikes") == []


def test_failed_append_leaves_rows_and_objects_unchanged():
    john, assoc, vehicles = _setup()
    batch = [Car("Car7"), Car("Bogus", vehicle_id=999)]

    with pytest.raises(NotFoundError):
        assoc.append(john, "cars", batch)

    assert batch[0].vehicle_id is None
    assert batch[0].person_id is None
    assert [c.name for c in assoc.find(john, "cars")] == ["Car1", "Car2"]
    assert vehicles.list_orphans("cars") == []


def test_failed_replace_leaves_rows_and_objects_unchanged():
    john, assoc, vehicles = _setup()
    batch = [Car("Car5", "Brand5"), Car("Bogus", vehicle_id=999)]

    with pytest.raises(NotFoundError):
        assoc.replace(john, "cars", batch)

    assert batch[0].vehicle_id is None
    assert [c.name for c in assoc.find(john, "cars")] == ["Car1", "Car2"]
    assert vehicles.list_orphans("cars") == []
    assert all(c.person_id == john.person_id for c in john.cars)


def test_replace_with_unknown_vehicle_id_is_not_found():
    john, assoc, _ = _setup()
    with pytest.raises(NotFoundError):
        assoc.replace(john, "cars", [Car("Ghost", vehicle_id=12345)], permanent=True)

    assert assoc.count(john, "cars") == 2


def test_replace_with_soft_deleted_vehicle_is_not_found():
    john, assoc, vehicles = _setup()
    people = PeopleRepository(assoc.session_factory)
    jane = people.insert_person(Person(name="Jane", cars=[Car("Car3", "Brand3")]))
    jane_car = jane.cars[0]
    people.delete_person(jane, cascade=True, permanent=False)

    with pytest.raises(NotFoundError):
        assoc.replace(john, "cars", [jane_car])

    assert [c.name for c in assoc.find(john, "cars")] == ["Car1", "Car2"]
    kept = vehicles.get_vehicle("cars", jane_car.vehicle_id, include_deleted=True)
    assert kept.person_id == jane.person_id
