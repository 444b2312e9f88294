from typing import Optional


class Vehicle:
    """A member of one of a person's collections.

    `person_id` is the owner back-reference; `None` means the vehicle is
    orphaned (stored but not associated with anyone).
    """

    collection_name: str = ""

    def __init__(self, name: str, brand: Optional[str] = None, vehicle_id: Optional[int] = None, person_id: Optional[int] = None):
        self.vehicle_id = vehicle_id
        self.name = name
        self.brand = brand
        self.person_id = person_id

    @property
    def is_orphan(self) -> bool:
        return self.person_id is None

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return (self.vehicle_id, self.name, self.brand, self.person_id) == (other.vehicle_id, other.name, other.brand, other.person_id)

    def __hash__(self):
        return hash((type(self).__name__, self.vehicle_id, self.name, self.brand, self.person_id))

    def __repr__(self):
        return f"<{type(self).__name__} id={self.vehicle_id} name={self.name} brand={self.brand} owner={self.person_id}>"


class Car(Vehicle):
    collection_name = "cars"


class Bike(Vehicle):
    collection_name = "bikes"
