from typing import List, Optional

from .vehicle import Bike, Car


class Person:
    """A person owning two independent vehicle collections.

    `cars` / `bikes` set to `None` mean "not specified": writes leave the
    stored collection untouched. An empty list means "no members".
    """

    def __init__(
        self,
        name: str,
        age: Optional[int] = None,
        sex: Optional[str] = None,
        cars: Optional[List[Car]] = None,
        bikes: Optional[List[Bike]] = None,
        person_id: Optional[int] = None,
    ):
        self.person_id = person_id
        self.name = name
        self.age = age
        self.sex = sex
        self.cars = list(cars) if cars is not None else None
        self.bikes = list(bikes) if bikes is not None else None

    def without_collections(self) -> "Person":
        """Return a copy carrying only the scalar fields."""
        return Person(name=self.name, age=self.age, sex=self.sex, person_id=self.person_id)

    def __repr__(self):
        cars = len(self.cars) if self.cars is not None else "-"
        bikes = len(self.bikes) if self.bikes is not None else "-"
        return f"<Person id={self.person_id} name={self.name} age={self.age} cars={cars} bikes={bikes}>"
