"""Domain objects for garage - explicit re-exports to satisfy linters."""
from .person import Person as Person
from .vehicle import Vehicle as Vehicle
from .vehicle import Car as Car
from .vehicle import Bike as Bike

__all__ = ["Person", "Vehicle", "Car", "Bike"]
