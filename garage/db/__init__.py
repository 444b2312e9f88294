from .engine import make_engine, init_orm, check_connection
from .models import Base, Person, Car, Bike, ASSOCIATIONS

__all__ = [
    "make_engine",
    "init_orm",
    "check_connection",
    "Base",
    "Person",
    "Car",
    "Bike",
    "ASSOCIATIONS",
]
