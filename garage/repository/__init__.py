from .people import PeopleRepository, UpsertMode
from .associations import AssociationsRepository
from .vehicles import VehiclesRepository

__all__ = ["PeopleRepository", "UpsertMode", "AssociationsRepository", "VehiclesRepository"]
