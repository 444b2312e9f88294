from typing import List

from sqlalchemy import select

from garage.domain import Vehicle
from garage.exceptions import NotFoundError
from garage.repository.base import SessionRepository, association_model, load_person, vehicle_to_domain


class VehiclesRepository(SessionRepository):
    """Direct access to car and bike rows, independent of any owner."""

    def insert_vehicle(self, collection_name: str, vehicle: Vehicle) -> Vehicle:
        """Store a vehicle on its own. `vehicle.person_id` is kept as given (usually None).

        A given owner must be a live person, otherwise NotFoundError and
        nothing is written.
        """
        model = association_model(collection_name)
        with self.session_scope() as session:
            if vehicle.person_id is not None:
                load_person(session, vehicle.person_id)
            row = model(name=vehicle.name, brand=vehicle.brand, person_id=vehicle.person_id)
            session.add(row)
            session.flush()
            out = vehicle_to_domain(collection_name, row)
        vehicle.vehicle_id = out.vehicle_id
        return out

    def get_vehicle(self, collection_name: str, vehicle_id: int, include_deleted: bool = False) -> Vehicle:
        model = association_model(collection_name)
        with self.session_scope() as session:
            row = session.get(model, vehicle_id)
            if row is None or (row.deleted_at is not None and not include_deleted):
                raise NotFoundError(model.__name__, vehicle_id)
            return vehicle_to_domain(collection_name, row)

    def list_orphans(self, collection_name: str) -> List[Vehicle]:
        model = association_model(collection_name)
        with self.session_scope() as session:
            q = (
                select(model)
                .where(model.person_id.is_(None), model.deleted_at.is_(None))
                .order_by(model.vehicle_id)
            )
            return [vehicle_to_domain(collection_name, r) for r in session.execute(q).scalars().all()]

    def list_by_owner_id(self, collection_name: str, person_id: int, include_deleted: bool = True) -> List[Vehicle]:
        """Rows whose back-reference is `person_id`, whether or not that person still exists."""
        model = association_model(collection_name)
        with self.session_scope() as session:
            q = select(model).where(model.person_id == person_id).order_by(model.vehicle_id)
            if not include_deleted:
                q = q.where(model.deleted_at.is_(None))
            return [vehicle_to_domain(collection_name, r) for r in session.execute(q).scalars().all()]
