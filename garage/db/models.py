from __future__ import annotations


from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import declarative_base, relationship


Base = declarative_base()


class Person(Base):
    __tablename__ = "people"
    # Deleted ids must never be handed out again.
    __table_args__ = {"sqlite_autoincrement": True}

    person_id = Column(Integer, primary_key=True)
    name = Column(Text, unique=True, nullable=False)
    age = Column(Integer, nullable=True)
    sex = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    # Children are managed explicitly by the repositories; the ORM must not
    # null out or delete them on its own.
    cars = relationship("Car", back_populates="owner", order_by="Car.vehicle_id", passive_deletes="all")
    bikes = relationship("Bike", back_populates="owner", order_by="Bike.vehicle_id", passive_deletes="all")


class Car(Base):
    __tablename__ = "cars"
    # Deleted ids must never be handed out again.
    __table_args__ = {"sqlite_autoincrement": True}

    vehicle_id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    brand = Column(Text, nullable=True)
    person_id = Column(Integer, ForeignKey("people.person_id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    owner = relationship("Person", back_populates="cars")


class Bike(Base):
    __tablename__ = "bikes"
    # Deleted ids must never be handed out again.
    __table_args__ = {"sqlite_autoincrement": True}

    vehicle_id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    brand = Column(Text, nullable=True)
    person_id = Column(Integer, ForeignKey("people.person_id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    owner = relationship("Person", back_populates="bikes")


# Collection name on Person -> child model. The only associations the store accepts.
ASSOCIATIONS = {
    "cars": Car,
    "bikes": Bike,
}
