"""Dependency injection container for the application."""
from dependency_injector import containers, providers
from sqlalchemy.orm import sessionmaker

from garage import config as env
from garage.db.engine import make_engine
from garage.repository.associations import AssociationsRepository
from garage.repository.people import PeopleRepository
from garage.repository.vehicles import VehiclesRepository
from garage.services.association_store import AssociationStore


# Environment variables used by the container (read via `garage.config` helpers).
#
# DATABASE_URL (str | optional)
#   SQLAlchemy URL. When unset, a postgresql+psycopg2 URL is assembled from
#   GARAGE_DB_HOST, GARAGE_DB_USER, GARAGE_DB_PASSWORD, GARAGE_DB_NAME,
#   GARAGE_DB_PORT and GARAGE_DB_TIMEZONE (see `config.database_url()`).
#
# GARAGE_UPSERT_MODE (str, default: "append")
#   Collection policy for upserts on an existing person: "append", "relink"
#   or "reconcile". Value is normalized with `.strip().lower()`.
#
# GARAGE_LOG_LEVEL (str, default: "INFO")
#   Root log level configured by run.py.
ENV = {
    "DATABASE_URL": env.database_url(),
    "GARAGE_UPSERT_MODE": env.upsert_mode(),
    "GARAGE_LOG_LEVEL": env.log_level(),
}


class Container(containers.DeclarativeContainer):
    """Dependency injection container for the garage store."""

    config = providers.Configuration(default=ENV)

    # Database engine - Singleton to reuse the connection pool
    db_engine = providers.Singleton(
        make_engine,
        database_url=config.DATABASE_URL
    )
    # Session factory bound to the engine
    session_factory = providers.Factory(
        sessionmaker,
        bind=db_engine,
        future=True
    )

    people_repository = providers.Singleton(
        PeopleRepository,
        session_factory=session_factory,
        default_upsert_mode=config.GARAGE_UPSERT_MODE.as_(str),
    )

    associations_repository = providers.Singleton(
        AssociationsRepository,
        session_factory=session_factory
    )

    vehicles_repository = providers.Singleton(
        VehiclesRepository,
        session_factory=session_factory
    )

    association_store = providers.Singleton(
        AssociationStore,
        people_repo=people_repository,
        associations_repo=associations_repository,
        vehicles_repo=vehicles_repository,
        engine=db_engine,
    )
