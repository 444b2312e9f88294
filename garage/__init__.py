"""Person / car / bike association store on SQLAlchemy."""

__version__ = "0.1.0"
