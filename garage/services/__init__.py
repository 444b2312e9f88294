from .association_store import AssociationStore

__all__ = ["AssociationStore"]
