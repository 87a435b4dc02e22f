"""Services package for Graphēon auth: keyed stores over the auth models."""

from .entity_store import Direction, EntityStore, RelationshipStore

__all__ = [
    "Direction",
    "EntityStore",
    "RelationshipStore",
]
