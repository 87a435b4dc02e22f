"""Resolved permissions of a subject: graph -> permission -> resources."""

from typing import Any, Dict, Iterable, List, Optional, Set

from schemas import ANY_LABEL, Permission, Resource, ResourceType

ANY_GRAPH = "*"


class RolePermission:
    """
    Aggregated authorization result.

    Entries only ever grow: adding the same resource twice, or adding
    grants in a different order, yields the same map.
    """

    def __init__(self):
        self.roles: Dict[str, Dict[Permission, Set[Resource]]] = {}

    @classmethod
    def none(cls) -> "RolePermission":
        return cls()

    @classmethod
    def admin(cls) -> "RolePermission":
        """Everything on every graph."""
        role = cls()
        role.add(ANY_GRAPH, Permission.ANY, [Resource(type=ResourceType.ALL, label=ANY_LABEL)])
        return role

    def add(self, graph: str, permission: Permission, resources: Iterable[Resource]) -> None:
        permission = Permission.parse(permission)
        bucket = self.roles.setdefault(graph, {}).setdefault(permission, set())
        bucket.update(resources)

    def get(self, graph: str, permission: Permission) -> Set[Resource]:
        permissions = self.roles.get(graph, {})
        return set(permissions.get(Permission.parse(permission), set()))

    def copy(self) -> "RolePermission":
        """Independent copy; resources are immutable and shared."""
        role = RolePermission()
        role.roles = {
            graph: {permission: set(resources) for permission, resources in permissions.items()}
            for graph, permissions in self.roles.items()
        }
        return role

    @property
    def graphs(self) -> List[str]:
        return sorted(self.roles)

    def contains(
        self,
        graph: str,
        permission: Permission,
        resource: Optional[Resource] = None,
    ) -> bool:
        """
        Whether ``permission`` on ``graph`` is granted, optionally for a
        specific ``resource``. ``*`` graphs, ANY permissions and wildcard
        resources count as matches.
        """
        permission = Permission.parse(permission)
        for g in (graph, ANY_GRAPH):
            permissions = self.roles.get(g)
            if not permissions:
                continue
            for p in (permission, Permission.ANY):
                granted = permissions.get(p)
                if not granted:
                    continue
                if resource is None:
                    return True
                if any(r.matches(resource) for r in granted):
                    return True
        return False

    def is_empty(self) -> bool:
        return not any(resources for perms in self.roles.values() for resources in perms.values())

    def to_dict(self) -> Dict[str, Dict[str, List[Dict[str, Any]]]]:
        return {
            graph: {
                permission.value: [
                    r.model_dump(mode="json")
                    for r in sorted(resources, key=lambda r: r.key())
                ]
                for permission, resources in sorted(
                    permissions.items(), key=lambda item: item[0].value
                )
            }
            for graph, permissions in sorted(self.roles.items())
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, List[Dict[str, Any]]]]) -> "RolePermission":
        role = cls()
        for graph, permissions in (data or {}).items():
            for permission, resources in permissions.items():
                role.add(graph, Permission.parse(permission),
                         (Resource.model_validate(r) for r in resources))
        return role

    def __eq__(self, other):
        if not isinstance(other, RolePermission):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"<RolePermission {self.to_dict()}>"
