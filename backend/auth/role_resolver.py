"""
Role-permission resolution.

Turns scattered Access grants into one :class:`RolePermission`:

    user --belong--> group --access(permission)--> target(graph, resources)

For every grant reached, the target's resources are unioned into
``role[target.graph][access.permission]``.
"""

import logging
from typing import Callable, Iterable, List, Optional, Union

from models import Access, Belong, Group, Target, User
from schemas import Permission

from .cache import LookupCache
from .errors import InvalidArgumentError
from .role_permission import RolePermission

logger = logging.getLogger(__name__)

# Everything whose permissions can be resolved
AuthSubject = Union[User, Group, Target, Belong, Access]


class RoleResolver:
    """
    Resolves the permissions of an :data:`AuthSubject`.

    The resolver does no I/O of its own; it is handed the lookups it needs.

    Args:
        get_target: Target by id.
        list_belong_by_user: Membership edges leaving a user.
        list_access_by_group: Grant edges leaving a group.
        role_cache: Resolved roles keyed by user id. Cleared by the manager
            whenever identities or grants change.
    """

    def __init__(
        self,
        get_target: Callable[[str], Optional[Target]],
        list_belong_by_user: Callable[[str], List[Belong]],
        list_access_by_group: Callable[[str], List[Access]],
        role_cache: LookupCache[RolePermission],
    ):
        self._get_target = get_target
        self._list_belong_by_user = list_belong_by_user
        self._list_access_by_group = list_access_by_group
        self.role_cache = role_cache

    def resolve(self, subject: AuthSubject) -> RolePermission:
        if isinstance(subject, User):
            return self.resolve_user(subject)
        if isinstance(subject, Target):
            return self.resolve_target(subject)
        if isinstance(subject, Belong):
            return self.aggregate(self._list_access_by_group(subject.group_id))
        if isinstance(subject, Group):
            return self.aggregate(self._list_access_by_group(subject.id))
        if isinstance(subject, Access):
            return self.aggregate([subject])
        raise InvalidArgumentError(
            f"Invalid type for role permission: {type(subject).__name__}"
        )

    def resolve_user(self, user: User) -> RolePermission:
        """Role of a user; callers get a copy, the cached entry stays private."""
        cached = self.role_cache.get(user.id)
        if cached is not None:
            return cached.copy()

        accesses: List[Access] = []
        for belong in self._list_belong_by_user(user.id):
            accesses.extend(self._list_access_by_group(belong.group_id))

        role = self.aggregate(accesses)
        self.role_cache.update(user.id, role)
        logger.debug(
            f"Resolved role of user '{user.name}' from {len(accesses)} grants"
        )
        return role.copy()

    def resolve_target(self, target: Target) -> RolePermission:
        """Direct view of a target: READ over its own resources."""
        role = RolePermission()
        role.add(target.graph, Permission.READ, target.resources)
        return role

    def aggregate(self, accesses: Iterable[Access]) -> RolePermission:
        role = RolePermission()
        for access in accesses:
            target = self._get_target(access.target_id)
            if target is None:
                logger.warning(
                    f"Access {access.id} points at missing target {access.target_id}, skipped"
                )
                continue
            role.add(target.graph, access.permission, target.resources)
        return role
