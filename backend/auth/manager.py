"""
Authorization manager for one graph namespace.

Owns the stores for users, groups, targets, belongs, accesses and projects,
the lookup caches in front of them, and the composite project operations.

Usage::

    with SessionLocal() as session:
        manager = AuthManager(session, graph_name="hugegraph")
        manager.init_schema_if_needed()
        user_id = manager.create_user(User(name="alice", password=hash_password("s3cret")))
        role = manager.login_user("alice", "s3cret")

Cache policy: any write to users, groups, targets, belongs or accesses
clears every cache (identity, verified credential, resolved role). Entries
also expire after ``AUTH_CACHE_EXPIRE_SECONDS`` regardless of writes.

Tenancy: one manager serves one graph. Isolation between tenants comes from
separate managers/sessions, never from per-call filtering.
"""

import functools
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from config import settings
from database import init_db
from models import Access, Belong, Group, Project, Target, User
from schemas import Permission, Resource, ResourceType
from services.entity_store import Direction, EntityStore, RelationshipStore
from utils.audit import audit
from utils.locks import LockManager, locks as default_locks
from utils.logging_utils import LogTimer

from .cache import LookupCache
from .credentials import check_password
from .errors import (
    ForbiddenError,
    InvalidArgumentError,
    OperationFailedError,
    check_argument,
    check_state,
)
from .role_permission import RolePermission
from .role_resolver import AuthSubject, RoleResolver
from .transaction import TransactionCoordinator

logger = logging.getLogger(__name__)

PasswordChecker = Callable[[str, str], bool]

# Lock group for project read-modify-write operations
PROJECT_LOCK_GROUP = "project"

_PROJECT_DERIVED_FIELDS = ("id", "admin_group_id", "op_group_id", "target_id")


class AuthManager:
    """
    Identity, grant and project lifecycle for a single graph.

    Args:
        session: Session shared by every store of this manager. Like the
            session, a manager is meant to be used from one thread at a time;
            the caches and locks are safe to share.
        graph_name: Graph namespace served (defaults to ``GRAPH_NAME``).
        password_checker: ``(candidate, stored_hash) -> bool``; bcrypt by
            default.
        lock_manager: Registry for per-project write locks.
        cache_expire_seconds: Lifetime of cache entries.
    """

    def __init__(
        self,
        session: Session,
        graph_name: Optional[str] = None,
        password_checker: Optional[PasswordChecker] = None,
        lock_manager: Optional[LockManager] = None,
        cache_expire_seconds: Optional[float] = None,
    ):
        self.session = session
        self.graph_name = graph_name or settings.GRAPH_NAME
        self.password_checker = password_checker or check_password
        self.locks = lock_manager if lock_manager is not None else default_locks

        expire = (
            cache_expire_seconds
            if cache_expire_seconds is not None
            else settings.AUTH_CACHE_EXPIRE_SECONDS
        )
        self.users_cache: LookupCache[User] = self._cache("users", expire)
        self.pwd_cache: LookupCache[str] = self._cache("users_pwd", expire)
        self.role_cache: LookupCache[RolePermission] = self._cache("users_role", expire)

        self.users = EntityStore(session, User, "user")
        self.groups = EntityStore(session, Group, "group")
        self.targets = EntityStore(session, Target, "target")
        self.projects = EntityStore(session, Project, "project")
        self.belongs = RelationshipStore(
            session, Belong, "belong", source_field="user_id", target_field="group_id"
        )
        self.accesses = RelationshipStore(
            session, Access, "access",
            source_field="group_id", target_field="target_id",
            natural_key=("group_id", "target_id", "permission"),
        )

        self.transactions = TransactionCoordinator(
            session,
            [self.groups, self.accesses, self.targets,
             self.projects, self.belongs, self.users],
            on_rollback=self.invalidate_cache,
        )
        self.resolver = RoleResolver(
            get_target=self.get_target,
            list_belong_by_user=self.list_belong_by_user,
            list_access_by_group=self.list_access_by_group,
            role_cache=self.role_cache,
        )
        logger.info(f"AuthManager initialized for graph '{self.graph_name}'")

    def _cache(self, prefix: str, expire: float) -> LookupCache:
        return LookupCache(f"{prefix}-{self.graph_name}", expire)

    # ==================== LIFECYCLE ====================

    def init_schema_if_needed(self) -> List[str]:
        """Create missing auth tables; call once when the store starts."""
        self.invalidate_cache()
        created = init_db(self.session.get_bind())
        if created:
            logger.info(f"Created auth tables for graph '{self.graph_name}': {created}")
        return created

    def close(self) -> bool:
        self.invalidate_cache()
        self.session.close()
        logger.info(f"AuthManager closed for graph '{self.graph_name}'")
        return True

    def invalidate_cache(self) -> None:
        self.users_cache.clear()
        self.pwd_cache.clear()
        self.role_cache.clear()

    def _audit(self, log: Callable[..., None], *args, **kwargs) -> None:
        """Write an audit event; inside a transactional unit it waits for the commit."""
        self.transactions.after_commit(functools.partial(log, *args, **kwargs))

    # ==================== USERS ====================

    def create_user(self, user: User) -> str:
        check_argument(bool(user.name), "User name can't be null or empty")
        check_argument(bool(user.password), "User password can't be null or empty")
        self.invalidate_cache()
        user_id = self.users.add(user)
        self._audit(audit.log_entity_change, "CREATE", "User", user_id, user.creator, name=user.name)
        return user_id

    def update_user(self, user: User) -> str:
        self.invalidate_cache()
        user_id = self.users.update(user)
        self._audit(audit.log_entity_change, "UPDATE", "User", user_id, user.creator, name=user.name)
        return user_id

    def delete_user(self, user_id: str) -> Optional[User]:
        self.invalidate_cache()
        user = self.users.delete(user_id)
        if user is not None:
            self._audit(audit.log_entity_change, "DELETE", "User", user_id, name=user.name)
        return user

    def find_user(self, name: str) -> Optional[User]:
        """User by name, served from the identity cache when possible."""
        user = self.users_cache.get(name)
        if user is not None:
            return user

        users = self.users.query("name", name, limit=2)
        if not users:
            return None
        check_state(len(users) == 1, "Found %s users named '%s'", len(users), name)
        user = users[0]
        self.users_cache.update(name, user)
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def list_users(self, ids: List[str]) -> List[User]:
        return self.users.list(ids)

    def list_all_users(self, limit: int = -1) -> List[User]:
        return self.users.list_all(limit)

    # ==================== GROUPS ====================

    def create_group(self, group: Group) -> str:
        check_argument(bool(group.name), "Group name can't be null or empty")
        self.invalidate_cache()
        group_id = self.groups.add(group)
        self._audit(audit.log_entity_change, "CREATE", "Group", group_id, group.creator, name=group.name)
        return group_id

    def update_group(self, group: Group) -> str:
        self.invalidate_cache()
        group_id = self.groups.update(group)
        self._audit(audit.log_entity_change, "UPDATE", "Group", group_id, group.creator, name=group.name)
        return group_id

    def delete_group(self, group_id: str) -> Optional[Group]:
        self.invalidate_cache()
        group = self.groups.delete(group_id)
        if group is not None:
            self._audit(audit.log_entity_change, "DELETE", "Group", group_id, name=group.name)
        return group

    def get_group(self, group_id: str) -> Optional[Group]:
        return self.groups.get(group_id)

    def list_groups(self, ids: List[str]) -> List[Group]:
        return self.groups.list(ids)

    def list_all_groups(self, limit: int = -1) -> List[Group]:
        return self.groups.list_all(limit)

    # ==================== TARGETS ====================

    def create_target(self, target: Target) -> str:
        check_argument(bool(target.name), "Target name can't be null or empty")
        check_argument(bool(target.graph), "Target graph can't be null or empty")
        check_argument(bool(target.url), "Target url can't be null or empty")
        self.invalidate_cache()
        target_id = self.targets.add(target)
        self._audit(
            audit.log_entity_change, "CREATE", "Target", target_id, target.creator,
            name=target.name, details={"graph": target.graph},
        )
        return target_id

    def update_target(self, target: Target) -> str:
        self.invalidate_cache()
        target_id = self.targets.update(target)
        self._audit(
            audit.log_entity_change, "UPDATE", "Target", target_id, target.creator,
            name=target.name, details={"graph": target.graph},
        )
        return target_id

    def delete_target(self, target_id: str) -> Optional[Target]:
        self.invalidate_cache()
        target = self.targets.delete(target_id)
        if target is not None:
            self._audit(audit.log_entity_change, "DELETE", "Target", target_id, name=target.name)
        return target

    def get_target(self, target_id: str) -> Optional[Target]:
        return self.targets.get(target_id)

    def list_targets(self, ids: List[str]) -> List[Target]:
        return self.targets.list(ids)

    def list_all_targets(self, limit: int = -1) -> List[Target]:
        return self.targets.list_all(limit)

    # ==================== BELONGS ====================

    def create_belong(self, belong: Belong) -> str:
        self.invalidate_cache()
        check_argument(self.users.exists(belong.user_id),
                       "Not exists user '%s'", belong.user_id)
        check_argument(self.groups.exists(belong.group_id),
                       "Not exists group '%s'", belong.group_id)
        belong_id = self.belongs.add(belong)
        self._audit(
            audit.log_entity_change, "CREATE", "Belong", belong_id, belong.creator,
            details={"user_id": belong.user_id, "group_id": belong.group_id},
        )
        return belong_id

    def update_belong(self, belong: Belong) -> str:
        self.invalidate_cache()
        belong_id = self.belongs.update(belong)
        self._audit(audit.log_entity_change, "UPDATE", "Belong", belong_id, belong.creator)
        return belong_id

    def delete_belong(self, belong_id: str) -> Optional[Belong]:
        self.invalidate_cache()
        belong = self.belongs.delete(belong_id)
        if belong is not None:
            self._audit(audit.log_entity_change, "DELETE", "Belong", belong_id)
        return belong

    def get_belong(self, belong_id: str) -> Optional[Belong]:
        return self.belongs.get(belong_id)

    def list_belong(self, ids: List[str]) -> List[Belong]:
        return self.belongs.list(ids)

    def list_all_belong(self, limit: int = -1) -> List[Belong]:
        return self.belongs.list_all(limit)

    def list_belong_by_user(self, user_id: str, limit: int = -1) -> List[Belong]:
        return self.belongs.list_by_node(user_id, Direction.OUT, limit)

    def list_belong_by_group(self, group_id: str, limit: int = -1) -> List[Belong]:
        return self.belongs.list_by_node(group_id, Direction.IN, limit)

    # ==================== ACCESSES ====================

    def create_access(self, access: Access) -> str:
        check_argument(access.permission is not None, "Access permission can't be null")
        try:
            access.permission = Permission.parse(access.permission)
        except (KeyError, ValueError):
            raise InvalidArgumentError(f"Invalid access permission '{access.permission}'") from None
        self.invalidate_cache()
        check_argument(self.groups.exists(access.group_id),
                       "Not exists group '%s'", access.group_id)
        check_argument(self.targets.exists(access.target_id),
                       "Not exists target '%s'", access.target_id)
        access_id = self.accesses.add(access)
        self._audit(
            audit.log_entity_change, "CREATE", "Access", access_id, access.creator,
            details={
                "group_id": access.group_id,
                "target_id": access.target_id,
                "permission": access.permission.value,
            },
        )
        return access_id

    def update_access(self, access: Access) -> str:
        self.invalidate_cache()
        access_id = self.accesses.update(access)
        self._audit(audit.log_entity_change, "UPDATE", "Access", access_id, access.creator)
        return access_id

    def delete_access(self, access_id: str) -> Optional[Access]:
        self.invalidate_cache()
        access = self.accesses.delete(access_id)
        if access is not None:
            self._audit(audit.log_entity_change, "DELETE", "Access", access_id)
        return access

    def get_access(self, access_id: str) -> Optional[Access]:
        return self.accesses.get(access_id)

    def list_access(self, ids: List[str]) -> List[Access]:
        return self.accesses.list(ids)

    def list_all_access(self, limit: int = -1) -> List[Access]:
        return self.accesses.list_all(limit)

    def list_access_by_group(self, group_id: str, limit: int = -1) -> List[Access]:
        return self.accesses.list_by_node(group_id, Direction.OUT, limit)

    def list_access_by_target(self, target_id: str, limit: int = -1) -> List[Access]:
        return self.accesses.list_by_node(target_id, Direction.IN, limit)

    # ==================== CREDENTIALS & PERMISSIONS ====================

    def match_user(self, name: str, password: str) -> Optional[User]:
        """
        Return the user if ``password`` is right, else ``None``.

        A password already proven correct for this user id is remembered,
        so repeated logins skip the hash comparison.
        """
        check_argument(name is not None, "User name can't be null")
        check_argument(password is not None, "User password can't be null")

        user = self.find_user(name)
        if user is None:
            return None

        if password == self.pwd_cache.get(user.id):
            return user

        if self.password_checker(password, user.password):
            self.pwd_cache.update(user.id, password)
            return user
        return None

    def login_user(self, name: str, password: str) -> Optional[RolePermission]:
        user = self.match_user(name, password)
        audit.log_login(name, user is not None)
        if user is None:
            return None
        return self.resolver.resolve_user(user)

    def resolve_permission(self, subject: AuthSubject) -> RolePermission:
        """Permissions of a user, group, target, belong or access."""
        return self.resolver.resolve(subject)

    # ==================== PROJECTS ====================

    def create_project(self, project: Project) -> str:
        """
        Create a project with its admin group, op group and target.

        The admin group gets WRITE, READ and DELETE on the target, the op
        group READ. Group ids already set on ``project`` are reused. All
        records are written in one transaction.
        """
        check_argument(bool(project.name), "Name of project can't be null or empty")
        for field in ("admin_group_id", "op_group_id"):
            group_id = getattr(project, field)
            check_argument(not group_id or self.groups.exists(group_id),
                           "Not exists group '%s' for %s", group_id, field)

        def unit() -> str:
            if not project.admin_group_id:
                admin_group = Group(name=project.admin_group_name, creator=project.creator)
                project.admin_group_id = self.create_group(admin_group)
            if not project.op_group_id:
                op_group = Group(name=project.op_group_name, creator=project.creator)
                project.op_group_id = self.create_group(op_group)

            project_id = self.projects.add(project)
            check_state(bool(project_id), "Create project '%s' failed", project.name)

            resource = Resource(type=ResourceType.PROJECT, label=project_id)
            target = Target(
                name=project.target_name,
                graph=self.graph_name,
                url=settings.PROJECT_TARGET_URL,
                resources=[resource],
                creator=project.creator,
            )
            target_id = self.targets.add(target)

            grants = [
                (project.admin_group_id, Permission.WRITE),
                (project.admin_group_id, Permission.READ),
                (project.admin_group_id, Permission.DELETE),
                (project.op_group_id, Permission.READ),
            ]
            for group_id, permission in grants:
                self.accesses.add(Access(
                    group_id=group_id,
                    target_id=target_id,
                    permission=permission,
                    creator=project.creator,
                ))
            self.invalidate_cache()

            stored = self.projects.get(project_id)
            check_state(stored is not None, "Create project '%s' failed", project.name)
            stored.target_id = target_id
            return self.projects.update(stored)

        # Fields the unit fills in; restored if the transaction is rolled back
        supplied = {f: getattr(project, f) for f in _PROJECT_DERIVED_FIELDS}
        try:
            with LogTimer(logger, f"Creating project '{project.name}'"):
                project_id = self.transactions.commit(
                    unit, f"create project '{project.name}'"
                )
        except OperationFailedError:
            for field, value in supplied.items():
                setattr(project, field, value)
            raise

        audit.log_project_change(
            "CREATE", project_id, project.creator,
            details={
                "name": project.name,
                "admin_group_id": project.admin_group_id,
                "op_group_id": project.op_group_id,
                "target_id": project.target_id,
            },
        )
        return project_id

    def delete_project(self, project_id: str) -> Project:
        """
        Delete a project and the admin group, op group and target it owns.

        Raises:
            InvalidArgumentError: The project does not exist.
            ForbiddenError: Graphs are still bound to the project.
            OperationFailedError: A deletion step failed; nothing was removed.
        """
        with self.locks.lock_writes(self.graph_name, PROJECT_LOCK_GROUP, project_id):
            existing = self.projects.get(project_id)
            check_argument(existing is not None,
                           "Project with id '%s' does not exist", project_id)
            if existing.graph_set():
                raise ForbiddenError(
                    f"Project with id '{project_id}' still has graphs bound to it: "
                    f"{sorted(existing.graph_set())}"
                )

            def unit() -> Project:
                project = self.projects.delete(project_id)
                check_state(project is not None, "Deleting project '%s' failed", project_id)
                check_state(bool(project.admin_group_id),
                            "Deleting '%s' failed, admin group id is empty", project_id)
                check_state(bool(project.op_group_id),
                            "Deleting '%s' failed, op group id is empty", project_id)
                check_state(bool(project.target_id),
                            "Deleting '%s' failed, target id is empty", project_id)
                self.delete_group(project.admin_group_id)
                self.delete_group(project.op_group_id)
                self.delete_target(project.target_id)
                return project

            with LogTimer(logger, f"Deleting project '{project_id}'"):
                project = self.transactions.commit(unit, f"delete project '{project_id}'")

        audit.log_project_change("DELETE", project_id, details={"name": project.name})
        return project

    def update_project(self, project_id: str, description: str) -> str:
        """Replace the project's description."""
        check_argument(bool(description),
                       "Description of project '%s' can't be null or empty", project_id)
        with self.locks.lock_writes(self.graph_name, PROJECT_LOCK_GROUP, project_id):
            project = self._require_project(project_id)
            project.description = description
            updated = self.projects.update(project)
        audit.log_project_change("UPDATE", updated, details={"description": description})
        return updated

    def update_project_add_graph(self, project_id: str, graph: str) -> str:
        """Bind ``graph`` to the project; binding it twice is an error."""
        check_argument(bool(graph), "Graph to bind can't be null or empty")
        with self.locks.lock_writes(self.graph_name, PROJECT_LOCK_GROUP, project_id):
            project = self._require_project(project_id)
            graphs = project.graph_set()
            check_argument(graph not in graphs,
                           "Graph '%s' is already bound to project '%s'", graph, project_id)
            graphs.add(graph)
            project.graphs = sorted(graphs)
            updated = self.projects.update(project)
        audit.log_project_change("ADD_GRAPH", updated, details={"graph": graph})
        return updated

    def update_project_remove_graph(self, project_id: str, graph: str) -> str:
        """Unbind ``graph``; unbinding a graph that is not bound does nothing."""
        check_argument(bool(graph), "Graph to unbind can't be null or empty")
        with self.locks.lock_writes(self.graph_name, PROJECT_LOCK_GROUP, project_id):
            project = self._require_project(project_id)
            graphs = project.graph_set()
            if graph not in graphs:
                return project_id
            graphs.remove(graph)
            project.graphs = sorted(graphs)
            updated = self.projects.update(project)
        audit.log_project_change("REMOVE_GRAPH", updated, details={"graph": graph})
        return updated

    def get_project(self, project_id: str) -> Optional[Project]:
        return self.projects.get(project_id)

    def list_all_projects(self, limit: int = -1) -> List[Project]:
        return self.projects.list_all(limit)

    def _require_project(self, project_id: str) -> Project:
        project = self.projects.get(project_id)
        check_argument(project is not None,
                       "Project with id '%s' is not found", project_id)
        return project


def is_local(manager) -> bool:
    """Whether ``manager`` runs in this process (as opposed to a remote proxy)."""
    return isinstance(manager, AuthManager)
