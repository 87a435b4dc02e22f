"""
Tests for project creation, deletion and graph binding.

Creation and deletion touch several records at once and must leave either
all of them or none of them behind.
"""

import threading

import pytest

from auth.errors import (
    ForbiddenError,
    IllegalStateError,
    InvalidArgumentError,
    OperationFailedError,
)
from models import Belong, Project
from schemas import Permission, Resource, ResourceType


def _counts(manager):
    return {
        "projects": len(manager.list_all_projects()),
        "groups": len(manager.list_all_groups()),
        "targets": len(manager.list_all_targets()),
        "accesses": len(manager.list_all_access()),
    }


def _locked_elsewhere(manager, project_id):
    """Ask from another thread, since the lock is re-entrant for this one."""
    result = {}

    def check():
        result["locked"] = manager.locks.is_locked("hugegraph", "project", project_id)

    t = threading.Thread(target=check)
    t.start()
    t.join()
    return result["locked"]


@pytest.fixture
def project(manager):
    project = Project(name="P1", description="first project", creator="tests")
    manager.create_project(project)
    return project


class TestCreateProject:
    def test_creates_groups_target_and_grants(self, manager, project):
        assert project.id
        assert project.admin_group_id
        assert project.op_group_id
        assert project.target_id
        assert _counts(manager) == {"projects": 1, "groups": 2, "targets": 1, "accesses": 4}

        admin_group = manager.get_group(project.admin_group_id)
        op_group = manager.get_group(project.op_group_id)
        target = manager.get_target(project.target_id)
        assert admin_group.name == "P1_admin_group"
        assert op_group.name == "P1_op_group"
        assert target.name == "P1_target"
        assert target.graph == "hugegraph"
        assert target.resources == [Resource(type=ResourceType.PROJECT, label=project.id)]

        admin_perms = {a.permission for a in manager.list_access_by_group(admin_group.id)}
        op_perms = {a.permission for a in manager.list_access_by_group(op_group.id)}
        assert admin_perms == {Permission.WRITE, Permission.READ, Permission.DELETE}
        assert op_perms == {Permission.READ}
        assert all(a.target_id == target.id for a in manager.list_all_access())

    def test_stored_record_has_target(self, manager, project):
        manager.session.expire_all()
        stored = manager.get_project(project.id)

        assert stored.target_id == project.target_id
        assert stored.graph_set() == set()

    def test_members_of_admin_group_get_project_permissions(self, manager, make_user, project):
        alice = make_user("alice")
        manager.create_belong(Belong(user_id=alice.id, group_id=project.admin_group_id))

        role = manager.resolve_permission(alice)

        project_resource = Resource(type=ResourceType.PROJECT, label=project.id)
        for permission in (Permission.READ, Permission.WRITE, Permission.DELETE):
            assert role.get("hugegraph", permission) == {project_resource}

    def test_supplied_group_is_reused(self, manager, make_group):
        admins = make_group("existing_admins")

        project = Project(name="P2", admin_group_id=admins.id)
        manager.create_project(project)

        assert project.admin_group_id == admins.id
        assert _counts(manager)["groups"] == 2
        assert len(manager.list_access_by_group(admins.id)) == 3

    def test_unknown_supplied_group_rejected(self, manager):
        with pytest.raises(InvalidArgumentError, match="Not exists group"):
            manager.create_project(Project(name="P2", op_group_id="missing"))

        assert _counts(manager) == {"projects": 0, "groups": 0, "targets": 0, "accesses": 0}

    def test_empty_name_rejected(self, manager):
        with pytest.raises(InvalidArgumentError):
            manager.create_project(Project(name=""))

    def test_duplicate_name_rolls_back(self, manager, project):
        with pytest.raises(OperationFailedError) as excinfo:
            manager.create_project(Project(name="P1"))

        assert isinstance(excinfo.value.cause, InvalidArgumentError)
        assert _counts(manager) == {"projects": 1, "groups": 2, "targets": 1, "accesses": 4}

    def test_failing_grant_leaves_nothing_behind(self, manager, monkeypatch):
        original_add = manager.accesses.add
        calls = {"n": 0}

        def flaky_add(access):
            calls["n"] += 1
            if calls["n"] == 4:
                raise RuntimeError("store unavailable")
            return original_add(access)

        monkeypatch.setattr(manager.accesses, "add", flaky_add)
        project = Project(name="P1")

        with pytest.raises(OperationFailedError) as excinfo:
            manager.create_project(project)

        assert isinstance(excinfo.value.cause, RuntimeError)
        assert excinfo.value.__cause__ is excinfo.value.cause
        assert _counts(manager) == {"projects": 0, "groups": 0, "targets": 0, "accesses": 0}
        assert project.id is None
        assert project.admin_group_id is None
        assert project.op_group_id is None
        assert project.target_id is None

        monkeypatch.undo()
        manager.create_project(project)
        assert _counts(manager) == {"projects": 1, "groups": 2, "targets": 1, "accesses": 4}

    def test_missing_stored_project_fails_whole_unit(self, manager, monkeypatch):
        monkeypatch.setattr(manager.projects, "get", lambda project_id: None)

        with pytest.raises(OperationFailedError) as excinfo:
            manager.create_project(Project(name="P1"))

        assert isinstance(excinfo.value.cause, IllegalStateError)
        monkeypatch.undo()
        assert _counts(manager) == {"projects": 0, "groups": 0, "targets": 0, "accesses": 0}

    def test_failure_clears_caches(self, manager, make_user, make_group, monkeypatch):
        admins, ops = make_group("admins"), make_group("ops")
        make_user("alice")
        manager.find_user("alice")
        monkeypatch.setattr(manager.targets, "add", lambda target: 1 / 0)

        with pytest.raises(OperationFailedError):
            manager.create_project(
                Project(name="P1", admin_group_id=admins.id, op_group_id=ops.id)
            )

        assert manager.users_cache.get("alice") is None

    def test_stores_commit_again_after_failure(self, manager, monkeypatch):
        monkeypatch.setattr(manager.targets, "add", lambda target: 1 / 0)

        with pytest.raises(OperationFailedError):
            manager.create_project(Project(name="P1"))

        assert manager.groups.auto_commit
        assert manager.accesses.auto_commit
        assert not manager.transactions.active


class TestDeleteProject:
    def test_removes_everything_it_created(self, manager, project):
        deleted = manager.delete_project(project.id)

        assert deleted.id == project.id
        assert manager.get_project(project.id) is None
        assert manager.get_group(project.admin_group_id) is None
        assert manager.get_group(project.op_group_id) is None
        assert manager.get_target(project.target_id) is None
        assert _counts(manager) == {"projects": 0, "groups": 0, "targets": 0, "accesses": 0}

    def test_removes_memberships_of_project_groups(self, manager, make_user, project):
        alice = make_user("alice")
        manager.create_belong(Belong(user_id=alice.id, group_id=project.op_group_id))

        manager.delete_project(project.id)

        assert manager.list_belong_by_user(alice.id) == []
        assert manager.resolve_permission(alice).is_empty()

    def test_bound_graph_forbids_delete(self, manager, project):
        manager.update_project_add_graph(project.id, "g1")

        with pytest.raises(ForbiddenError, match="g1"):
            manager.delete_project(project.id)

        assert manager.get_project(project.id) is not None
        assert _counts(manager) == {"projects": 1, "groups": 2, "targets": 1, "accesses": 4}
        assert not _locked_elsewhere(manager, project.id)

    def test_unknown_project_rejected(self, manager):
        with pytest.raises(InvalidArgumentError, match="does not exist"):
            manager.delete_project("missing")

    def test_corrupt_record_keeps_everything(self, manager, project):
        stored = manager.get_project(project.id)
        stored.op_group_id = None
        manager.projects.update(stored)

        with pytest.raises(OperationFailedError) as excinfo:
            manager.delete_project(project.id)

        assert isinstance(excinfo.value.cause, IllegalStateError)
        assert manager.get_project(project.id) is not None
        assert _counts(manager) == {"projects": 1, "groups": 2, "targets": 1, "accesses": 4}
        assert not _locked_elsewhere(manager, project.id)


class TestProjectGraphs:
    def test_add_and_remove_graph(self, manager, project):
        assert manager.update_project_add_graph(project.id, "g1") == project.id
        manager.update_project_add_graph(project.id, "g2")
        assert manager.get_project(project.id).graph_set() == {"g1", "g2"}

        manager.update_project_remove_graph(project.id, "g1")
        assert manager.get_project(project.id).graph_set() == {"g2"}

    def test_binding_twice_rejected(self, manager, project):
        manager.update_project_add_graph(project.id, "g1")

        with pytest.raises(InvalidArgumentError, match="already bound"):
            manager.update_project_add_graph(project.id, "g1")

        assert manager.get_project(project.id).graph_set() == {"g1"}

    def test_removing_unbound_graph_is_noop(self, manager, project):
        manager.update_project_add_graph(project.id, "g1")
        before = manager.get_project(project.id).updated_at

        assert manager.update_project_remove_graph(project.id, "g2") == project.id
        stored = manager.get_project(project.id)
        assert stored.graph_set() == {"g1"}
        assert stored.updated_at == before

    def test_empty_graph_name_rejected(self, manager, project):
        with pytest.raises(InvalidArgumentError):
            manager.update_project_add_graph(project.id, "")
        with pytest.raises(InvalidArgumentError):
            manager.update_project_remove_graph(project.id, None)

    def test_unknown_project_rejected(self, manager):
        with pytest.raises(InvalidArgumentError, match="not found"):
            manager.update_project_add_graph("missing", "g1")
        assert not _locked_elsewhere(manager, "missing")

    def test_unbinding_allows_delete(self, manager, project):
        manager.update_project_add_graph(project.id, "g1")
        manager.update_project_remove_graph(project.id, "g1")

        manager.delete_project(project.id)

        assert manager.list_all_projects() == []


class TestUpdateProject:
    def test_update_description(self, manager, project):
        assert manager.update_project(project.id, "renamed") == project.id
        assert manager.get_project(project.id).description == "renamed"

    def test_empty_description_rejected(self, manager, project):
        with pytest.raises(InvalidArgumentError):
            manager.update_project(project.id, "")
        assert manager.get_project(project.id).description == "first project"

    def test_unknown_project_rejected(self, manager):
        with pytest.raises(InvalidArgumentError):
            manager.update_project("missing", "text")


class TestProjectLocking:
    def test_concurrent_graph_bindings_are_serialized(self, manager, project, monkeypatch):
        """A second writer waits until the first has finished its update."""
        entered = threading.Event()
        release = threading.Event()
        original_update = manager.projects.update

        def slow_update(entity):
            entered.set()
            release.wait(timeout=5)
            return original_update(entity)

        monkeypatch.setattr(manager.projects, "update", slow_update)
        worker = threading.Thread(
            target=manager.update_project_add_graph, args=(project.id, "g1")
        )
        worker.start()
        assert entered.wait(timeout=5)

        assert _locked_elsewhere(manager, project.id)

        release.set()
        worker.join(timeout=5)
        assert not _locked_elsewhere(manager, project.id)

    def test_lock_names_released_after_project_lifecycle(self, manager):
        for i in range(20):
            project = Project(name=f"P{i}")
            manager.create_project(project)
            manager.update_project_add_graph(project.id, "g1")
            manager.update_project_remove_graph(project.id, "g1")
            manager.delete_project(project.id)

        assert len(manager.locks) == 0
