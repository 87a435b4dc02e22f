"""Tests for RolePermission and the Resource value type."""

import pytest
from pydantic import ValidationError

from auth.role_permission import RolePermission
from schemas import Permission, Resource, ResourceType


PERSON = Resource(type=ResourceType.VERTEX, label="person")
SOFTWARE = Resource(type=ResourceType.VERTEX, label="software")
KNOWS = Resource(type=ResourceType.EDGE, label="knows")


def test_add_unions_resources():
    role = RolePermission()
    role.add("g1", Permission.READ, [PERSON, SOFTWARE])
    role.add("g1", Permission.READ, [SOFTWARE, KNOWS])
    role.add("g1", Permission.READ, [Resource(type=ResourceType.VERTEX, label="person")])

    assert role.get("g1", Permission.READ) == {PERSON, SOFTWARE, KNOWS}


def test_permissions_and_graphs_are_kept_apart():
    role = RolePermission()
    role.add("g1", Permission.READ, [PERSON])
    role.add("g1", Permission.WRITE, [KNOWS])
    role.add("g2", Permission.READ, [SOFTWARE])

    assert role.graphs == ["g1", "g2"]
    assert role.get("g1", Permission.WRITE) == {KNOWS}
    assert role.get("g2", Permission.WRITE) == set()
    assert role.get("missing", Permission.READ) == set()


def test_order_of_grants_does_not_matter():
    first, second = RolePermission(), RolePermission()
    first.add("g", "read", [PERSON])
    first.add("g", "READ", [KNOWS])
    second.add("g", Permission.READ, [KNOWS, PERSON])

    assert first == second


def test_contains_with_wildcards():
    role = RolePermission()
    role.add("g1", Permission.READ, [Resource(type=ResourceType.VERTEX, label="*")])

    assert role.contains("g1", Permission.READ)
    assert role.contains("g1", Permission.READ, PERSON)
    assert not role.contains("g1", Permission.READ, KNOWS)
    assert not role.contains("g1", Permission.WRITE)
    assert not role.contains("g2", Permission.READ)


def test_contains_with_property_filter():
    role = RolePermission()
    role.add("g", Permission.READ, [
        Resource(type=ResourceType.VERTEX, label="person", properties={"city": "Beijing"}),
    ])

    beijing = Resource(type=ResourceType.VERTEX, label="person",
                       properties={"city": "Beijing", "age": 20})
    shanghai = Resource(type=ResourceType.VERTEX, label="person",
                        properties={"city": "Shanghai"})

    assert role.contains("g", Permission.READ, beijing)
    assert not role.contains("g", Permission.READ, shanghai)


def test_admin_role_covers_everything():
    admin = RolePermission.admin()

    assert admin.contains("any-graph", Permission.DELETE, KNOWS)
    assert RolePermission.none().is_empty()


def test_dict_form_is_stable_and_reversible():
    role = RolePermission()
    role.add("g", Permission.WRITE, [SOFTWARE, PERSON])

    data = role.to_dict()

    assert data == {
        "g": {
            "write": [
                {"type": "VERTEX", "label": "person", "properties": None},
                {"type": "VERTEX", "label": "software", "properties": None},
            ]
        }
    }
    assert RolePermission.from_dict(data) == role


def test_copy_is_independent():
    role = RolePermission()
    role.add("g", Permission.READ, [PERSON])

    copied = role.copy()
    copied.add("g", Permission.READ, [SOFTWARE])
    copied.add("g", Permission.WRITE, [KNOWS])
    copied.add("other", Permission.ANY, [PERSON])

    assert copied != role
    assert role.get("g", Permission.READ) == {PERSON}
    assert role.graphs == ["g"]
    assert role.copy() == role


class TestResource:
    def test_equal_resources_hash_equal(self):
        a = Resource(type=ResourceType.VERTEX, label="person", properties={"x": 1, "y": 2})
        b = Resource(type=ResourceType.VERTEX, label="person", properties={"y": 2, "x": 1})

        assert a == b
        assert len({a, b}) == 1

    def test_blank_label_rejected(self):
        with pytest.raises(ValidationError):
            Resource(type=ResourceType.VERTEX, label="  ")

    def test_permission_parse_accepts_names_and_values(self):
        assert Permission.parse("READ") is Permission.READ
        assert Permission.parse("delete") is Permission.DELETE
        assert Permission.parse(Permission.ANY) is Permission.ANY
        with pytest.raises(KeyError):
            Permission.parse("fly")
