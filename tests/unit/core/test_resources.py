"""Unit tests for the resource model."""

from __future__ import annotations

import pytest

from auditwhitelist.core.exceptions import ResourceParseError
from auditwhitelist.core.permissions import ALL_PERMISSIONS, Permission
from auditwhitelist.core.resources import (
    ConnectionResource,
    DataResource,
    FunctionResource,
    GrantResource,
    RoleResource,
    ascend_chain,
    parse_resource,
    printable_name,
)

RESOURCES = [
    DataResource.root(),
    DataResource.for_keyspace("school"),
    DataResource.for_table("school", "students"),
    RoleResource.root(),
    RoleResource("bob"),
    FunctionResource.root(),
    FunctionResource.for_keyspace("school"),
    FunctionResource.for_function("school", "avg_grade", ("int", "bigint")),
    FunctionResource.for_function("school", "now_utc"),
    FunctionResource.for_function("school", "to_map", ("frozen<map<text, int>>",)),
    ConnectionResource.root(),
    GrantResource.root(),
    GrantResource.wrap(DataResource.for_table("school", "students")),
    GrantResource.wrap(RoleResource("bob")),
    GrantResource.wrap(ConnectionResource.root()),
]


class TestParseResource:
    """Tests for parse_resource."""

    @pytest.mark.parametrize("resource", RESOURCES, ids=lambda r: r.name)
    def test_name_round_trip(self, resource) -> None:
        """Test that parsing a resource name yields the same resource."""
        assert parse_resource(resource.name) == resource

    def test_parse_table(self) -> None:
        """Test parsing a table resource."""
        resource = parse_resource("data/school/students")

        assert resource == DataResource(keyspace="school", table="students")
        assert resource.is_table_level

    def test_parse_strips_whitespace(self) -> None:
        """Test that surrounding whitespace is ignored."""
        assert parse_resource("  data/school ") == DataResource.for_keyspace("school")

    def test_parse_function_without_separator(self) -> None:
        """Test that a bare function name parses with no argument types."""
        resource = parse_resource("functions/school/now_utc")

        assert resource == FunctionResource.for_function("school", "now_utc")
        assert resource.name == "functions/school/now_utc|"

    def test_parse_nested_grant(self) -> None:
        """Test parsing a grant wrapping a role."""
        resource = parse_resource("grants/roles/bob")

        assert resource == GrantResource.wrap(RoleResource("bob"))

    @pytest.mark.parametrize(
        "name,segment",
        [
            ("", ""),
            ("tables/school", "tables"),
            ("data/school/students/extra", "extra"),
            ("roles/bob/alice", "alice"),
            ("connections/local", "local"),
            ("data//students", ""),
            ("data/school/", ""),
            ("grants/grants/data", "grants"),
        ],
    )
    def test_invalid_names(self, name: str, segment: str) -> None:
        """Test that malformed names name the offending segment."""
        with pytest.raises(ResourceParseError) as exc_info:
            parse_resource(name)

        assert exc_info.value.segment == segment

    def test_segment_with_whitespace_rejected(self) -> None:
        """Test that whitespace inside a segment is rejected."""
        with pytest.raises(ResourceParseError):
            parse_resource("data/my keyspace")

    def test_role_name_with_whitespace(self) -> None:
        """Test that quoted role names with whitespace parse."""
        resource = parse_resource("grants/roles/data team")

        assert resource == GrantResource.wrap(RoleResource("data team"))
        assert resource.name == "grants/roles/data team"

    @pytest.mark.parametrize("name", ["roles/ ", "roles/a/b"])
    def test_blank_or_nested_role_rejected(self, name: str) -> None:
        """Test that blank and nested role names are rejected."""
        with pytest.raises(ResourceParseError):
            parse_resource(name)


class TestResourceConstruction:
    """Tests for resource constructors."""

    def test_table_requires_keyspace(self) -> None:
        """Test that a table without a keyspace is rejected."""
        with pytest.raises(ResourceParseError):
            DataResource(table="students")

    def test_function_name_rejects_signature_separator(self) -> None:
        """Test that a function name may not contain the signature separator."""
        with pytest.raises(ResourceParseError):
            FunctionResource.for_function("school", "a|b")

    def test_argument_type_rejects_argument_separator(self) -> None:
        """Test that argument types may not contain the argument separator."""
        with pytest.raises(ResourceParseError):
            FunctionResource.for_function("school", "avg", ("int^int",))

    def test_grants_can_not_nest(self) -> None:
        """Test that a grant resource can not wrap another grant resource."""
        with pytest.raises(ResourceParseError):
            GrantResource.wrap(GrantResource.root())

    def test_resources_are_hashable(self) -> None:
        """Test that equal resources hash equally."""
        whitelist = {DataResource.for_keyspace("school"): frozenset({Permission.SELECT})}

        assert parse_resource("data/school") in whitelist


class TestAscendChain:
    """Tests for ascend_chain."""

    def test_table_chain_is_leaf_first(self) -> None:
        """Test the chain of a table."""
        chain = ascend_chain(DataResource.for_table("school", "students"))

        assert [r.name for r in chain] == ["data/school/students", "data/school", "data"]

    def test_root_chain_is_itself(self) -> None:
        """Test the chain of a root."""
        assert ascend_chain(ConnectionResource.root()) == [ConnectionResource.root()]

    def test_grant_chain_wraps_each_element(self) -> None:
        """Test that a grant chain wraps the wrapped chain and ends at the grants root."""
        chain = ascend_chain(GrantResource.wrap(RoleResource("bob")))

        assert [r.name for r in chain] == ["grants/roles/bob", "grants/roles", "grants"]

    def test_function_chain(self) -> None:
        """Test the chain of a function."""
        chain = ascend_chain(FunctionResource.for_function("school", "avg", ("int",)))

        assert [r.name for r in chain] == ["functions/school/avg|int", "functions/school", "functions"]

    def test_has_parent(self) -> None:
        """Test has_parent on roots and children."""
        assert not DataResource.root().has_parent
        assert RoleResource("bob").has_parent


class TestApplicablePermissions:
    """Tests for applicable permissions per resource kind."""

    def test_table_excludes_create(self) -> None:
        """Test that CREATE does not apply to a table."""
        permissions = DataResource.for_table("school", "students").applicable_permissions

        assert Permission.CREATE not in permissions
        assert Permission.SELECT in permissions

    def test_keyspace_includes_create(self) -> None:
        """Test that CREATE applies to a keyspace."""
        assert Permission.CREATE in DataResource.for_keyspace("school").applicable_permissions

    def test_role_root_includes_describe(self) -> None:
        """Test that DESCRIBE applies to the role root only."""
        assert Permission.DESCRIBE in RoleResource.root().applicable_permissions
        assert Permission.DESCRIBE not in RoleResource("bob").applicable_permissions

    def test_connections(self) -> None:
        """Test connection permissions."""
        assert ConnectionResource.root().applicable_permissions == frozenset(
            {Permission.AUTHORIZE, Permission.EXECUTE}
        )

    def test_grant_root_has_all(self) -> None:
        """Test that the grants root applies every permission."""
        assert GrantResource.root().applicable_permissions == ALL_PERMISSIONS

    def test_grant_follows_wrapped(self) -> None:
        """Test that a grant resource applies the wrapped resource's permissions."""
        wrapped = RoleResource("bob")

        assert GrantResource.wrap(wrapped).applicable_permissions == wrapped.applicable_permissions


class TestPrintableName:
    """Tests for printable_name."""

    def test_printable_name(self) -> None:
        """Test the custom option key of a whitelisted resource."""
        resource = DataResource.for_keyspace("school")

        assert printable_name(resource) == "AUDIT WHITELIST ON data/school"
