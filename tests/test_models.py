"""Tests for descriptor models."""

import pytest
from pydantic import ValidationError

from db_dumper.schema.models import (
    CatalogSnapshot,
    ColumnSchema,
    DatabaseObject,
    ObjectKind,
    ObjectRef,
    Permission,
    TableDetail,
    ValueCategory,
)


class TestObjectRef:
    """Identity and ordering keys."""

    def test_hashable_and_equal_by_value(self) -> None:
        a = ObjectRef(kind=ObjectKind.TABLE, schema_name="public", name="users")
        b = ObjectRef(kind=ObjectKind.TABLE, schema_name="public", name="users")
        assert a == b
        assert len({a, b}) == 1

    def test_frozen(self) -> None:
        ref = ObjectRef(kind=ObjectKind.TABLE, schema_name="public", name="users")
        with pytest.raises(ValidationError):
            ref.name = "other"

    def test_sort_key_kind_is_last_tie_break(self) -> None:
        type_ref = ObjectRef(kind=ObjectKind.TYPE, schema_name="public", name="x")
        table_ref = ObjectRef(kind=ObjectKind.TABLE, schema_name="public", name="x")
        assert type_ref.sort_key < table_ref.sort_key

    def test_str(self) -> None:
        assert str(ObjectRef(kind=ObjectKind.ROLE, name="alice")) == "role alice"
        assert (
            str(ObjectRef(kind=ObjectKind.INDEX, schema_name="s", name="i")) == "index s.i"
        )


class TestColumnSchema:
    """Column fetch and insert properties."""

    def test_defaults(self) -> None:
        col = ColumnSchema(name="id", data_type="integer")
        assert col.is_nullable is True
        assert col.category == ValueCategory.TEXT_CAST
        assert col.fetch_as_text is True
        assert col.is_insertable is True

    def test_generated_column_not_insertable(self) -> None:
        col = ColumnSchema(name="total", data_type="integer", generated="a + b")
        assert col.is_insertable is False

    def test_invalid_identity_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ColumnSchema(name="id", data_type="integer", identity="SOMETIMES")


class TestTableDetail:
    """Derived table properties."""

    def test_insertable_columns_and_identity(self) -> None:
        detail = TableDetail(
            columns=[
                ColumnSchema(name="id", data_type="integer", identity="ALWAYS"),
                ColumnSchema(name="g", data_type="integer", generated="id + 1"),
            ]
        )
        assert [c.name for c in detail.insertable_columns] == ["id"]
        assert detail.has_always_identity
        assert not detail.is_partitioned

    def test_by_default_identity_not_overridden(self) -> None:
        detail = TableDetail(
            columns=[ColumnSchema(name="id", data_type="integer", identity="BY DEFAULT")]
        )
        assert not detail.has_always_identity


class TestCatalogSnapshot:
    """Snapshot lookups."""

    def make(self) -> CatalogSnapshot:
        users = DatabaseObject(
            kind=ObjectKind.TABLE, schema_name="public", name="users", owner="bob"
        )
        idx = DatabaseObject(
            kind=ObjectKind.INDEX, schema_name="public", name="users_idx", owner="carol"
        )
        accounts = DatabaseObject(
            kind=ObjectKind.TABLE, schema_name="public", name="accounts", owner="alice"
        )
        return CatalogSnapshot(
            database="shop",
            database_owner="alice",
            objects=[users, idx, accounts],
            permissions=[
                Permission(grantee="zed", object=users.ref, privileges={"SELECT"}),
                Permission(grantee="amy", object=users.ref, privileges={"SELECT"}),
                Permission(grantee="amy", object=accounts.ref, privileges={"SELECT"}),
            ],
        )

    def test_objects_of_sorted(self) -> None:
        tables = self.make().objects_of(ObjectKind.TABLE)
        assert [t.name for t in tables] == ["accounts", "users"]

    def test_owners_exclude_indexes(self) -> None:
        assert self.make().owners() == {"alice", "bob"}

    def test_permissions_for_sorted_by_grantee(self) -> None:
        snap = self.make()
        users = ObjectRef(kind=ObjectKind.TABLE, schema_name="public", name="users")
        assert [p.grantee for p in snap.permissions_for(users)] == ["amy", "zed"]
