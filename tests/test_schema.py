"""
Tests for ctk/schema.py - schemas built in Python.
"""
import pytest

from ctk.schema import Derive, FieldRef, Schema, restructure


class TestSchema:
    def test_from_mapping(self):
        schema = Schema.from_mapping({
            "title": "name",
            "summary": lambda r: r["description"][:10],
        })
        assert schema.names == ["title", "summary"]
        selectors = [s for _, s in schema]
        assert selectors[0] == FieldRef("name")
        assert isinstance(selectors[1], Derive)

    def test_add_replaces_existing_name(self):
        schema = Schema([("a", FieldRef("id")), ("b", FieldRef("name"))])
        schema.add("a", FieldRef("status"))
        assert len(schema) == 2
        assert dict(schema)["a"] == FieldRef("status")

    def test_rejects_invalid_selectors(self):
        with pytest.raises(TypeError):
            Schema.from_mapping({"a": 1})
        with pytest.raises(TypeError):
            Schema().add("a", "name")

    def test_apply(self, records):
        schema = Schema.from_mapping({"id": "id", "online": lambda r: bool(r["url"])})
        assert schema.apply(records[1]) == {"id": "1002", "online": False}


class TestRestructure:
    def test_card_format(self, records):
        rows = restructure(records, {
            "id": "id",
            "title": "name",
            "summary": lambda s: s["description"][:100] + "...",
            "isOnline": lambda s: bool(s["url"]),
            "badgeCount": lambda s: len(s["categories"]),
            "statusColor": lambda s: "green" if s["isActive"] else "red",
        })
        assert rows[0] == {
            "id": "1001",
            "title": "Demande de passeport",
            "summary": "Obtenir un passeport ordinaire...",
            "isOnline": True,
            "badgeCount": 2,
            "statusColor": "green",
        }
        assert [row["statusColor"] for row in rows] == ["green", "red", "red", "green"]

    def test_missing_field_is_null(self, records):
        rows = restructure(records, {"phone": "phone"})
        assert rows == [{"phone": None}] * 4

    def test_first_category_default(self, records):
        rows = restructure(records, {"c": lambda s: s["categories"][0] if s["categories"] else "Uncategorized"})
        assert rows[2] == {"c": "Uncategorized"}

    def test_preserves_order_and_count(self, records):
        rows = restructure(records, Schema.from_mapping({"id": "id"}))
        assert [r["id"] for r in rows] == ["1001", "1002", "1003", "1004"]

    def test_does_not_mutate_records(self, records):
        before = [r.to_dict() for r in records]
        restructure(records, {"x": lambda s: s["categories"] + ["new"]})
        assert [r.to_dict() for r in records] == before
