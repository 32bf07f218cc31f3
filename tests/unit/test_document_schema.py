"""
Unit tests for schema types.

Tests cover:
- FieldDef creation, validation and casting
- DocumentSchema construction and lookup
- Casting relative to a path key
- Locked schemas and models
"""

from datetime import datetime, timezone

import pytest

from sdk.entdoc.document import Document
from sdk.entdoc.errors import EntDocError, UnknownFieldError, ValidationError
from sdk.entdoc.model import Model
from sdk.entdoc.schema import DocumentSchema, FieldDef, FieldKind, field


class TestFieldDef:
    """Tests for FieldDef."""

    def test_create_field(self):
        f = field("title", "str", required=True)

        assert f.name == "title"
        assert f.kind == FieldKind.STRING
        assert f.required is True
        assert f.array is False

    def test_default_kind_is_json(self):
        assert field("payload").kind == FieldKind.JSON

    def test_invalid_kind_raises(self):
        with pytest.raises(ValueError, match="Invalid field kind"):
            field("x", "nope")

    def test_empty_name_raises(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            field("", "str")

    def test_empty_segment_raises(self):
        with pytest.raises(ValueError, match="empty segment"):
            field("a..b", "str")

    @pytest.mark.parametrize(
        "kind,raw,expected",
        [
            ("str", 12, "12"),
            ("int", "7", 7),
            ("float", "1.5", 1.5),
            ("bool", "false", False),
            ("bool", "on", True),
            ("bool", 0, False),
            ("id", 99, "99"),
            ("json", [1, 2], [1, 2]),
        ],
    )
    def test_cast_by_kind(self, kind, raw, expected):
        assert field("f", kind).cast(raw) == expected

    def test_timestamp_from_epoch(self):
        f = field("at", "timestamp")
        assert f.cast(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_timestamp_from_iso_string(self):
        """Naive values are taken as UTC."""
        f = field("at", "timestamp")
        assert f.cast("2024-05-01T10:00:00") == datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)

    def test_timestamp_keeps_explicit_offset(self):
        f = field("at", "timestamp")
        value = f.cast("2024-05-01T10:00:00+02:00")

        assert value.utcoffset().total_seconds() == 7200
        assert value == datetime(2024, 5, 1, 8, 0, 0, tzinfo=timezone.utc)

    def test_naive_datetime_is_taken_as_utc(self):
        f = field("at", "timestamp")
        assert f.cast(datetime(2024, 5, 1, 10)).tzinfo is timezone.utc

    def test_unrecognized_bool_string_raises(self):
        with pytest.raises(ValidationError):
            field("flag", "bool").cast("maybe")

    def test_cast_none_passes_through(self):
        assert field("n", "int").cast(None) is None

    def test_cast_failure_raises_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            field("n", "int").cast("abc")

        assert exc_info.value.field_name == "n"
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_dict_round_trip(self):
        f = field("tags", "str", array=True, default=["x"], description="Labels")
        d = f.to_dict()

        assert d == {
            "name": "tags",
            "kind": "str",
            "default": ["x"],
            "array": True,
            "description": "Labels",
        }
        assert FieldDef.from_dict(d) == f


class TestDocumentSchema:
    """Tests for DocumentSchema."""

    def test_from_mapping(self):
        schema = DocumentSchema({"name": "str", "tags": {"kind": "str", "array": True}})

        assert schema.names() == ["name", "tags"]
        assert schema.field_meta("name").kind == FieldKind.STRING
        assert schema.field_meta("tags").array is True
        assert schema.field_meta("missing") is None

    def test_duplicate_field_raises(self):
        with pytest.raises(ValueError, match="Duplicate field 'a'"):
            DocumentSchema((field("a"), field("a", "int")))

    def test_cast_relative_to_path_key(self):
        schema = DocumentSchema({"a.b": "int"})
        result = schema.cast(Document(), {"b": "3", "c": "4"}, {"path_key": "a"})
        assert result == {"b": 3, "c": "4"}

    def test_cast_passes_entities_through(self):
        schema = DocumentSchema({"child": "int"})
        child = Document({"x": 1})

        assert schema.cast(Document(), {"child": child})["child"] is child

    def test_cast_without_factory_raises(self):
        schema = DocumentSchema()

        with pytest.raises(EntDocError, match="no entity factory"):
            schema.cast_value(object(), "x", {"a": 1})

    def test_to_dict(self):
        schema = DocumentSchema({"name": "str"}, locked=True)
        assert schema.to_dict() == {
            "locked": True,
            "fields": [{"name": "name", "kind": "str"}],
        }


class TestLocking:
    """Tests for locked schemas and models."""

    def test_locked_schema_rejects_unknown_fields(self):
        schema = DocumentSchema({"name": "str"}, locked=True)
        doc = Document(schema=schema)

        with pytest.raises(UnknownFieldError) as exc_info:
            doc.set({"nmae": "x"})

        assert exc_info.value.field_name == "nmae"
        assert "name" in exc_info.value.suggestions

    def test_locked_schema_accepts_declared_nested_fields(self):
        schema = DocumentSchema(
            {"profile": "object", "profile.name": "str"},
            locked=True,
        )
        doc = Document({"profile": {"name": "x"}}, schema=schema)

        assert doc.get("profile.name") == "x"

        with pytest.raises(UnknownFieldError):
            doc.profile.age = 3

    def test_locked_model(self):
        class Locked(Model):
            locked = True
            schema = DocumentSchema({"name": "str"})

        doc = Locked.create({"name": "x"})
        assert doc.name == "x"

        with pytest.raises(UnknownFieldError, match="other"):
            doc.other = 1
