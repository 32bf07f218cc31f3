"""
Integration tests for models persisted through MemoryConnection.

Tests cover:
- create/save/find/delete round trips
- Increments applied atomically to stored values
- Removed fields dropped from stored records
- Connection registry and factory injection
- Timestamps reloaded unchanged under a non-UTC local timezone
"""

import time
from datetime import datetime, timezone

import pytest

from sdk.entdoc.connection import (
    EntityFactory,
    MemoryConnection,
    get_connection,
    register_connection,
)
from sdk.entdoc.document import Document
from sdk.entdoc.errors import EntDocError, NotFoundError
from sdk.entdoc.model import Model
from sdk.entdoc.schema import DocumentSchema, field


class Company(Model):
    schema = DocumentSchema(
        (
            field("name", "str"),
            field("founded", "int"),
            field("hits", "int"),
            field("employees", "object"),
            field("tags", "str", array=True),
        )
    )


ACME = {
    "name": "Acme, Inc.",
    "founded": 1949,
    "hits": 10,
    "employees": {"Larry": {"email": "larry@acme.com"}},
    "tags": ["anvils"],
}


@pytest.fixture
def saved():
    doc = Company.create(ACME)
    Company.save(doc)
    return doc


class TestModelPersistence:
    """Tests for the model lifecycle against the in-memory store."""

    def test_create_builds_new_document(self):
        doc = Company.create({"name": "Acme"})

        assert isinstance(doc, Document)
        assert doc.model is Company
        assert doc.exists is False

    def test_save_assigns_key_and_syncs(self, saved):
        exported = saved.export()

        assert saved.exists
        assert saved._id
        assert exported["data"] == exported["update"]
        assert Company.connection().count(Company) == 1

    def test_save_keeps_existing_key(self):
        doc = Company.create({"_id": "acme", "name": "Acme"})
        Company.save(doc)
        assert Company.find("acme").name == "Acme"

    def test_find_round_trip(self, saved):
        found = Company.find(saved._id)

        assert found.exists
        assert found is not saved
        assert found.to("dict") == saved.to("dict")
        assert found.get("employees.Larry.email") == "larry@acme.com"
        assert found.employees.exists
        assert found.tags.exists

    def test_find_missing_returns_none(self):
        assert Company.find("nope") is None

    def test_save_with_data(self, saved):
        Company.save(saved, {"name": "Acme Corp"})
        assert Company.find(saved._id).name == "Acme Corp"

    def test_entity_save_delegates_to_model(self, saved):
        saved.founded = 1950
        saved.save()
        assert Company.find(saved._id).founded == 1950

    def test_save_without_model_raises(self):
        with pytest.raises(EntDocError, match="not bound to a model"):
            Document({"a": 1}).save()

    def test_update_of_vanished_record_raises(self, saved):
        Company.connection().clear()
        saved.name = "Gone"

        with pytest.raises(NotFoundError):
            Company.save(saved)

    def test_delete(self, saved):
        assert Company.delete(saved) is True

        assert saved.exists is False
        assert Company.find(saved._id) is None


class TestAtomicUpdates:
    """Tests for increments and removals flushed by save()."""

    def test_increments_apply_to_stored_value(self, saved):
        other = Company.find(saved._id)

        saved.increment("hits", 5)
        other.increment("hits", 2)
        Company.save(saved)
        Company.save(other)

        assert Company.find(saved._id).hits == 17
        assert saved.export()["increment"] == {}

    def test_removed_fields_are_dropped(self, saved):
        saved.remove("founded")
        Company.save(saved)

        found = Company.find(saved._id)

        assert not found.has("founded")
        assert found.name == "Acme, Inc."

    def test_nested_changes_are_saved(self, saved):
        saved["employees.Moe.email"] = "moe@acme.com"
        Company.save(saved)

        found = Company.find(saved._id)

        assert found.get("employees.Moe.email") == "moe@acme.com"
        assert saved.employees.Moe.exists


class TestConnections:
    """Tests for the connection registry."""

    def test_default_connection_is_shared(self):
        assert Company.connection() is get_connection()

    def test_named_connection(self):
        class Archive(Model):
            connection_name = "archive"

        archive = MemoryConnection()
        register_connection("archive", archive)

        assert Archive.connection() is archive
        assert Archive.connection() is not Company.connection()

    def test_documents_hold_factory_not_connection(self):
        doc = Company.create({"name": "Acme"})

        assert doc.factory is Company.connection().factory
        assert isinstance(doc.factory, EntityFactory)
        assert not isinstance(doc.factory, MemoryConnection)

    def test_factory_rejects_unknown_item_class(self):
        with pytest.raises(EntDocError, match="Unknown item class"):
            Company.connection().item(Company, {}, {"class": "set"})

    def test_meta(self):
        assert Company.meta() == {
            "name": "Company",
            "key": "_id",
            "locked": False,
            "embedded": [],
            "connection": "default",
        }


class Event(Model):
    schema = DocumentSchema((field("title", "str"), field("at", "timestamp")))


@pytest.fixture
def new_york_tz(monkeypatch):
    """Run with a non-UTC local timezone."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


class TestTimestamps:
    """Tests for timestamp fields stored and reloaded."""

    def test_naive_timestamp_survives_round_trip(self, new_york_tz):
        doc = Event.create({"title": "Launch", "at": "2024-01-01T12:00:00"})
        Event.save(doc)

        found = Event.find(doc._id)

        assert found.at == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert found.at == doc.at

    def test_offset_timestamp_survives_round_trip(self, new_york_tz):
        doc = Event.create({"at": "2024-01-01T12:00:00+02:00"})
        Event.save(doc)

        assert Event.find(doc._id).at == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
