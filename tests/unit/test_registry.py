import pytest

from collector.config import Settings
from collector.db.models import Submission
from collector.db.registry import TableRegistry, build_registry, validate_table_name
from collector.errors import NotFoundError, ValidationError


@pytest.mark.parametrize("name", ["submissions", "notes_2024", "_x", "ABC"])
def test_valid_table_names(name):
    assert validate_table_name(name) == name


@pytest.mark.parametrize("name", [None, "", "bad-name", "a b", "x;drop table y", '"quoted"', "täble"])
def test_invalid_table_names(name):
    with pytest.raises(ValidationError) as exc:
        validate_table_name(name)
    assert exc.value.reason == "invalid_table_name"


def test_build_registry_registers_submissions_as_protected():
    registry = build_registry(Settings(database_url="sqlite://", admin_extra_tables=("notes", "leads")))

    assert registry.names() == ["leads", "notes", "submissions"]
    assert registry.resolve("submissions") is Submission.__table__
    assert registry.is_protected("submissions") is True
    assert registry.is_protected("notes") is False
    assert [t.name for t in registry.data_tables()] == ["leads", "notes"]


def test_data_table_layout():
    registry = TableRegistry()
    table = registry.register_data_table("notes")

    assert [c.name for c in table.columns] == ["id", "data", "created_at"]
    assert table.c.id.primary_key is True
    assert table.c.id.autoincrement is False
    # registering twice returns the same table
    assert registry.register_data_table("notes") is table


def test_resolve_unknown_table():
    registry = TableRegistry()
    with pytest.raises(NotFoundError) as exc:
        registry.resolve("missing")
    assert exc.value.reason == "unknown_table"


def test_resolve_validates_before_lookup():
    registry = TableRegistry()
    with pytest.raises(ValidationError):
        registry.resolve("submissions; DROP TABLE submissions")
