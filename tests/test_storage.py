from __future__ import annotations

import json

import pytest

from connectors.models import PaapiCredentials
from storage import Database, LogStore, SecretsStore, SettingsStore


@pytest.fixture
def database(tmp_path) -> Database:
    db = Database(tmp_path / "nested" / "workflow.db")
    yield db
    db.close()


def test_database_creates_parent_directory_and_pings(tmp_path, database: Database) -> None:
    assert (tmp_path / "nested" / "workflow.db").exists()
    assert database.ping() is True
    assert database.fetch_one("PRAGMA foreign_keys")["foreign_keys"] == 1


def test_transaction_rolls_back_on_error(database: Database) -> None:
    store = SettingsStore(database)
    with pytest.raises(RuntimeError):
        with database.transaction() as connection:
            connection.execute(
                "INSERT INTO settings (section, name, value, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                ("general", "theme", "dark", "t", "t"),
            )
            raise RuntimeError("boom")
    assert store.get_setting("general", "theme") is None


def test_settings_upsert_keeps_created_at(database: Database) -> None:
    store = SettingsStore(database)
    store.upsert_setting("general", "theme", "dark")
    first = store.get_setting("general", "theme")
    store.upsert_setting("general", "theme", "light")
    second = store.get_setting("general", "theme")

    assert second["value"] == "light"
    assert second["created_at"] == first["created_at"]
    assert second["updated_at"] >= first["updated_at"]
    assert second["created_at"].endswith("Z")


def test_settings_list_by_section_and_delete(database: Database) -> None:
    store = SettingsStore(database)
    store.upsert_setting("b", "two", "2")
    store.upsert_setting("a", "one", "1")
    store.upsert_setting("b", "alpha", "x")

    assert [(row["section"], row["name"]) for row in store.list_settings()] == [
        ("a", "one"),
        ("b", "alpha"),
        ("b", "two"),
    ]
    assert [row["name"] for row in store.list_settings("b")] == ["alpha", "two"]

    store.delete_setting("b", "two")
    assert store.get_setting("b", "two") is None
    store.delete_setting("b", "missing")


def test_paapi_credentials_round_trip(database: Database) -> None:
    store = SettingsStore(database)
    assert store.get_paapi_credentials() is None

    store.put_paapi_credentials(
        PaapiCredentials(access_key="AKID", secret_key="SECRET", partner_tag="tag-20", region="eu-west-1")
    )
    loaded = store.get_paapi_credentials()

    assert loaded.access_key == "AKID"
    assert loaded.secret_key == "SECRET"
    assert loaded.partner_tag == "tag-20"
    assert loaded.region == "eu-west-1"
    assert loaded.host == ""
    assert loaded.created_at and loaded.updated_at
    assert {row["name"] for row in store.list_settings("paapi")} == {
        "accessKey",
        "secretKey",
        "partnerTag",
        "marketplace",
        "region",
        "host",
    }


def test_paapi_credentials_delete_leaves_other_sections(database: Database) -> None:
    store = SettingsStore(database)
    store.upsert_setting("general", "theme", "dark")
    store.put_paapi_credentials(PaapiCredentials(access_key="a", secret_key="b"))

    store.delete_paapi_credentials()

    assert store.get_paapi_credentials() is None
    assert store.get_setting("general", "theme")["value"] == "dark"


def test_secrets_upsert_and_delete(database: Database) -> None:
    store = SecretsStore(database)
    store.put_secret("api", "iv:ct:tag")
    store.put_secret("api", "iv2:ct2:tag2")
    store.put_secret("another", "x:y:z")

    assert [row["name"] for row in store.list_secrets()] == ["another", "api"]
    assert store.get_secret("api")["value_encrypted"] == "iv2:ct2:tag2"

    store.delete_secret("api")
    assert store.get_secret("api") is None


def test_log_append_and_filter(database: Database) -> None:
    store = LogStore(database)
    first = store.append("info", "started", {"total": 2})
    second = store.append("error", "failed")
    third = store.append("info", "finished")

    assert first < second < third
    rows = store.list_logs()
    assert [row["id"] for row in rows] == [third, second, first]
    assert json.loads(rows[-1]["context"]) == {"total": 2}
    assert rows[1]["context"] is None
    assert [row["message"] for row in store.list_logs(level="error")] == ["failed"]


@pytest.mark.parametrize("limit, expected", [(0, 5), (-3, 1), (2, 2), (50, 5)])
def test_log_limit_is_clamped(database: Database, limit: int, expected: int) -> None:
    store = LogStore(database, max_limit=10)
    for index in range(5):
        store.append("info", f"event {index}")
    assert len(store.list_logs(limit=limit)) == expected


def test_log_limit_upper_bound(database: Database) -> None:
    store = LogStore(database, max_limit=3)
    for index in range(5):
        store.append("debug", f"event {index}")
    assert len(store.list_logs(limit=1000)) == 3


def test_log_delete(database: Database) -> None:
    store = LogStore(database)
    log_id = store.append("warn", "temporary")
    store.delete_log(log_id)
    assert store.list_logs() == []
