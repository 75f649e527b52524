from __future__ import annotations

from batchlingo import language_codes as lc
from batchlingo.config import factory_reset, initialize_app, load_config, save_config
from batchlingo.core import database as db
from batchlingo.core.schema import DB_VERSION, get_db_version, initialize_database


class TestBlobStore:
    def test_put_get_and_overwrite(self):
        db.put_blob("review", "job/a", "one")
        db.put_blob("review", "job/a", "two")
        assert db.get_blob("review", "job/a") == "two"
        assert db.get_blob("memory", "job/a") is None

    def test_keys_are_scoped_by_namespace(self):
        db.put_blob("review", "a", "1")
        db.put_blob("review", "b", "2")
        db.put_blob("memory", "c", "3")
        assert sorted(db.list_blob_keys("review")) == ["a", "b"]

    def test_delete(self):
        db.put_blob("review", "a", "1")
        assert db.delete_blob("review", "a")
        assert not db.delete_blob("review", "a")
        assert db.list_blob_keys("review") == []


class TestSchemaAndConfig:
    def test_initialize_stamps_version_once(self):
        assert get_db_version() == 0
        initialize_database()
        initialize_database()
        assert get_db_version() == DB_VERSION

    def test_initialize_app_writes_default_config(self):
        initialize_app()
        assert "config" in db.get_all_app_config()
        assert load_config()["provider"] == "deepl"

    def test_factory_reset_drops_stored_state(self):
        initialize_app()
        save_config({"provider": "llm"})
        db.put_blob("review", "job/a", "{}")

        factory_reset()

        assert load_config()["provider"] == "deepl"
        assert db.get_blob("review", "job/a") is None

    def test_known_language_codes(self):
        assert lc.is_valid_language_code("zh-cn")
        assert not lc.is_valid_language_code("invalid")
