"""Test account records and the credential store"""

import json
import os

import pytest

from spotimine.apis.accounts import Account, CredentialStore
from spotimine.apis.errors import ConfigError, ParseError


class TestAccount:
    def test_token_response_expiry_becomes_absolute(self):
        acc = Account.from_token_response(
            {"access_token": "a", "expires_in": 3600, "refresh_token": "r", "scope": "s"}, now=1000
        )
        assert acc.expires_at == 4600
        assert acc.refresh_token == "r"

    def test_token_response_missing_access_token(self):
        with pytest.raises(ParseError):
            Account.from_token_response({"expires_in": 3600}, now=0)

    def test_legacy_relative_expires_in_is_migrated(self):
        acc = Account.from_dict({"access_token": "a", "expires_in": 3600, "refresh_token": "r", "scope": ""}, now=1000)
        assert acc.expires_at == 4600
        assert "expires_in" not in acc.to_dict()
        assert acc.to_dict()["expires_at"] == 4600

    def test_legacy_absolute_expires_in_is_kept(self):
        acc = Account.from_dict({"access_token": "a", "expires_in": 1700000000, "refresh_token": "r"}, now=1000)
        assert acc.expires_at == 1700000000

    def test_cached_id_round_trips(self):
        acc = Account("a", 5, "r", "s", id="user-1")
        assert Account.from_dict(acc.to_dict()) == acc


class TestCredentialStore:
    def test_round_trip(self, tmp_path):
        path = str(tmp_path / "config.json")
        store = CredentialStore(path)
        store.add("alice", Account("a1", 111111111, "r1", "scope-a", id="alice-id"))
        store.add("bob", Account("b1", 222222222, "r2", "scope-b"))

        loaded = CredentialStore.load(path)
        assert loaded.accounts == store.accounts
        assert loaded.aliases() == ["alice", "bob"]

    def test_load_missing_file_creates_it(self, tmp_path):
        path = tmp_path / "nested" / "spotimine" / "config.json"
        store = CredentialStore.load(str(path))
        assert len(store) == 0
        assert json.loads(path.read_text()) == {"accounts": {}}

    def test_load_corrupt_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError):
            CredentialStore.load(str(path))

    def test_load_non_utf8_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_bytes(b"\xff\xfe\x00")
        with pytest.raises(ConfigError, match="UTF-8"):
            CredentialStore.load(str(path))

    def test_load_accounts_not_an_object(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"accounts": ["a"]}))
        with pytest.raises(ConfigError, match="'accounts'"):
            CredentialStore.load(str(path))

    def test_load_writes_back_legacy_expiry(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        legacy = {"access_token": "x", "expires_in": 3600, "refresh_token": "r", "scope": ""}
        path.write_text(json.dumps({"accounts": {"a": legacy}}))

        monkeypatch.setattr("spotimine.apis.accounts._now", lambda: 1000)
        CredentialStore.load(str(path))

        on_disk = json.loads(path.read_text())["accounts"]["a"]
        assert on_disk["expires_at"] == 4600
        assert "expires_in" not in on_disk

        # A later start must not push the expiry forward again.
        monkeypatch.setattr("spotimine.apis.accounts._now", lambda: 9000)
        assert CredentialStore.load(str(path)).get("a").expires_at == 4600

    def test_save_leaves_no_temp_files(self, tmp_path):
        path = tmp_path / "config.json"
        store = CredentialStore(str(path))
        store.add("alice", Account("a1", 1, "r1"))
        store.add("alice", Account("a2", 2, "r2"))
        assert os.listdir(tmp_path) == ["config.json"]
        assert json.loads(path.read_text())["accounts"]["alice"]["access_token"] == "a2"

    def test_refresh_persist_hook_writes_file(self, tmp_path):
        path = tmp_path / "config.json"
        store = CredentialStore(str(path))
        acc = Account("a1", 1, "r1")
        store.add("alice", acc)

        acc.access_token = "fresh"
        acc.save()

        assert json.loads(path.read_text())["accounts"]["alice"]["access_token"] == "fresh"

    def test_remove(self, tmp_path):
        path = tmp_path / "config.json"
        store = CredentialStore(str(path))
        store.add("alice", Account("a1", 1, "r1"))
        store.remove("alice")
        assert "alice" not in store
        assert json.loads(path.read_text()) == {"accounts": {}}

    def test_remove_unknown_alias(self, tmp_path):
        store = CredentialStore(str(tmp_path / "config.json"))
        with pytest.raises(ConfigError):
            store.remove("nobody")

    def test_clear(self, tmp_path):
        path = tmp_path / "config.json"
        store = CredentialStore(str(path))
        store.add("alice", Account("a1", 1, "r1"))
        store.add("bob", Account("b1", 1, "r1"))
        store.clear()
        assert len(store) == 0
        assert CredentialStore.load(str(path)).accounts == {}

    def test_get_unknown_alias(self, tmp_path):
        store = CredentialStore(str(tmp_path / "config.json"))
        with pytest.raises(ConfigError, match="adduser"):
            store.get("nobody")
