from types import SimpleNamespace

import pytest
from keyring.errors import NoKeyringError, PasswordDeleteError

from fast_context.cloud import credentials as credentials_module
from fast_context.cloud.credentials import (
    KEYRING_KEY_NAME,
    KEYRING_SERVICE,
    CredentialStore,
    mask_api_key,
)
from fast_context.errors import AuthError


class _DummyKeyring:
    def __init__(self):
        self._store = {}

    def set_password(self, service, name, value):
        self._store[(service, name)] = value

    def get_password(self, service, name):
        return self._store.get((service, name))

    def delete_password(self, service, name):
        key = (service, name)
        if key not in self._store:
            raise PasswordDeleteError(name)
        del self._store[key]


@pytest.fixture
def dummy_keyring(monkeypatch):
    dummy = _DummyKeyring()
    monkeypatch.setattr(credentials_module, "keyring", dummy)
    return dummy


def test_explicit_key_wins(dummy_keyring):
    store = CredentialStore(env={"WINDSURF_API_KEY": "sk-env"})
    assert store.get_api_key_with_source("sk-explicit") == ("sk-explicit", "explicit")


def test_env_var_takes_precedence_over_keychain(dummy_keyring):
    dummy_keyring.set_password(KEYRING_SERVICE, KEYRING_KEY_NAME, "sk-keychain")
    store = CredentialStore(env={"WINDSURF_API_KEY": "sk-env"})
    assert store.get_api_key_with_source() == ("sk-env", "env")


def test_keychain_then_discovery(dummy_keyring):
    calls = []

    def discovery():
        calls.append(1)
        return {"api_key": "sk-discovered", "db_path": "/tmp/state.vscdb"}

    store = CredentialStore(env={}, discovery=discovery)
    assert store.get_api_key_with_source() == ("sk-discovered", "discovery")

    dummy_keyring.set_password(KEYRING_SERVICE, KEYRING_KEY_NAME, "sk-keychain")
    assert store.get_api_key_with_source() == ("sk-keychain", "keychain")
    assert len(calls) == 1


def test_discovered_key_must_have_prefix(dummy_keyring):
    store = CredentialStore(env={}, discovery=lambda: {"api_key": "not-a-key"})
    assert store.get_api_key_with_source() == (None, None)


def test_discovery_exception_becomes_error_entry(dummy_keyring):
    def broken():
        raise RuntimeError("db locked")

    store = CredentialStore(env={}, discovery=broken)
    assert "db locked" in store.discover()["error"]
    assert store.get_api_key_with_source() == (None, None)


def test_require_api_key_raises_auth_error(dummy_keyring):
    store = CredentialStore(env={})
    with pytest.raises(AuthError, match="WINDSURF_API_KEY"):
        store.require_api_key()


def test_keychain_backend_errors_are_ignored(monkeypatch):
    def get_password(_service, _name):
        raise NoKeyringError("no backend")

    monkeypatch.setattr(credentials_module, "keyring", SimpleNamespace(get_password=get_password))
    store = CredentialStore(env={})
    assert store.get_keychain_api_key() is None


def test_save_read_delete_keychain_key(dummy_keyring):
    store = CredentialStore(env={})

    saved, message = store.save_api_key("sk-saved")
    assert saved is True
    assert "saved" in message.lower()
    assert store.get_api_key_with_source() == ("sk-saved", "keychain")

    deleted, delete_message = store.delete_api_key()
    assert deleted is True
    assert "removed" in delete_message.lower()
    assert store.get_api_key_with_source() == (None, None)

    deleted_again, _ = store.delete_api_key()
    assert deleted_again is False


def test_save_rejects_bad_keys(dummy_keyring):
    store = CredentialStore(env={})
    assert store.save_api_key("  ")[0] is False
    assert store.save_api_key("pk-wrong")[0] is False


def test_mask_api_key():
    assert mask_api_key("sk-short1234") == "sk-s...1234"
    assert mask_api_key("sk-" + "a" * 20 + "tail5678") == "sk-aaaaaaaaa...tail5678"
