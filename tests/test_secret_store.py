# tests/test_secret_store.py
import pytest

from grievance_portal.secret_store import (
    SecretStore, DECRYPTION_FAILED, ENCRYPTED_PREFIX, is_encrypted,
)


@pytest.fixture
def store():
    return SecretStore("unit-test-passphrase")


@pytest.mark.parametrize("text", [
    "INFRASTRUCTURE",
    "The projector in room 204 has been broken for three weeks.",
    "unicode: ప్రిన్సిపాల్ ✓",
    "enc:v1:looks-like-a-tag-but-is-plaintext",
])
def test_encrypt_then_decrypt_is_identity(store, text):
    ct = store.encrypt(text)
    assert ct != text
    assert store.decrypt(ct) == text


def test_empty_string_passes_through(store):
    assert store.encrypt("") == ""
    assert store.decrypt("") == ""
    assert store.reveal("") == ""


def test_ciphertext_is_tagged_and_salted(store):
    a = store.encrypt("HOSTEL")
    b = store.encrypt("HOSTEL")
    assert a.startswith(ENCRYPTED_PREFIX)
    assert is_encrypted(a)
    # Fernet uses a fresh IV per call
    assert a != b


def test_wrong_key_returns_sentinel_instead_of_raising(store):
    ct = store.encrypt("RAGGING")
    other = SecretStore("a-different-passphrase")
    assert other.decrypt(ct) is DECRYPTION_FAILED


def test_garbage_returns_sentinel(store):
    assert store.decrypt("not a token at all") is DECRYPTION_FAILED
    assert store.decrypt(ENCRYPTED_PREFIX + "corrupted") is DECRYPTION_FAILED


def test_reveal_treats_untagged_values_as_legacy_plaintext(store):
    assert store.reveal("EXAMINATION") == "EXAMINATION"


def test_reveal_returns_raw_value_when_tagged_value_is_unreadable(store):
    raw = ENCRYPTED_PREFIX + "corrupted"
    assert store.reveal(raw) == raw


def test_missing_key_falls_back_to_default_key():
    a = SecretStore(None)
    b = SecretStore("")
    # both use the built-in key, so they can read each other's output
    assert b.decrypt(a.encrypt("OTHER")) == "OTHER"
