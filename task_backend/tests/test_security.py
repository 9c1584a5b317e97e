import logging

import pytest

from src.api.errors import CorruptCredential
from src.api.security import DEFAULT_METHOD, CredentialStore


@pytest.fixture()
def store() -> CredentialStore:
    return CredentialStore(method="pbkdf2:sha256:1000")


class TestHashing:
    def test_hash_format(self, store):
        stored = store.hash("secret1")
        method, salt, digest = stored.split("$")
        assert method == "pbkdf2:sha256:1000"
        assert len(salt) == 16
        assert len(bytes.fromhex(digest)) == 32
        assert "secret1" not in stored

    def test_default_method(self):
        assert CredentialStore().method == DEFAULT_METHOD == "pbkdf2:sha256:600000"

    def test_same_password_gets_different_salts(self, store):
        assert store.hash("secret1") != store.hash("secret1")

    def test_verify(self, store):
        stored = store.hash("secret1")
        assert store.verify("secret1", stored) is True
        assert store.verify("secret2", stored) is False
        assert store.verify("", stored) is False

    def test_verify_uses_stored_method(self, store):
        stored = CredentialStore(method="pbkdf2:sha256:1500").hash("secret1")
        assert store.verify("secret1", stored) is True

    def test_unencodable_password_is_a_mismatch(self, store):
        stored = store.hash("secret1")
        assert store.verify("abc\ud800def", stored) is False

    def test_rejects_empty_method(self):
        with pytest.raises(ValueError):
            CredentialStore(method="  ")


class TestCorruptCredentials:
    @pytest.mark.parametrize(
        "stored",
        [
            "",
            "plaintext-password",
            "md5$abcd$abcd",
            "pbkdf2:sha256:many$abcd$abcd",
            "pbkdf2:sha256:0$abcd$abcd",
        ],
    )
    def test_corrupt_value_is_a_failed_verification(self, store, stored, caplog):
        with caplog.at_level(logging.WARNING, logger="src.api.security"):
            assert store.verify("plaintext-password", stored) is False
        assert any("corrupt" in r.getMessage() for r in caplog.records)

    def test_empty_fields_never_match(self, store):
        assert store.verify("", "pbkdf2:sha256:1000$$") is False

    def test_check_raises_corrupt_credential(self):
        with pytest.raises(CorruptCredential):
            CredentialStore._check("secret1", "not-a-hash")
