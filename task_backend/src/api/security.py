from __future__ import annotations

import logging

from werkzeug.security import check_password_hash, generate_password_hash

from .errors import CorruptCredential

logger = logging.getLogger(__name__)

DEFAULT_METHOD = "pbkdf2:sha256:600000"
_SALT_LENGTH = 16


# PUBLIC_INTERFACE
class CredentialStore:
    """
    Hash and verify user passwords with werkzeug's salted hashes.

    Stored format is werkzeug's ``<method>$<salt>$<hash>``. The method,
    including its cost parameters, is read back from the stored value, so
    changing the configured method only affects newly hashed passwords.
    """

    def __init__(self, method: str = DEFAULT_METHOD) -> None:
        if not method or not method.strip():
            raise ValueError("hash method must not be empty")
        self._method = method.strip()

    @property
    def method(self) -> str:
        return self._method

    def hash(self, password: str) -> str:
        """Return the encoded salted hash of ``password``."""
        return generate_password_hash(password, method=self._method, salt_length=_SALT_LENGTH)

    @staticmethod
    def _check(password: str, stored: str) -> bool:
        if not isinstance(stored, str) or stored.count("$") < 2:
            raise CorruptCredential("unrecognized credential format")
        try:
            password.encode("utf-8")
        except UnicodeEncodeError:
            return False
        try:
            return check_password_hash(stored, password)
        except ValueError as e:
            raise CorruptCredential(f"credential is not decodable ({e})") from e

    def verify(self, password: str, stored: str) -> bool:
        """
        Check ``password`` against an encoded hash.

        A corrupt stored value is logged and reported as a mismatch.
        """
        try:
            return self._check(password, stored)
        except CorruptCredential as e:
            logger.warning("Rejecting corrupt stored credential: %s", e)
            return False
