"""Shared fixtures: RSA key pairs and an in-memory identity provider."""
from datetime import datetime, timezone
from typing import Optional

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from credulous.exceptions import ProviderError
from credulous.models import ACTIVE, AccessKey


def _generate_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def key_a():
    return _generate_key()


@pytest.fixture(scope="session")
def key_b():
    return _generate_key()


@pytest.fixture(scope="session")
def key_c():
    return _generate_key()


def pem_bytes(key: rsa.RSAPrivateKey, passphrase: Optional[bytes] = None) -> bytes:
    encryption = (
        serialization.BestAvailableEncryption(passphrase)
        if passphrase else serialization.NoEncryption()
    )
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        encryption,
    )


@pytest.fixture
def private_key_file(tmp_path, key_a):
    """Unencrypted PEM file holding key_a."""
    path = tmp_path / "id_rsa"
    path.write_bytes(pem_bytes(key_a))
    return path


def utc(year, month=1, day=1):
    return datetime(year, month, day, tzinfo=timezone.utc)


class FakeProvider:
    """In-memory identity provider recording every mutation."""

    def __init__(
        self,
        username: str = "user",
        alias: str = "alias",
        keys: Optional[list[AccessKey]] = None,
        username_error: Optional[Exception] = None,
        alias_error: Optional[Exception] = None,
        list_error: Optional[Exception] = None,
        delete_error: Optional[Exception] = None,
        create_error: Optional[Exception] = None,
        key_created: Optional[datetime] = None,
    ):
        self.username = username
        self.alias = alias
        self.keys = list(keys or [])
        self.username_error = username_error
        self.alias_error = alias_error
        self.list_error = list_error
        self.delete_error = delete_error
        self.create_error = create_error
        self.key_created = key_created or utc(2014, 6, 12)
        self.deleted: list[AccessKey] = []
        self.created: list[AccessKey] = []

    def get_username(self) -> str:
        if self.username_error:
            raise self.username_error
        return self.username

    def get_alias(self) -> str:
        if self.alias_error:
            raise self.alias_error
        return self.alias

    def get_all_access_keys(self, username: str) -> list[AccessKey]:
        if self.list_error:
            raise self.list_error
        return list(self.keys)

    def delete_access_key(self, key: AccessKey) -> None:
        if self.delete_error:
            raise self.delete_error
        self.deleted.append(key)
        self.keys = [k for k in self.keys if k.key_id != key.key_id]

    def create_access_key(self, username: str) -> AccessKey:
        if self.create_error:
            raise self.create_error
        key = AccessKey(
            username=username,
            key_id=f"AKIAIOSFODNN7NEW{len(self.created):04d}",
            status=ACTIVE,
            create_date=utc(2015, 1, 1),
            secret="wJalrXUtnFEMI/K7MDENG/bPxRfiCYNEWSECRET",
        )
        self.created.append(key)
        self.keys.append(key)
        return key

    def get_key_creation_date(self, username: str) -> datetime:
        if self.list_error:
            raise self.list_error
        return self.key_created


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def provider_error():
    return ProviderError("provider unavailable")
