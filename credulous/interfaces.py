"""Narrow collaborator ports.

Each protocol covers a single capability of the identity provider or the
change-log store; callers depend only on the ones they use.
"""
from datetime import datetime
from typing import Protocol

from .models import AccessKey, RepoConfig


class UsernameGetter(Protocol):
    def get_username(self) -> str: ...


class AliasGetter(Protocol):
    def get_alias(self) -> str: ...


class UsernameAliasGetter(UsernameGetter, AliasGetter, Protocol):
    pass


class AccessKeyLister(Protocol):
    def get_all_access_keys(self, username: str) -> list[AccessKey]: ...


class AccessKeyDeleter(Protocol):
    def delete_access_key(self, key: AccessKey) -> None: ...


class AccessKeyCreator(Protocol):
    def create_access_key(self, username: str) -> AccessKey: ...


class KeyCreationDateGetter(Protocol):
    def get_key_creation_date(self, username: str) -> datetime: ...


class OneKeyDeleter(AccessKeyLister, AccessKeyDeleter, Protocol):
    pass


class KeyRotator(OneKeyDeleter, AccessKeyCreator, Protocol):
    pass


class AccountInformer(
    UsernameAliasGetter, KeyRotator, KeyCreationDateGetter, Protocol
):
    pass


class StoreDetector(Protocol):
    def is_managed_store(self, path: str) -> bool: ...


class Persister(Protocol):
    def commit(
        self, repo: str, filename: str, message: str, author: RepoConfig
    ) -> str: ...


class ChangeLog(StoreDetector, Persister, Protocol):
    pass
