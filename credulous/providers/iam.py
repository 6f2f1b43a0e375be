"""
AWS IAM identity provider.

Wraps a boto3 IAM client behind the narrow account-informer ports. Every
botocore failure is re-raised as :class:`~credulous.exceptions.ProviderError`.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import CredentialsNotFoundError, ProviderError
from ..models import AccessKey

logger = logging.getLogger("credulous.providers.iam")


@contextmanager
def _provider_call(operation: str) -> Iterator[None]:
    try:
        yield
    except (ClientError, BotoCoreError) as err:
        raise ProviderError(f"{operation} failed: {err}") from err


def _user_param(username: str) -> dict[str, str]:
    # an empty name addresses the account root, which IAM expects unnamed
    return {"UserName": username} if username else {}


class IAMProvider:
    """Identity provider backed by AWS IAM."""

    def __init__(
        self,
        session: Optional[boto3.session.Session] = None,
        client: Any = None,
    ):
        self.session = session or boto3.session.Session()
        self.client = client or self.session.client("iam")

    def get_username(self) -> str:
        """IAM user name of the loaded credentials; empty for the account root."""
        with _provider_call("GetUser"):
            output = self.client.get_user()
        return output["User"].get("UserName", "")

    def get_alias(self) -> str:
        """Account alias, or the user name when the account has none."""
        with _provider_call("ListAccountAliases"):
            output = self.client.list_account_aliases()
        aliases = output.get("AccountAliases", [])
        # There really is only one alias
        if not aliases:
            return self.get_username()
        return aliases[0]

    def get_all_access_keys(self, username: str) -> list[AccessKey]:
        with _provider_call("ListAccessKeys"):
            output = self.client.list_access_keys(**_user_param(username))
        metadata = output.get("AccessKeyMetadata", [])
        if not metadata:
            raise CredentialsNotFoundError(
                f"cannot find any access key for username: {username}"
            )
        return [
            AccessKey(
                username=item.get("UserName", username),
                key_id=item["AccessKeyId"],
                status=item["Status"],
                create_date=item["CreateDate"],
            )
            for item in metadata
        ]

    def delete_access_key(self, key: AccessKey) -> None:
        with _provider_call("DeleteAccessKey"):
            self.client.delete_access_key(
                AccessKeyId=key.key_id, **_user_param(key.username),
            )
        logger.debug("Deleted access key %s of %s", key.key_id, key.username)

    def create_access_key(self, username: str) -> AccessKey:
        with _provider_call("CreateAccessKey"):
            output = self.client.create_access_key(**_user_param(username))
        item = output["AccessKey"]
        return AccessKey(
            username=item.get("UserName", username),
            key_id=item["AccessKeyId"],
            status=item["Status"],
            create_date=item.get("CreateDate") or datetime.now().astimezone(),
            secret=item["SecretAccessKey"],
        )

    def get_key_creation_date(self, username: str) -> datetime:
        """Creation time of the access key the session is signed with."""
        credentials = self.session.get_credentials()
        if credentials is None:
            raise ProviderError("no AWS credentials loaded")
        current = credentials.access_key
        for key in self.get_all_access_keys(username):
            if key.key_id == current:
                return key.create_date
        raise CredentialsNotFoundError(
            f"couldn't find access key {current} for username: {username}"
        )
