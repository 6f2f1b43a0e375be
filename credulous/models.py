"""
Credulous data model.

Field aliases are the on-disk JSON member names. They are a compatibility
contract with envelopes written by earlier releases and must not change
without bumping ``FORMAT_VERSION``.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

FORMAT_VERSION = "2014-06-12"
PURE_RSA_VERSION = "2014-05-31"
# Flat, pre-versioned documents carry no "Version" member.
SALTED_VERSION = ""

ACTIVE = "Active"
INACTIVE = "Inactive"


class AccessKey(BaseModel):
    """A live access key as reported by the identity provider.

    ``secret`` is only populated for a freshly created key.
    """

    username: str
    key_id: str
    status: str = ACTIVE
    create_date: datetime
    secret: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"<AccessKey {self.username}:{self.key_id} "
            f"status={self.status} created={self.create_date.isoformat()}>"
        )


class Credential(BaseModel):
    """Plaintext credential; exists only in memory."""

    key_id: str = Field(alias="KeyId")
    secret_key: str = Field(alias="SecretKey")
    env_vars: Optional[dict[str, str]] = Field(default=None, alias="EnvVars")

    model_config = {"populate_by_name": True}

    def __repr__(self) -> str:
        # secret_key is deliberately left out
        return f"<Credential key_id={self.key_id} env={sorted(self.env_vars or {})}>"

    __str__ = __repr__


class Encryption(BaseModel):
    """One recipient slot of an envelope.

    ``decoded`` is transient: it is only set after this slot was decrypted,
    is never written, and a ``Decoded`` member found on disk is ignored.
    """

    fingerprint: str = Field(alias="Fingerprint")
    ciphertext: str = Field(alias="Ciphertext")
    decoded: Optional[Credential] = Field(default=None, exclude=True)

    model_config = {"populate_by_name": True}


class Credentials(BaseModel):
    """The persisted credential envelope."""

    version: str = Field(default=FORMAT_VERSION, alias="Version")
    iam_username: str = Field(alias="IamUsername")
    account_alias_or_id: str = Field(alias="AccountAliasOrId")
    create_time: str = Field(alias="CreateTime")
    life_time: int = Field(default=0, alias="LifeTime")
    encryptions: list[Encryption] = Field(default_factory=list, alias="Encryptions")

    model_config = {"populate_by_name": True}

    @property
    def decoded(self) -> Optional[Credential]:
        """The first decrypted credential, if any slot was decrypted."""
        for enc in self.encryptions:
            if enc.decoded is not None:
                return enc.decoded
        return None

    @property
    def name(self) -> str:
        return f"{self.iam_username}@{self.account_alias_or_id}"


class OldCredentials(BaseModel):
    """Flat single-recipient document written before envelopes were versioned."""

    create_time: str = Field(alias="CreateTime")
    life_time: int = Field(default=0, alias="LifeTime")
    key_id: str = Field(alias="KeyId")
    secret_key: str = Field(alias="SecretKey")
    salt: str = Field(alias="Salt")
    account_alias_or_id: str = Field(alias="AccountAliasOrId")
    iam_username: str = Field(alias="IamUsername")
    fingerprint: str = Field(alias="FingerPrint")

    model_config = {"populate_by_name": True}

    def to_credentials(self) -> Credentials:
        return Credentials(
            version=SALTED_VERSION,
            iam_username=self.iam_username,
            account_alias_or_id=self.account_alias_or_id,
            create_time=self.create_time,
            life_time=self.life_time,
            encryptions=[
                Encryption(fingerprint=self.fingerprint, ciphertext=self.secret_key)
            ],
        )


class RepoConfig(BaseModel):
    """Commit author used by the change-log store."""

    name: str = ""
    email: str = ""


class SaveRequest(BaseModel):
    """Everything needed to persist a new envelope."""

    credential: Credential
    username: str = ""
    alias: str = ""
    public_keys: list[Any] = Field(default_factory=list)
    lifetime: int = 0
    force: bool = False
    repo: str
    create_time: Optional[datetime] = None

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("lifetime")
    @classmethod
    def clamp_lifetime(cls, v: int) -> int:
        """A negative lifetime means "forever", same as zero."""
        return max(v, 0)


class RetrieveRequest(BaseModel):
    """Locate, decrypt and optionally validate saved credentials."""

    repo: str
    alias: str = ""
    username: str = ""
    keyfile: str
    force: bool = False
