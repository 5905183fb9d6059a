# Cloudflare Credentials - the three API auth schemes and their request headers.
# Created: 2026-10-18

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, SecretStr, TypeAdapter


class UserAuthKey(BaseModel):
    """Global API key plus the account email (legacy auth)."""

    model_config = {"frozen": True}

    type: Literal["UserAuthKey"] = "UserAuthKey"
    email: str
    key: SecretStr

    def headers(self) -> dict[str, str]:
        return {
            "X-Auth-Email": self.email,
            "X-Auth-Key": self.key.get_secret_value(),
        }


class UserAuthToken(BaseModel):
    """Scoped API token sent as a bearer token."""

    model_config = {"frozen": True}

    type: Literal["UserAuthToken"] = "UserAuthToken"
    token: SecretStr

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token.get_secret_value()}"}


class Service(BaseModel):
    """Origin CA service key."""

    model_config = {"frozen": True}

    type: Literal["Service"] = "Service"
    key: SecretStr

    def headers(self) -> dict[str, str]:
        return {"X-Auth-User-Service-Key": self.key.get_secret_value()}


Credentials = Annotated[
    Union[UserAuthKey, UserAuthToken, Service],
    Field(discriminator="type"),
]

credentials_adapter: TypeAdapter[Credentials] = TypeAdapter(Credentials)


def dump_credentials(credentials: Credentials) -> dict[str, str]:
    """Serialize credentials with the secrets revealed, for persistence only."""
    data = {"type": credentials.type}
    for name, value in credentials:
        if name == "type":
            continue
        data[name] = value.get_secret_value() if isinstance(value, SecretStr) else value
    return data
