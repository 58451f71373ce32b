"""Tenant records.

A tenant is created the first time a GitHub identity signs in and is keyed by
the numeric GitHub user id, never by the login (logins can be renamed).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class Tenant:
    """A durable tenant record.

    ``id`` is assigned by the store on insert and is None until then.
    ``app_id`` is the tenant's downstream API credential; it only changes
    through ``with_app_id`` (key rotation).
    """

    id: int | None
    app_id: int
    external_login: str
    external_id: int
    block_list: str = ""
    captcha_enabled: bool = False

    @classmethod
    def new(cls, app_id: int, external_login: str, external_id: int) -> Tenant:
        """Create an unsaved tenant with default profile settings."""
        return cls(
            id=None,
            app_id=app_id,
            external_login=external_login,
            external_id=external_id,
        )

    def with_app_id(self, app_id: int) -> Tenant:
        return replace(self, app_id=app_id)

    def with_profile(self, update: ProfileUpdate) -> Tenant:
        """Apply tenant-editable fields; everything else is carried over."""
        return replace(
            self,
            block_list=update.block_list,
            captcha_enabled=update.captcha_enabled,
        )

    def public_view(self) -> dict[str, Any]:
        """Serialize the fields returned to the signed-in tenant."""
        return {
            "id": self.id,
            "app_id": self.app_id,
            "external_login": self.external_login,
            "external_id": self.external_id,
            "block_list": self.block_list,
            "captcha_enabled": self.captcha_enabled,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Tenant:
        """Create from a database row."""
        return cls(
            id=row["id"],
            app_id=row["app_id"],
            external_login=row["external_login"],
            external_id=row["external_id"],
            block_list=row["block_list"] or "",
            captcha_enabled=bool(row["captcha_enabled"]),
        )


class ProfileUpdate(BaseModel):
    """Body of a tenant profile update.

    Unknown keys (id, app_id, external_id, ...) are dropped on parse, so a
    client echoing back the whole public view cannot overwrite them.
    """

    model_config = ConfigDict(extra="ignore")

    block_list: str
    captcha_enabled: bool
