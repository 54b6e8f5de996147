from __future__ import annotations

import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


CONTAINER_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.\-]{0,127}$")

# Upstream version representation. Steam reports integers; tests and other
# catalogs may use strings. Only equality matters.
Version = Union[int, str]


class RestartAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["restart"] = "restart"


class PullAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["pull"] = "pull"
    image: str = Field(..., min_length=1)
    tag: str = Field("latest", min_length=1)

    @property
    def image_ref(self) -> str:
        return f"{self.image}:{self.tag}"


class BuildAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["build"] = "build"
    context_path: str = Field(..., min_length=1)


class CustomAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["custom"] = "custom"
    chdir: str = Field(..., min_length=1)
    command: str = Field(..., min_length=1)


Action = Annotated[
    Union[RestartAction, PullAction, BuildAction, CustomAction],
    Field(discriminator="kind"),
]

ACTION_KINDS = ("restart", "pull", "build", "custom")


def _normalize_action(raw: Any) -> Any:
    """Accept `restart`, `{pull: {...}}` and `{kind: pull, ...}` spellings."""
    if isinstance(raw, str):
        return {"kind": raw}
    if isinstance(raw, dict) and "kind" not in raw and len(raw) == 1:
        kind, params = next(iter(raw.items()))
        if kind in ACTION_KINDS:
            return {"kind": kind, **(params or {})}
    return raw


class ContainerDescriptor(BaseModel):
    """One watched container, loaded once from the config file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., description="Docker container name; also keys the state file")
    catalog_id: int = Field(..., alias="appid", ge=0, description="Steam app id")
    action: Action
    options: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _accept_tagged_action(cls, data: Any) -> Any:
        if isinstance(data, dict) and "action" in data:
            data = {**data, "action": _normalize_action(data["action"])}
        return data

    @field_validator("name")
    @classmethod
    def _valid_name(cls, v: str) -> str:
        if not CONTAINER_NAME_RE.match(v):
            raise ValueError("Invalid container name. Use letters/numbers and _.- (max 128 chars).")
        return v

    @field_validator("options", mode="before")
    @classmethod
    def _stringify_options(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k): str(val) for k, val in v.items()}
        return v


class ContainerStatusOut(BaseModel):
    name: str
    catalog_id: int
    action: str
    phase: str = Field(..., description="pending|active|excluded")
    current_version: Version | None = None
    last_outcome: str | None = None
    last_reason: str | None = None
    last_checked_at: str | None = None


class OutcomeOut(BaseModel):
    container: str
    outcome: str = Field(..., description="up_to_date|updated|skipped|failed|pending|excluded")
    version: Version | None = None
    reason: str | None = None
