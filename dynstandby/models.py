from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# ---------------------------------------------------------------------------
# Domain types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FleetKey:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, raw: str, default_namespace: str = "default") -> FleetKey:
        """Accept "namespace/name" or a bare name."""
        ns, sep, name = raw.strip().partition("/")
        if not sep:
            name, ns = ns, default_namespace
        if not ns or not name or "/" in name:
            raise ValueError(f"Invalid fleet key: {raw!r}")
        return cls(namespace=ns, name=name)


@dataclass(frozen=True)
class FleetState:
    """Observed and desired standby numbers of one fleet, as read from the store."""

    key: FleetKey
    build_id: str
    active: int
    standby: int
    target_standby: int
    uid: str = ""
    revision: str = ""
    # Untouched wire object, used by stores that write the whole object back.
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def with_target(self, target_standby: int) -> FleetState:
        return replace(self, target_standby=target_standby)


@dataclass(frozen=True)
class FloorRecord:
    key: FleetKey
    build_id: str
    floor: int
    data: dict[str, str] = field(default_factory=dict, compare=False)


class Outcome(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID = "invalid"
    RETRY = "retry"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ReconcileResult:
    outcome: Outcome
    target: int | None = None
    message: str = ""

    @property
    def requeue(self) -> bool:
        return self.outcome in {Outcome.RETRY, Outcome.CANCELLED, Outcome.CONFLICT}

    @property
    def ok(self) -> bool:
        return self.outcome in {Outcome.UPDATED, Outcome.UNCHANGED, Outcome.NOT_FOUND}


# ---------------------------------------------------------------------------
# Wire models (orchestrator REST objects)
# ---------------------------------------------------------------------------


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class OwnerReference(_Wire):
    api_version: str = Field(..., alias="apiVersion")
    kind: str
    name: str
    uid: str = ""
    controller: bool = False
    block_owner_deletion: bool = Field(False, alias="blockOwnerDeletion")


class ObjectMeta(_Wire):
    name: str
    namespace: str = "default"
    uid: str = ""
    resource_version: str = Field("", alias="resourceVersion")
    owner_references: list[OwnerReference] = Field(default_factory=list, alias="ownerReferences")

    def controller_ref(self) -> OwnerReference | None:
        for ref in self.owner_references:
            if ref.controller:
                return ref
        return None


class BuildSpec(_Wire):
    build_id: str = Field("", alias="buildID")
    standing_by: int = Field(0, ge=0, alias="standingBy")


class BuildStatus(_Wire):
    current_active: int = Field(0, ge=0, alias="currentActive")
    current_standing_by: int = Field(0, ge=0, alias="currentStandingBy")


class BuildObject(_Wire):
    """A fleet ("build") as served by the orchestrator API."""

    metadata: ObjectMeta
    spec: BuildSpec = Field(default_factory=BuildSpec)
    status: BuildStatus = Field(default_factory=BuildStatus)

    def to_state(self, raw: dict[str, Any] | None = None) -> FleetState:
        return FleetState(
            key=FleetKey(self.metadata.namespace, self.metadata.name),
            build_id=self.spec.build_id,
            active=self.status.current_active,
            standby=self.status.current_standing_by,
            target_standby=self.spec.standing_by,
            uid=self.metadata.uid,
            revision=self.metadata.resource_version,
            raw=raw or {},
        )


class ConfigMapObject(_Wire):
    metadata: ObjectMeta
    data: dict[str, str] = Field(default_factory=dict)


class WorkerObject(_Wire):
    """A single worker ("game server") owned by a fleet."""

    metadata: ObjectMeta
