"""Store backed by an orchestrator REST API (Kubernetes-style objects).

Fleets are custom objects under ``/apis/<group>/<version>``; floor records are
ConfigMaps of the same name, owned by their fleet so that deleting the fleet
garbage-collects the record.
"""
from __future__ import annotations

import copy
from typing import Any

import httpx
from pydantic import ValidationError

from .errors import AlreadyExists, Conflict, NotFound, StandbyError, StoreUnavailable
from .models import BuildObject, ConfigMapObject, FleetKey, FleetState, utc_now
from .settings import Settings


class ApiStore:
    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        group: str = "mps.playfab.com",
        version: str = "v1alpha1",
        kind: str = "GameServerBuild",
        plural: str = "gameserverbuilds",
        namespace: str | None = None,
        timeout_s: float = 10.0,
        component: str = "dynamic-standby",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.group = group
        self.version = version
        self.kind = kind
        self.plural = plural
        self.namespace = namespace
        self.timeout_s = timeout_s
        self.component = component
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout_s,
            follow_redirects=False,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, s: Settings, transport: httpx.BaseTransport | None = None) -> ApiStore:
        if not s.api_url:
            raise ValueError("DSB_API_URL is not set")
        return cls(
            s.api_url,
            token=s.api_token,
            group=s.api_group,
            version=s.api_version,
            kind=s.build_kind,
            plural=s.build_plural,
            namespace=s.namespace,
            timeout_s=s.request_timeout_s,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ApiStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -- paths -----------------------------------------------------------------

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}"

    def _fleet_path(self, namespace: str | None = None, name: str | None = None) -> str:
        base = f"/apis/{self.group}/{self.version}"
        if namespace:
            base += f"/namespaces/{namespace}"
        base += f"/{self.plural}"
        return f"{base}/{name}" if name else base

    @staticmethod
    def _configmap_path(namespace: str, name: str | None = None) -> str:
        base = f"/api/v1/namespaces/{namespace}/configmaps"
        return f"{base}/{name}" if name else base

    # -- transport ---------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        timeout_s: float | None = None,
    ) -> dict[str, Any]:
        timeout = self.timeout_s if timeout_s is None else timeout_s
        try:
            resp = self._client.request(method, path, json=json, timeout=timeout)
        except httpx.TimeoutException as e:
            raise StoreUnavailable(f"{method} {path} timed out") from e
        except httpx.RequestError as e:
            raise StoreUnavailable(f"{method} {path} failed: {type(e).__name__}: {e}") from e

        if resp.status_code == 404:
            raise NotFound(f"{path} not found")
        if resp.status_code == 409:
            reason = _status_reason(resp)
            if reason == "AlreadyExists":
                raise AlreadyExists(f"{path} already exists")
            raise Conflict(f"{method} {path} conflicted ({reason or 'Conflict'})")
        if resp.status_code >= 400:
            raise StoreUnavailable(f"{method} {path} returned HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise StoreUnavailable(f"{method} {path} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise StoreUnavailable(f"{method} {path} returned {type(data).__name__}, expected an object")
        return data

    # -- fleets ------------------------------------------------------------------

    def _to_state(self, payload: dict[str, Any]) -> FleetState:
        try:
            return BuildObject.model_validate(payload).to_state(raw=payload)
        except ValidationError as e:
            raise StoreUnavailable(f"invalid {self.kind} object: {e.error_count()} validation error(s)") from e

    def get_fleet(self, key: FleetKey, timeout_s: float | None = None) -> FleetState:
        payload = self._request("GET", self._fleet_path(key.namespace, key.name), timeout_s=timeout_s)
        return self._to_state(payload)

    def list_fleets(self) -> list[FleetKey]:
        payload = self._request("GET", self._fleet_path(self.namespace))
        return [self._to_state(item).key for item in payload.get("items") or []]

    def update_target_standby(self, fleet: FleetState, target_standby: int, timeout_s: float | None = None) -> FleetState:
        if target_standby < 0:
            raise ValueError("target_standby must be >= 0")
        body = copy.deepcopy(fleet.raw) if fleet.raw else {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": {"name": fleet.key.name, "namespace": fleet.key.namespace},
            "spec": {"buildID": fleet.build_id},
        }
        body.setdefault("metadata", {})["resourceVersion"] = fleet.revision
        body.setdefault("spec", {})["standingBy"] = target_standby
        payload = self._request(
            "PUT",
            self._fleet_path(fleet.key.namespace, fleet.key.name),
            json=body,
            timeout_s=timeout_s,
        )
        return self._to_state(payload)

    # -- floor records -------------------------------------------------------------

    def get_floor_data(self, key: FleetKey, timeout_s: float | None = None) -> dict[str, str]:
        payload = self._request("GET", self._configmap_path(key.namespace, key.name), timeout_s=timeout_s)
        try:
            return dict(ConfigMapObject.model_validate(payload).data)
        except ValidationError as e:
            raise StoreUnavailable(f"invalid ConfigMap object: {e.error_count()} validation error(s)") from e

    def create_floor_data(self, fleet: FleetState, data: dict[str, str], timeout_s: float | None = None) -> dict[str, str]:
        body = {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {
                "name": fleet.key.name,
                "namespace": fleet.key.namespace,
                "ownerReferences": [
                    {
                        "apiVersion": self.api_version,
                        "kind": self.kind,
                        "name": fleet.key.name,
                        "uid": fleet.uid,
                        "controller": True,
                        "blockOwnerDeletion": True,
                    }
                ],
            },
            "data": {k: str(v) for k, v in data.items()},
        }
        payload = self._request("POST", self._configmap_path(fleet.key.namespace), json=body, timeout_s=timeout_s)
        return dict(payload.get("data") or body["data"])

    # -- events ------------------------------------------------------------------------

    def log_event(self, level: str, message: str, key: FleetKey | None = None, reason: str = "") -> bool:
        namespace = key.namespace if key else (self.namespace or "default")
        body: dict[str, Any] = {
            "apiVersion": "v1",
            "kind": "Event",
            "metadata": {"generateName": f"{key.name if key else self.component}."},
            "type": "Normal" if level.upper() == "INFO" else "Warning",
            "reason": reason or level.upper(),
            "message": message,
            "source": {"component": self.component},
            "firstTimestamp": utc_now(),
            "lastTimestamp": utc_now(),
            "count": 1,
        }
        if key:
            body["involvedObject"] = {
                "apiVersion": self.api_version,
                "kind": self.kind,
                "name": key.name,
                "namespace": key.namespace,
            }
        try:
            self._request("POST", f"/api/v1/namespaces/{namespace}/events", json=body)
            return True
        except StandbyError:
            return False


def _status_reason(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        return str(body.get("reason") or "")
    return ""
