from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, ValidationError, model_validator

from src.common.errors import DecodeError

HOST_PORT_MIN = 20000
HOST_PORT_MAX = 65535

HOSTPATH_VOLUME = "hostPath"
WILDCARD_VOLUME = "*"

SAFE_VOLUME_TYPES: Tuple[str, ...] = (
    "configMap",
    "downwardAPI",
    "emptyDir",
    "persistentVolumeClaim",
    "secret",
    "projected",
)

# (pathPrefix, readOnly) pairs a hostPath-enabled policy may keep.
ALLOWED_HOST_PATH_BASELINE: Tuple[Tuple[str, bool], ...] = (
    ("/etc/hosts", False),
    ("/lib/modules", True),
    ("/var/run/calico", False),
    ("/var/lib/calico", False),
    ("/run/xtables.lock", False),
    ("/sys/fs/", False),
    ("/opt/cni/bin", False),
    ("/etc/cni/net.d", False),
    ("/var/log/calico/cni", True),
    ("/var/run/nodeagent", False),
    ("/usr/libexec/kubernetes/kubelet-plugins/volume/exec/nodeagent~uds", False),
)


class _SpecModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # null decodes to the field's zero value, as the API server does
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class HostPortRange(_SpecModel):
    min: StrictInt = 0
    max: StrictInt = 0


class AllowedHostPath(_SpecModel):
    path_prefix: StrictStr = Field(default="", alias="pathPrefix")
    read_only: StrictBool = Field(default=False, alias="readOnly")

    def in_baseline(self) -> bool:
        return (self.path_prefix, self.read_only) in ALLOWED_HOST_PATH_BASELINE


class PodSecurityPolicySpec(_SpecModel):
    privileged: StrictBool = False
    host_pid: StrictBool = Field(default=False, alias="hostPID")
    host_ipc: StrictBool = Field(default=False, alias="hostIPC")
    host_network: StrictBool = Field(default=False, alias="hostNetwork")
    host_ports: List[HostPortRange] = Field(default_factory=list, alias="hostPorts")
    allowed_capabilities: List[StrictStr] = Field(default_factory=list, alias="allowedCapabilities")
    allowed_unsafe_sysctls: List[StrictStr] = Field(default_factory=list, alias="allowedUnsafeSysctls")
    volumes: List[StrictStr] = Field(default_factory=list)
    allowed_host_paths: List[AllowedHostPath] = Field(default_factory=list, alias="allowedHostPaths")


def decode_pod_security_policy(raw: Union[bytes, str, Mapping[str, Any]]) -> PodSecurityPolicySpec:
    """Decode a PodSecurityPolicy object (JSON bytes or mapping) into its spec."""

    if isinstance(raw, (bytes, bytearray, str)):
        try:
            document = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            raise DecodeError(f"PodSecurityPolicy is not valid JSON: {exc}") from exc
    else:
        document = raw
    if not isinstance(document, Mapping):
        raise DecodeError("PodSecurityPolicy must be a JSON object")
    spec = document.get("spec")
    if spec is None:
        spec = {}
    if not isinstance(spec, Mapping):
        raise DecodeError("PodSecurityPolicy spec must be a JSON object")
    try:
        return PodSecurityPolicySpec.model_validate(dict(spec))
    except ValidationError as exc:
        raise DecodeError(f"PodSecurityPolicy spec is malformed: {exc}") from exc


def sanitize(spec: PodSecurityPolicySpec) -> List[Dict[str, Any]]:
    """Compute the JSON Patch that brings ``spec`` back within the security baseline.

    Each rule contributes at most one operation and every operation targets a
    distinct path. ``hostNetwork`` is intentionally left alone.
    """

    ops: List[Dict[str, Any]] = []
    if spec.privileged:
        ops.append(_remove("/spec/privileged"))
    if spec.host_pid:
        ops.append(_remove("/spec/hostPID"))
    if spec.host_ipc:
        ops.append(_remove("/spec/hostIPC"))
    host_ports_op = _host_ports_op(spec.host_ports)
    if host_ports_op is not None:
        ops.append(host_ports_op)
    if spec.allowed_capabilities:
        ops.append(_remove("/spec/allowedCapabilities"))
    if spec.allowed_unsafe_sysctls:
        ops.append(_remove("/spec/allowedUnsafeSysctls"))
    if _host_path_needs_revoking(spec):
        # Revokes hostPath volumes outright instead of narrowing allowedHostPaths.
        ops.append({"op": "replace", "path": "/spec/volumes", "value": list(SAFE_VOLUME_TYPES)})
    return ops


def _remove(path: str) -> Dict[str, Any]:
    return {"op": "remove", "path": path}


def _host_ports_op(ranges: List[HostPortRange]) -> Dict[str, Any] | None:
    restricted = False
    covering = False
    for port_range in ranges:
        if port_range.min < HOST_PORT_MIN or port_range.max > HOST_PORT_MAX:
            restricted = True
        if port_range.min <= HOST_PORT_MIN and port_range.max >= HOST_PORT_MAX:
            covering = True
    if not restricted:
        return None
    if covering:
        return {
            "op": "replace",
            "path": "/spec/hostPorts",
            "value": [{"min": HOST_PORT_MIN, "max": HOST_PORT_MAX}],
        }
    return _remove("/spec/hostPorts")


def _host_path_needs_revoking(spec: PodSecurityPolicySpec) -> bool:
    if HOSTPATH_VOLUME not in spec.volumes and WILDCARD_VOLUME not in spec.volumes:
        return False
    if not spec.allowed_host_paths:
        return True
    return any(not path.in_baseline() for path in spec.allowed_host_paths)


__all__ = [
    "ALLOWED_HOST_PATH_BASELINE",
    "AllowedHostPath",
    "HOST_PORT_MAX",
    "HOST_PORT_MIN",
    "HostPortRange",
    "PodSecurityPolicySpec",
    "SAFE_VOLUME_TYPES",
    "decode_pod_security_policy",
    "sanitize",
]
