"""Interpretation of the `k0s status -o json` output and upgrade decisions."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from .k0s_version import InvalidVersionError, parse_version

log = logging.getLogger(__name__)


class StatusError(ValueError):
    """Raised when k0s status output can't be decoded."""


@dataclass
class K0sStatus:
    """The status of a running k0s as reported by the k0s binary."""

    version: str = ""
    pid: int = 0
    ppid: int = 0
    role: str = ""
    sys_init: str = ""
    stub_file: str = ""
    workloads: bool = False
    args: list[str] = field(default_factory=list)
    cluster_config: dict[str, Any] = field(default_factory=dict)
    k0s_vars: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, text: str) -> K0sStatus:
        """Decode the JSON status output."""
        try:
            data = json.loads(text)
        except ValueError as err:
            raise StatusError(f"failed to decode k0s status output: {err}") from err
        if not isinstance(data, dict):
            raise StatusError("failed to decode k0s status output: not an object")
        try:
            return cls(
                version=str(data.get("Version") or ""),
                pid=int(data.get("Pid") or 0),
                ppid=int(data.get("PPid") or 0),
                role=str(data.get("Role") or ""),
                sys_init=str(data.get("SysInit") or ""),
                stub_file=str(data.get("StubFile") or ""),
                workloads=bool(data.get("Workloads") or False),
                args=[str(a) for a in data.get("Args") or []],
                cluster_config=dict(data.get("ClusterConfig") or {}),
                k0s_vars=dict(data.get("K0sVars") or {}),
            )
        except (TypeError, ValueError) as err:
            raise StatusError(f"failed to decode k0s status output: {err}") from err

    def is_single(self) -> bool:
        return "--single=true" in self.args

    def is_running(self) -> bool:
        return bool(self.version and self.role and self.pid)

    def normalized_role(self) -> str:
        """Return the role in the form used in the cluster configuration."""
        if self.role == "server":
            return "controller"
        if self.role == "server+worker":
            return "controller+worker"
        if self.role == "controller" and self.workloads:
            return "single" if self.is_single() else "controller+worker"
        return self.role

    def dynamic_config_enabled(self) -> bool:
        return any(
            a.startswith("--enable-dynamic-config") and not a.endswith("false")
            for a in self.args
        )


def version_needs_upgrade(target: str, running: str) -> bool:
    """Return True if the target version is greater than the running one."""
    try:
        target_version = parse_version(target)
    except InvalidVersionError as err:
        log.warning("failed to parse target version: %s", err)
        return False
    try:
        current = parse_version(running)
    except InvalidVersionError as err:
        log.warning("failed to parse running version: %s", err)
        return False
    return target_version.greater_than(current)