"""Rewriting of the admin kubeconfig read from a controller for use outside the cluster."""

from __future__ import annotations

from typing import Any

import yaml

LOCAL_CLUSTER = "local"
DEFAULT_CONTEXT = "Default"
DEFAULT_USER = "user"
ADMIN_USER = "admin"


class KubeconfigError(ValueError):
    """Raised when a kubeconfig can't be parsed or lacks an expected entry."""


def _named_entry(entries: list[Any], name: str, kind: str) -> dict[str, Any]:
    for entry in entries:
        if isinstance(entry, dict) and entry.get("name") == name:
            return entry
    raise KubeconfigError(f"kubeconfig has no {kind} named {name!r}")


def _entries(cfg: dict[str, Any], key: str) -> list[Any]:
    value = cfg.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise KubeconfigError(f"kubeconfig {key} is not a list")
    return value


def kube_config(raw: str, name: str, address: str) -> str:
    """Rename the cluster, context and user of a k0s admin kubeconfig and set the server address."""
    try:
        cfg = yaml.safe_load(raw)
    except yaml.YAMLError as err:
        raise KubeconfigError(f"failed to parse kubeconfig: {err}") from err
    if not isinstance(cfg, dict):
        raise KubeconfigError("kubeconfig is not a mapping")

    clusters = _entries(cfg, "clusters")
    contexts = _entries(cfg, "contexts")
    users = _entries(cfg, "users")

    cluster = _named_entry(clusters, LOCAL_CLUSTER, "cluster")
    context = _named_entry(contexts, DEFAULT_CONTEXT, "context")
    user = _named_entry(users, DEFAULT_USER, "user")

    cluster_body = cluster.get("cluster") or {}
    cluster_body["server"] = address
    cluster["cluster"] = cluster_body
    cluster["name"] = name
    # an entry renamed to an existing name replaces it
    cfg["clusters"] = [c for c in clusters if c is cluster or c.get("name") != name]

    context_body = context.get("context") or {}
    context_body["cluster"] = name
    context_body["user"] = ADMIN_USER
    context["context"] = context_body
    context["name"] = name
    cfg["contexts"] = [c for c in contexts if c is context or c.get("name") != name]

    cfg["current-context"] = name

    if user.get("user") is None:
        user["user"] = {}
    user["name"] = ADMIN_USER
    cfg["users"] = [u for u in users if u is user or u.get("name") != ADMIN_USER]

    return yaml.safe_dump(cfg, sort_keys=False, default_flow_style=False)


def api_address(address: str, port: int) -> str:
    """Return the https URL of a Kubernetes API, bracketing IPv6 addresses."""
    if ":" in address:
        return f"https://[{address}]:{port}"
    return f"https://{address}:{port}"