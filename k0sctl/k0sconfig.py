"""Building and comparing the k0s configuration written to controllers."""

from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import Any

DEFAULT_API_VERSION = "k0s.k0sproject.io/v1beta1"
DEFAULT_KIND = "ClusterConfig"
LOCALHOST = "127.0.0.1"


def remove_comment(text: str) -> str:
    """Return the text without lines that start with '#', each kept line newline-terminated."""
    if not text:
        return ""
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    kept = [line.removesuffix("\r") for line in lines]
    return "".join(f"{line}\n" for line in kept if not line.startswith("#"))


def equal_config(a: str, b: str) -> bool:
    """Compare two configuration texts ignoring comment lines."""
    return remove_comment(a) == remove_comment(b)


def add_unless_exist(items: Iterable[str], s: str) -> list[str]:
    """Return the items as a list with ``s`` appended unless it is already there."""
    result = list(items)
    if s not in result:
        result.append(s)
    return result


def _dig(cfg: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(cfg, dict):
            return None
        cfg = cfg.get(key)
    return cfg


def _dig_mapping(cfg: dict[str, Any], *keys: str) -> dict[str, Any]:
    for key in keys:
        child = cfg.get(key)
        if not isinstance(child, dict):
            child = {}
            cfg[key] = child
        cfg = child
    return cfg


def node_api_config(
    cfg: dict[str, Any],
    address: str,
    private_address: str,
    controller_addresses: Iterable[str],
) -> dict[str, Any]:
    """Return a copy of the config with the node's API address, SANs and etcd peer address set.

    ``controller_addresses`` holds the public and private addresses of all controllers;
    empty entries are ignored.
    """
    result = copy.deepcopy(cfg) if cfg else {}
    addr = private_address or address

    api = _dig_mapping(result, "spec", "api")
    api["address"] = addr
    sans = add_unless_exist([], addr)

    old_sans = api.get("sans")
    if isinstance(old_sans, list):
        for value in old_sans:
            if isinstance(value, str):
                sans = add_unless_exist(sans, value)

    for controller in controller_addresses:
        if controller:
            sans = add_unless_exist(sans, controller)
    sans = add_unless_exist(sans, LOCALHOST)
    api["sans"] = sans

    if _dig(result, "spec", "storage", "etcd", "peerAddress") is not None or private_address:
        _dig_mapping(result, "spec", "storage", "etcd")["peerAddress"] = addr

    result.setdefault("apiVersion", DEFAULT_API_VERSION)
    result.setdefault("kind", DEFAULT_KIND)
    return result