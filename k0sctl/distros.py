"""Distribution specific configurers and the registry that picks one for a host."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .configurer import CommandError, ConfigurerError, Host, Linux


@dataclass(frozen=True)
class OSVersion:
    """Operating system identification as read from os-release."""

    id: str
    id_like: str = ""
    name: str = ""
    version: str = ""

    def __str__(self) -> str:
        if self.name:
            return self.name
        return f"{self.id} {self.version}".strip()


class UnsupportedOSError(ConfigurerError):
    """Raised when no configurer supports an operating system."""


_REGISTRY: list[tuple[Callable[[OSVersion], bool], type[Linux]]] = []


def _register(matcher: Callable[[OSVersion], bool]):
    def decorator(cls: type[Linux]) -> type[Linux]:
        _REGISTRY.append((matcher, cls))
        return cls

    return decorator


def resolve_configurer(os_version: OSVersion) -> Linux:
    """Return a configurer instance for the given operating system."""
    for matcher, cls in _REGISTRY:
        if matcher(os_version):
            return cls()
    raise UnsupportedOSError(f"OS support module not found for {os_version}")


@_register(lambda os: os.id == "alpine")
class Alpine(Linux):
    def install_package(self, h: Host, *args: str) -> None:
        h.exec(f"apk add --update {' '.join(args)}", sudo=True)

    def prepare(self, h: Host) -> None:
        self.install_package(h, "findutils", "coreutils")


@_register(lambda os: os.id == "arch" or os.id_like == "arch")
class Archlinux(Linux):
    pass


@_register(lambda os: "CoreOS" in os.name and os.id in ("fedora", "rhel"))
class CoreOS(Linux):
    def install_package(self, h: Host, *args: str) -> None:
        raise ConfigurerError("CoreOS does not support installing packages manually")


@_register(lambda os: os.id == "debian")
class Debian(Linux):
    pass


@_register(lambda os: os.id == "ubuntu")
class Ubuntu(Debian):
    pass


class EnterpriseLinux(Linux):
    """Base for RHEL-like distributions."""


@_register(lambda os: os.id == "flatcar")
class Flatcar(Linux):
    def install_package(self, h: Host, *args: str) -> None:
        raise ConfigurerError("FlatcarContainerLinux does not support installing packages manually")


@_register(lambda os: os.id == "sles")
class SLES(Linux):
    pass


@_register(lambda os: os.id in ("opensuse", "opensuse-microos"))
class OpenSUSE(SLES):
    pass


@_register(lambda os: os.id == "slackware")
class Slackware(Linux):
    def install_package(self, h: Host, *args: str) -> None:
        update_cmd = h.sudo("slackpkg update")
        install_cmd = h.sudo(f"slackpkg install --priority ADD {' '.join(args)}")
        h.exec(f"{update_cmd} && {install_cmd}")


@_register(lambda os: os.id == "almalinux")
class AlmaLinux(EnterpriseLinux):
    pass


@_register(lambda os: os.id == "amzn")
class AmazonLinux(EnterpriseLinux):
    def hostname(self, h: Host) -> str:
        """Return the full hostname, or an empty string when it can't be read."""
        try:
            return h.exec_output("hostname")
        except CommandError:
            return ""


@_register(lambda os: os.id == "centos")
class CentOS(EnterpriseLinux):
    pass


@_register(lambda os: os.id == "fedora" and "CoreOS" not in os.name)
class Fedora(EnterpriseLinux):
    pass


@_register(lambda os: os.id == "ol")
class OracleLinux(EnterpriseLinux):
    pass


@_register(lambda os: os.id == "rhel" and "CoreOS" not in os.name)
class RHEL(EnterpriseLinux):
    pass


@_register(lambda os: os.id == "rocky")
class RockyLinux(EnterpriseLinux):
    pass