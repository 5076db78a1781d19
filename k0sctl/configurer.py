"""Host configuration commands shared by the supported Linux distributions."""

from __future__ import annotations

import re
import shlex
from typing import Protocol

from .k0s_version import Version, parse_version

K0S_DOWNLOAD_URL = "https://github.com/k0sproject/k0s/releases/download"

SBIN_PATH = "PATH=/usr/local/sbin:/usr/sbin:/sbin:$PATH"

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "aarch64": "arm64",
    "armv7l": "arm",
    "armv8l": "arm",
    "aarch32": "arm",
    "arm32": "arm",
    "armhfp": "arm",
    "arm-32": "arm",
}

_DEV_RE = re.compile(r"\bdev (\w+)")


class CommandError(Exception):
    """Raised by a host when a remote command fails."""


class ConfigurerError(Exception):
    """Raised when a host configuration step fails."""


class Host(Protocol):
    """The remote host interface the configurers run commands through."""

    def exec(self, cmd: str, *, sudo: bool = False, stdin: str | None = None) -> None: ...

    def exec_output(self, cmd: str, *, sudo: bool = False) -> str: ...

    def sudo(self, cmd: str) -> str: ...


def _succeeds(h: Host, cmd: str, *, sudo: bool = False) -> bool:
    try:
        h.exec(cmd, sudo=sudo)
    except CommandError:
        return False
    return True


class Linux:
    """Base configurer for Linux hosts; distributions override the path methods."""

    def arch(self, h: Host) -> str:
        """Return the host architecture in the form k0s expects."""
        arch = h.exec_output("uname -m").strip()
        return _ARCH_ALIASES.get(arch, arch)

    def k0s_cmdf(self, template: str, *args: object) -> str:
        command = template % args if args else template
        return f"{self.k0s_binary_path()} {command}"

    def k0s_binary_path(self) -> str:
        return "/usr/local/bin/k0s"

    def k0s_binary_version(self, h: Host) -> Version:
        return parse_version(h.exec_output(self.k0s_cmdf("version"), sudo=True))

    def k0s_config_path(self) -> str:
        return "/etc/k0s/k0s.yaml"

    def k0s_join_token_path(self) -> str:
        return "/etc/k0s/k0stoken"

    def k0sctl_lock_file_path(self, h: Host) -> str:
        if _succeeds(h, "test -d /run/lock", sudo=True):
            return "/run/lock/k0sctl"
        return "/tmp/k0sctl.lock"

    def temp_file(self, h: Host) -> str:
        return h.exec_output("mktemp")

    def temp_dir(self, h: Host) -> str:
        return h.exec_output("mktemp -d")

    def download_url(self, h: Host, url: str, destination: str, sudo: bool = False) -> None:
        h.exec(f"curl -sSLf -o {shlex.quote(destination)} {shlex.quote(url)}", sudo=sudo)

    def download_k0s(self, h: Host, path: str, version: Version, arch: str) -> None:
        url = f"{K0S_DOWNLOAD_URL}/{version}/k0s-{version}-{arch}"
        try:
            self.download_url(h, url, path)
        except CommandError as err:
            raise ConfigurerError(f"download k0s: {err}") from err

    def replace_k0s_token_path(self, h: Host, spath: str) -> None:
        """Replace the token path placeholder in a service stub."""
        h.exec(f"sed -i 's^REPLACEME^{self.k0s_join_token_path()}^g' {spath}")

    def file_exist(self, h: Host, path: str) -> bool:
        return _succeeds(h, f'test -e "{path}"', sudo=True)

    def file_contains(self, h: Host, path: str, s: str) -> bool:
        return _succeeds(h, f'grep -q "{s}" "{path}"', sudo=True)

    def move_file(self, h: Host, src: str, dst: str) -> None:
        h.exec(f'mv "{src}" "{dst}"', sudo=True)

    def kubeconfig_path(self, h: Host) -> str:
        if self.file_exist(h, "/var/lib/k0s/pki/admin.conf"):
            return "/var/lib/k0s/pki/admin.conf"
        return "/var/lib/k0s/kubelet.conf"

    def data_dir_default_path(self) -> str:
        return "/var/lib/k0s"

    def kubectl_cmdf(self, h: Host, s: str, *args: object) -> str:
        """Return a kubectl command line that uses the host's kubeconfig."""
        command = s % args if args else s
        return f'env "KUBECONFIG={self.kubeconfig_path(h)}" {self.k0s_cmdf("kubectl %s", command)}'

    def http_status(self, h: Host, url: str) -> int:
        """Make a GET request from the host and return the status code."""
        output = h.exec_output(f'curl -kso /dev/null -w "%{{http_code}}" "{url}"')
        try:
            return int(output.strip())
        except ValueError as err:
            raise ConfigurerError(f"invalid response: {err}") from err

    def private_interface(self, h: Host) -> str:
        """Try to find a private network interface name."""
        cmd = (
            f"{SBIN_PATH}; "
            '(ip route list scope global | grep -E "\\b(172|10|192\\.168)\\.") '
            "|| (ip route list | grep -m1 default)"
        )
        try:
            output = h.exec_output(cmd)
        except CommandError as err:
            reason = str(err)
        else:
            match = _DEV_RE.search(output)
            if match:
                return match.group(1)
            reason = "can't find 'dev' in output"
        raise ConfigurerError(
            "failed to detect a private network interface, "
            f"define the host privateInterface manually ({reason})"
        )

    def private_address(self, h: Host, iface: str, publicip: str) -> str:
        """Return the first IPv4 address of the interface that is not the public one."""
        try:
            output = h.exec_output(f"{SBIN_PATH} ip -o addr show dev {iface} scope global")
        except CommandError as err:
            raise ConfigurerError(
                f"failed to find private interface with name {iface}: {err}. "
                "Make sure you've set correct 'privateInterface' for the host in config"
            ) from err

        for line in output.split("\n"):
            items = line.split()
            if len(items) < 4:
                continue
            # a /32 address may be printed without its prefix length
            addr = items[3].split("/", 1)[0]
            if len(addr.split(".")) == 4 and addr != publicip:
                return addr

        raise ConfigurerError("not found")

    def upsert_file(self, h: Host, path: str, content: str) -> None:
        """Create a file with content unless it already exists."""
        tmpf = self.temp_file(h)
        h.exec(f'cat > "{tmpf}"', stdin=content, sudo=True)
        try:
            try:
                h.exec(f'mv -n "{tmpf}" "{path}"', sudo=True)
            except CommandError as err:
                raise ConfigurerError(f"upsert failed: {err}") from err
            if _succeeds(h, f'test -f "{tmpf}"'):
                raise ConfigurerError("upsert failed")
        finally:
            try:
                h.exec(f'rm -f "{tmpf}"', sudo=True)
            except CommandError:
                pass

    def delete_dir(self, h: Host, path: str, sudo: bool = False) -> None:
        h.exec(f"rmdir {shlex.quote(path)}", sudo=sudo)

    def machine_id(self, h: Host) -> str:
        return h.exec_output("cat /etc/machine-id || cat /var/lib/dbus/machine-id")