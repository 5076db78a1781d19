"""Local download and caching of k0s binaries for uploading to hosts."""

from __future__ import annotations

import logging
import shutil
import urllib.error
import urllib.request
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import platformdirs

log = logging.getLogger(__name__)

K0S_DOWNLOAD_URL = "https://github.com/k0sproject/k0s/releases/download"
TIMEOUT = 300.0


class BinaryDownloadError(Exception):
    """Raised when a k0s binary can't be downloaded."""


@dataclass
class Binary:
    """A k0s binary for one OS and architecture, cached on the local host."""

    arch: str
    os: str
    version: str
    path: str = ""
    cache_dir: Path | None = None

    def ext(self) -> str:
        return ".exe" if self.os == "windows" else ""

    def url(self) -> str:
        version = self.version.removeprefix("v")
        return f"{K0S_DOWNLOAD_URL}/v{version}/k0s-v{version}-{self.arch}{self.ext()}"

    def _cache_file(self) -> Path:
        root = self.cache_dir if self.cache_dir is not None else platformdirs.user_cache_path()
        return root / "k0sctl" / "k0s" / self.os / self.arch / f"k0s-{self.version}{self.ext()}"

    def download(self) -> None:
        """Use the cached binary, downloading it into the cache first if missing."""
        target = self._cache_file()
        if target.is_file():
            self.path = str(target)
            return
        target.parent.mkdir(parents=True, exist_ok=True)
        self.download_to(target)
        self.path = str(target)
        log.info("using k0s binary from %s for %s-%s", self.path, self.os, self.arch)

    def download_to(self, path: str | Path) -> None:
        """Download the binary to ``path``, removing a partial file on failure."""
        target = Path(path)
        url = self.url()
        log.info(
            "downloading k0s version %s binary for %s-%s from %s",
            self.version, self.os, self.arch, url,
        )
        try:
            with target.open("wb") as out:
                try:
                    with urllib.request.urlopen(url, timeout=TIMEOUT) as resp:
                        status = getattr(resp, "status", 200)
                        if status != 200:
                            raise BinaryDownloadError(f"failed to get k0s binary (http {status})")
                        shutil.copyfileobj(resp, out)
                except urllib.error.HTTPError as err:
                    raise BinaryDownloadError(f"failed to get k0s binary (http {err.code})") from err
                except urllib.error.URLError as err:
                    raise BinaryDownloadError(str(err)) from err
        except BaseException:
            try:
                target.unlink(missing_ok=True)
            except OSError as err:
                log.warning("failed to remove broken download at %s: %s", target, err)
            raise
        log.info("cached k0s binary to %s", target)


def find_binary(binaries: Iterable[Binary], os_kind: str, arch: str) -> Binary | None:
    """Return the binary for the OS kind and architecture, if there is one."""
    return next((b for b in binaries if b.arch == arch and b.os == os_kind), None)