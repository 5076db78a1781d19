"""Release information for k0sctl from the GitHub API."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any

from .k0s_version import InvalidVersionError, parse_version

RELEASES_URL = "https://api.github.com/repos/k0sproject/k0sctl/releases?per_page=20&page=1"
TIMEOUT = 10.0


class GithubError(Exception):
    """Raised when release information can't be fetched or understood."""


@dataclass
class Asset:
    """A downloadable file attached to a release."""

    name: str
    url: str


@dataclass
class Release:
    """A GitHub release."""

    url: str = ""
    tag_name: str = ""
    prerelease: bool = False
    assets: list[Asset] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Release:
        """Build a release from a GitHub API JSON object."""
        return cls(
            url=data.get("html_url", ""),
            tag_name=data.get("tag_name", ""),
            prerelease=bool(data.get("prerelease", False)),
            assets=[
                Asset(name=a.get("name", ""), url=a.get("browser_download_url", ""))
                for a in data.get("assets") or []
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the GitHub API JSON form of the release."""
        return {
            "html_url": self.url,
            "tag_name": self.tag_name,
            "prerelease": self.prerelease,
            "assets": [{"name": a.name, "browser_download_url": a.url} for a in self.assets],
        }

    def is_newer(self, other: str) -> bool:
        """Return True if this release's tag is a greater version than ``other``."""
        try:
            this = parse_version(self.tag_name)
            that = parse_version(other)
        except InvalidVersionError:
            return False
        return this.greater_than(that)


def select_latest_release(releases: list[Release], preok: bool) -> Release:
    """Return the release with the greatest version, skipping pre-releases unless allowed."""
    candidates = []
    for release in releases:
        if release.prerelease and not preok:
            continue
        try:
            candidates.append((parse_version(release.tag_name.removeprefix("v")), release))
        except InvalidVersionError:
            continue

    if not candidates:
        raise GithubError("failed to get the latest version information")

    latest = candidates[0]
    for candidate in candidates[1:]:
        if candidate[0] >= latest[0]:
            latest = candidate
    return latest[1]


def _get_json(url: str) -> Any:
    try:
        with urllib.request.urlopen(url, timeout=TIMEOUT) as resp:
            status = getattr(resp, "status", 200)
            if status != 200:
                raise GithubError(f"backend returned http {status} for {url}")
            body = resp.read()
    except urllib.error.HTTPError as err:
        raise GithubError(f"backend returned http {err.code} for {url}") from err
    except urllib.error.URLError as err:
        raise GithubError(str(err)) from err
    try:
        return json.loads(body)
    except ValueError as err:
        raise GithubError(f"invalid response from {url}: {err}") from err


def latest_release(preok: bool) -> Release:
    """Fetch the releases and return the semantically latest one."""
    data = _get_json(RELEASES_URL)
    if not isinstance(data, list):
        raise GithubError("failed to get the latest version information")
    return select_latest_release([Release.from_dict(item) for item in data], preok)