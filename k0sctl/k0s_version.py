"""Parsing and ordering of k0s style versions such as v1.23.3+k0s.1."""

from __future__ import annotations

import re
from dataclasses import dataclass

_VERSION_RE = re.compile(
    r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?"
    r"(?:-([0-9A-Za-z.-]+))?"
    r"(?:\+([0-9A-Za-z.-]+))?$"
)
_K0S_BUILD_RE = re.compile(r"^k0s\.(\d+)$")


class InvalidVersionError(ValueError):
    """Raised when a string is not a valid version."""


def _compare_identifier(a: str, b: str) -> int:
    a_num, b_num = a.isdigit(), b.isdigit()
    if a_num and b_num:
        return (int(a) > int(b)) - (int(a) < int(b))
    if a_num:
        return -1
    if b_num:
        return 1
    return (a > b) - (a < b)


@dataclass(frozen=True)
class Version:
    """A semantic version with an optional k0s build number in its metadata."""

    major: int
    minor: int = 0
    patch: int = 0
    prerelease: tuple[str, ...] = ()
    metadata: str = ""

    @property
    def k0s_build(self) -> int | None:
        match = _K0S_BUILD_RE.match(self.metadata)
        return int(match.group(1)) if match else None

    def _compare(self, other: Version) -> int:
        mine = (self.major, self.minor, self.patch)
        theirs = (other.major, other.minor, other.patch)
        if mine != theirs:
            return 1 if mine > theirs else -1

        if self.prerelease != other.prerelease:
            if not self.prerelease:
                return 1
            if not other.prerelease:
                return -1
            for a, b in zip(self.prerelease, other.prerelease):
                result = _compare_identifier(a, b)
                if result:
                    return result
            return (len(self.prerelease) > len(other.prerelease)) - (
                len(self.prerelease) < len(other.prerelease)
            )

        mine_build, theirs_build = self.k0s_build, other.k0s_build
        if mine_build is not None and theirs_build is not None:
            return (mine_build > theirs_build) - (mine_build < theirs_build)
        return 0

    def greater_than(self, other: Version) -> bool:
        return self._compare(other) > 0

    def __lt__(self, other: Version) -> bool:
        return self._compare(other) < 0

    def __le__(self, other: Version) -> bool:
        return self._compare(other) <= 0

    def __gt__(self, other: Version) -> bool:
        return self._compare(other) > 0

    def __ge__(self, other: Version) -> bool:
        return self._compare(other) >= 0

    def __str__(self) -> str:
        text = f"v{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.metadata:
            text += "+" + self.metadata
        return text


def parse_version(text: str) -> Version:
    """Parse a version string, with or without a leading "v"."""
    match = _VERSION_RE.match(text.strip())
    if not match:
        raise InvalidVersionError(f"malformed version: {text!r}")
    major, minor, patch, pre, meta = match.groups()
    return Version(
        major=int(major),
        minor=int(minor or 0),
        patch=int(patch or 0),
        prerelease=tuple(pre.split(".")) if pre else (),
        metadata=meta or "",
    )