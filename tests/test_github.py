import io
import json
import urllib.error
from unittest.mock import patch

import pytest

from k0sctl.github import (
    RELEASES_URL,
    Asset,
    GithubError,
    Release,
    latest_release,
    select_latest_release,
)


class FakeResponse(io.BytesIO):
    def __init__(self, body, status=200):
        super().__init__(body)
        self.status = status


def release(tag, pre=False):
    return Release(url=f"https://example.com/{tag}", tag_name=tag, prerelease=pre)


def test_round_trip_dict():
    original = Release(
        url="https://example.com/r",
        tag_name="v0.15.0",
        prerelease=True,
        assets=[Asset(name="k0sctl-linux-x64", url="https://example.com/a")],
    )
    data = original.to_dict()
    assert data["html_url"] == "https://example.com/r"
    assert data["assets"][0]["browser_download_url"] == "https://example.com/a"
    assert Release.from_dict(data) == original


def test_round_trip_through_json():
    original = release("v1.0.0")
    assert Release.from_dict(json.loads(json.dumps(original.to_dict()))) == original


def test_is_newer():
    assert release("v0.15.0").is_newer("v0.14.0") is True
    assert release("v0.14.0").is_newer("v0.15.0") is False
    assert release("v0.14.0").is_newer("v0.14.0") is False


def test_is_newer_with_invalid_versions():
    assert release("not-a-version").is_newer("v0.1.0") is False
    assert release("v0.1.0").is_newer("dev") is False


def test_select_latest_skips_prereleases():
    releases = [release("v0.13.0"), release("v0.15.0-rc.1", pre=True), release("v0.14.2")]
    assert select_latest_release(releases, False).tag_name == "v0.14.2"


def test_select_latest_accepts_prereleases_when_allowed():
    releases = [release("v0.13.0"), release("v0.15.0-rc.1", pre=True), release("v0.14.2")]
    assert select_latest_release(releases, True).tag_name == "v0.15.0-rc.1"


def test_select_latest_without_candidates():
    with pytest.raises(GithubError, match="failed to get the latest version information"):
        select_latest_release([release("v1.0.0-beta", pre=True)], False)


def test_latest_release_fetches_releases():
    body = json.dumps([release("v0.1.0").to_dict(), release("v0.2.0").to_dict()]).encode()
    with patch("urllib.request.urlopen", return_value=FakeResponse(body)) as urlopen:
        result = latest_release(False)
    assert result.tag_name == "v0.2.0"
    assert urlopen.call_args[0][0] == RELEASES_URL


def test_latest_release_http_error():
    err = urllib.error.HTTPError(RELEASES_URL, 503, "Unavailable", None, None)
    with patch("urllib.request.urlopen", side_effect=err):
        with pytest.raises(GithubError, match="503"):
            latest_release(False)