import io
import urllib.error
from unittest.mock import patch

import pytest

from k0sctl.binaries import Binary, BinaryDownloadError, find_binary


class FakeResponse(io.BytesIO):
    def __init__(self, body, status=200):
        super().__init__(body)
        self.status = status


def test_ext_for_windows_and_linux():
    assert Binary(arch="amd64", os="windows", version="1.0.0").ext() == ".exe"
    assert Binary(arch="amd64", os="linux", version="1.0.0").ext() == ""


def test_url_format():
    b = Binary(arch="amd64", os="linux", version="v1.2.3+k0s.0")
    assert b.url() == (
        "https://github.com/k0sproject/k0s/releases/download/v1.2.3+k0s.0/k0s-v1.2.3+k0s.0-amd64"
    )


def test_url_same_with_or_without_v_prefix():
    with_v = Binary(arch="arm64", os="windows", version="v1.2.3")
    without_v = Binary(arch="arm64", os="windows", version="1.2.3")
    assert with_v.url() == without_v.url()
    assert with_v.url().endswith("-arm64.exe")


def test_find_binary():
    a = Binary(arch="amd64", os="linux", version="1.0.0")
    b = Binary(arch="arm64", os="linux", version="1.0.0")
    assert find_binary([a, b], "linux", "arm64") is b
    assert find_binary([a, b], "windows", "amd64") is None


def test_download_uses_cached_file(tmp_path):
    b = Binary(arch="amd64", os="linux", version="1.0.0", cache_dir=tmp_path)
    cached = tmp_path / "k0sctl" / "k0s" / "linux" / "amd64" / "k0s-1.0.0"
    cached.parent.mkdir(parents=True)
    cached.write_bytes(b"cached")
    with patch("urllib.request.urlopen") as urlopen:
        b.download()
    assert b.path == str(cached)
    assert urlopen.call_count == 0


def test_download_fetches_into_cache(tmp_path):
    b = Binary(arch="amd64", os="windows", version="1.0.0", cache_dir=tmp_path)
    with patch("urllib.request.urlopen", return_value=FakeResponse(b"binary")) as urlopen:
        b.download()
    assert b.path.endswith("k0s-1.0.0.exe")
    with open(b.path, "rb") as f:
        assert f.read() == b"binary"
    assert urlopen.call_args[0][0] == b.url()


def test_download_to_writes_content(tmp_path):
    target = tmp_path / "k0s"
    b = Binary(arch="amd64", os="linux", version="1.0.0")
    with patch("urllib.request.urlopen", return_value=FakeResponse(b"payload")):
        b.download_to(target)
    assert target.read_bytes() == b"payload"


def test_download_to_http_error_removes_file(tmp_path):
    target = tmp_path / "k0s"
    b = Binary(arch="amd64", os="linux", version="1.0.0")
    err = urllib.error.HTTPError(b.url(), 404, "Not Found", None, None)
    with patch("urllib.request.urlopen", side_effect=err):
        with pytest.raises(BinaryDownloadError, match="http 404"):
            b.download_to(target)
    assert not target.exists()


def test_download_to_bad_status_removes_file(tmp_path):
    target = tmp_path / "k0s"
    b = Binary(arch="amd64", os="linux", version="1.0.0")
    with patch("urllib.request.urlopen", return_value=FakeResponse(b"", status=500)):
        with pytest.raises(BinaryDownloadError, match="http 500"):
            b.download_to(target)
    assert not target.exists()