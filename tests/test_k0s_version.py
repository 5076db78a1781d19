import pytest

from k0sctl.k0s_version import InvalidVersionError, Version, parse_version


def test_parse_fields():
    v = parse_version("v1.23.3+k0s.1")
    assert (v.major, v.minor, v.patch) == (1, 23, 3)
    assert v.k0s_build == 1
    assert v.prerelease == ()


@pytest.mark.parametrize("text", ["v1.23.3+k0s.1", "v1.26.0-rc.1+k0s.0", "v0.11.0"])
def test_string_round_trip(text):
    assert str(parse_version(text)) == text
    assert parse_version(str(parse_version(text))) == parse_version(text)


def test_prefix_optional():
    assert parse_version("1.23.3+k0s.1") == parse_version("v1.23.3+k0s.1")


def test_k0s_build_number_ordering():
    target = parse_version("1.23.3+k0s.1")
    assert not target.greater_than(parse_version("1.23.3+k0s.1"))
    assert not target.greater_than(parse_version("1.23.3+k0s.2"))
    assert target.greater_than(parse_version("1.23.3+k0s.0"))


def test_prerelease_is_lower():
    assert parse_version("1.2.3").greater_than(parse_version("1.2.3-rc.1"))
    assert parse_version("1.2.3-rc.2").greater_than(parse_version("1.2.3-rc.1"))
    assert not parse_version("1.2.3-rc.1").greater_than(parse_version("1.2.3"))


def test_sorting_is_consistent():
    versions = [parse_version(s) for s in ["1.24.0", "1.2.10", "1.2.9", "1.24.0-beta.1"]]
    ordered = sorted(versions)
    assert [str(v) for v in ordered] == ["v1.2.9", "v1.2.10", "v1.24.0-beta.1", "v1.24.0"]
    assert all(a <= b for a, b in zip(ordered, ordered[1:]))


def test_whitespace_is_trimmed():
    assert parse_version(" v1.23.3+k0s.1\n") == Version(1, 23, 3, (), "k0s.1")


@pytest.mark.parametrize("text", ["", "not-a-version", "v1.x.3", "1.2.3.4"])
def test_invalid(text):
    with pytest.raises(InvalidVersionError):
        parse_version(text)


def test_invalid_is_value_error():
    with pytest.raises(ValueError):
        parse_version("garbage")