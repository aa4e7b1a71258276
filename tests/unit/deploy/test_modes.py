"""Unit tests for permission mode parsing."""
import pytest

from crawldeploy.deploy import ConfigurationError
from crawldeploy.deploy.modes import format_mode, has_write_bits, parse_mode


@pytest.mark.parametrize("value, expected", [
    (0o644, 0o644),
    ("0644", 0o644),
    ("644", 0o644),
    ("0o500", 0o500),
    ("u=rw,go=r", 0o644),
    ("u=rx,go=", 0o500),
    ("a=r", 0o444),
    ("u=rwx,g=rx,o=", 0o750),
    ("ug=rw, o=r", 0o664),
])
def test_parse_mode(value, expected):
    assert parse_mode(value) == expected


@pytest.mark.parametrize("value", ["", "u+rw", "rw-r--r--", "0999", 0o10000, -1, True, "u=rwz"])
def test_parse_mode_rejects(value):
    with pytest.raises(ConfigurationError):
        parse_mode(value)


def test_later_clause_overrides_earlier():
    assert parse_mode("a=rwx,go=") == 0o700


def test_format_mode():
    assert format_mode(0o500) == "0500"
    assert format_mode(0o4755) == "4755"


@pytest.mark.parametrize("mode, expected", [
    (0o500, False),
    (0o444, False),
    (0o700, True),
    (0o520, True),
    (0o502, True),
])
def test_has_write_bits(mode, expected):
    assert has_write_bits(mode) is expected
