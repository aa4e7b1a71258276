"""Permission mode parsing.

Accepts the notations found in deployment configs:
    0o644 / 420          -> int, used as-is
    "0644" / "644"       -> octal string
    "u=rw,go=r"          -> symbolic (absolute assignment only, as in Ansible copy)
"""
import re
from typing import Union

from .exceptions import ConfigurationError

_WHO_SHIFT = {'u': 6, 'g': 3, 'o': 0}
_PERM_BITS = {'r': 4, 'w': 2, 'x': 1}
_CLAUSE = re.compile(r'^([ugoa]+)=([rwx]*)$')
_OCTAL = re.compile(r'^0?o?[0-7]{3,4}$')


def parse_mode(value: Union[str, int]) -> int:
    """Convert a mode in any supported notation to permission bits.

    Raises:
        ConfigurationError: If the mode cannot be parsed or has bits above 0o7777
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid mode: {value!r}")

    if isinstance(value, int):
        mode = value
    else:
        text = str(value).strip()
        if _OCTAL.match(text):
            mode = int(text.replace('o', ''), 8)
        else:
            mode = _parse_symbolic(text)

    if mode < 0 or mode > 0o7777:
        raise ConfigurationError(f"Mode out of range: {value!r}")
    return mode


def _parse_symbolic(text: str) -> int:
    if not text:
        raise ConfigurationError("Empty mode string")

    mode = 0
    for clause in text.split(','):
        match = _CLAUSE.match(clause.strip())
        if not match:
            raise ConfigurationError(
                f"Invalid mode clause {clause!r} in {text!r} "
                f"(expected e.g. 'u=rw,go=r' or '0644')"
            )
        who, perms = match.groups()
        if 'a' in who:
            who = 'ugo'
        bits = sum(_PERM_BITS[p] for p in set(perms))
        for w in set(who):
            shift = _WHO_SHIFT[w]
            mode &= ~(0o7 << shift)
            mode |= bits << shift
    return mode


def format_mode(mode: int) -> str:
    """Render permission bits as a four digit octal string, e.g. '0500'."""
    return f"{mode:04o}"


def has_write_bits(mode: int) -> bool:
    """True if any principal (owner, group or other) may write."""
    return bool(mode & 0o222)
