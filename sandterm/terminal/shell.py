"""
Detection of the shell forms whose effects the terminal tracks itself.

Only two forms are recognized: a single `export NAME=VALUE` anywhere in the
command, and `cd` as the very first token. Compound forms such as
`make && cd build` are deliberately left alone.
"""
from __future__ import annotations

import re
from typing import Optional, Tuple

_EXPORT_RE = re.compile(r"export\s+(\w+)=(.+?)(?:;|$)")
_QUOTES_RE = re.compile(r"^['\"]|['\"]$")


def parse_export(command: str) -> Optional[Tuple[str, str]]:
    """
    Return (name, value) for the first `export NAME=VALUE` in command.

    Surrounding quotes are stripped from the value.

    >>> parse_export("export FOO='bar baz'")
    ('FOO', 'bar baz')
    >>> parse_export("echo hi") is None
    True
    """
    if "export " not in command:
        return None
    match = _EXPORT_RE.search(command)
    if match is None:
        return None
    name, raw_value = match.groups()
    return name, _QUOTES_RE.sub("", raw_value.strip())


def is_cd(command: str) -> bool:
    """True when the command's leading token is `cd` with an argument."""
    return command.strip().startswith("cd ")


def pwd_probe(command: str) -> str:
    """Follow-up command that reports the directory a `cd` lands in."""
    return f"{command.strip()} && pwd"
