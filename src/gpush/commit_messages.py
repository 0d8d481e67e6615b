"""Commit message trailer helpers."""

from __future__ import annotations

import re

_CHANGE_ID_PATTERN = re.compile(r"^Change-Id:[ \t]+(?P<change_id>\S+)[ \t]*$", re.MULTILINE)


def parse_change_id(message: str) -> str | None:
    """Return the ``Change-Id`` trailer value from a commit message.

    Gerrit honors the last trailer when a message carries several, so the
    last match wins.

    Args:
        message: Full commit message.

    Returns:
        The Change-Id token, or ``None`` when the message has no trailer.

    Example:
        >>> parse_change_id("Fix it\\n\\nChange-Id: I01\\nChange-Id: I02\\n")
        'I02'
        >>> parse_change_id("No trailer") is None
        True
    """
    change_id = None
    for match in _CHANGE_ID_PATTERN.finditer(message):
        change_id = match.group("change_id")
    return change_id
