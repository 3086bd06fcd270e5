"""
colloquy.engine.extractor — Mention & Link Extraction
=====================================================

Pure text scanning, no I/O.  Both functions return position-tagged tokens
whose ``start``/``end`` are character offsets into the original body
(``body[start:end]`` is the matched text, including the leading ``@``
for mentions).

They are called afresh on every body mutation (create and edit); stored
mentions/links are never patched incrementally.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass

__all__ = ["Mention", "Link", "extract_mentions", "extract_links"]

# ``@`` followed by letters, digits, ``_``, ``-`` or ``:``
_MENTION_REGEX = re.compile(r"@([a-zA-Z0-9_\-:]+)")

# http(s) URL; may not end in closing punctuation
_LINK_REGEX = re.compile(r"(https?://[^\s<]+[^<.,:;\"')\]\s])")


@dataclass(frozen=True, slots=True)
class Mention:
    user_id: str
    start: int
    end: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict) -> Mention:
        return cls(user_id=raw["user_id"], start=int(raw["start"]), end=int(raw["end"]))


@dataclass(frozen=True, slots=True)
class Link:
    url: str
    start: int
    end: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict) -> Link:
        return cls(url=raw["url"], start=int(raw["start"]), end=int(raw["end"]))


def extract_mentions(body: str) -> list[Mention]:
    """Return every ``@userId`` token in *body*, left to right.

    >>> extract_mentions("Hey @user_2, check this out!")
    [Mention(user_id='user_2', start=4, end=11)]
    """
    return [
        Mention(user_id=m.group(1), start=m.start(), end=m.end())
        for m in _MENTION_REGEX.finditer(body)
    ]


def extract_links(body: str) -> list[Link]:
    """Return every ``http://`` / ``https://`` URL in *body*, left to right.

    Trailing sentence punctuation (``.,:;"')]``) is not part of the URL.
    """
    return [
        Link(url=m.group(1), start=m.start(), end=m.end())
        for m in _LINK_REGEX.finditer(body)
    ]
