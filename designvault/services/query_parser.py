"""Split raw search text into free-text terms and ``key:value`` filters.

Tokens are separated by whitespace; a double-quoted span is part of the
token it appears in and may contain spaces.  A token is a filter when it
holds a colon *outside* quotes: it is split at the first such colon, the
key is lower-cased and quotes are stripped from both halves.  Everything
else is a free-text term (quotes stripped).

Edge cases:

* ``"a:b"`` (colon only inside quotes) is the free-text term ``a:b``.
* ``a:b:c`` is the filter ``a`` = ``b:c``; only the first colon splits.
* ``:x`` and ``x:`` have an empty key or value and are dropped.
* A repeated key keeps its last value.
* An unterminated quote runs to the end of the input.
"""

from __future__ import annotations

import re

from designvault.models.search import ParsedQuery

# Runs of non-space characters and quoted spans; an unclosed quote takes the rest.
_TOKEN_RE = re.compile(r'(?:[^\s"]+|"[^"]*")+|"[^"]*$')


def _unquoted_colon(token: str) -> int:
    """Index of the first colon outside double quotes, or -1."""
    in_quotes = False
    for i, char in enumerate(token):
        if char == '"':
            in_quotes = not in_quotes
        elif char == ":" and not in_quotes:
            return i
    return -1


def _strip_quotes(value: str) -> str:
    return value.replace('"', "").strip()


def parse_query(raw: str) -> ParsedQuery:
    """Parse *raw* into a :class:`ParsedQuery`."""
    terms: list[str] = []
    filters: dict[str, str] = {}

    for token in _TOKEN_RE.findall(raw):
        colon = _unquoted_colon(token)
        if colon == -1:
            term = _strip_quotes(token)
            if term:
                terms.append(term)
            continue

        key = _strip_quotes(token[:colon]).lower()
        value = _strip_quotes(token[colon + 1 :])
        if key and value:
            filters[key] = value

    return ParsedQuery(terms=terms, filters=filters)
