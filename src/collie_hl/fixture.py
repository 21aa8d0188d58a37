"""
Fixture Parser

Classifies every line of a ``*.test.collie`` fixture:

    # SYNTAX TEST "source.collie"        <- header directive, ignored
    if ready // go                       <- code line
    #^ keyword.control.collie            <- assertion about the code line above
    # plain remark                       <- marker without carets: malformed

Assertion columns come from the position of the first caret within the
assertion line and are applied to the nearest code line above it.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterator, Optional, Tuple

from lark import Lark, Token as LarkToken, Transformer, UnexpectedInput
from lark.exceptions import UnexpectedCharacters, UnexpectedToken

from .types import (
    Assertion,
    AssertionLine,
    CodeLine,
    DirectiveLine,
    FixtureLine,
    MalformedAssertion,
)


@dataclass(frozen=True)
class FixtureSyntax:
    header: str = "# SYNTAX TEST"
    marker: str = "#"


DEFAULT_SYNTAX = FixtureSyntax()

# marker, optional blanks, caret run, optional blanks, scope to end of line
_ASSERTION_GRAMMAR = r"""
start: MARKER CARETS SCOPE

MARKER: {marker}
CARETS: /\^+/
SCOPE: /\S.*/

%import common.WS_INLINE
%ignore WS_INLINE
"""

Span = Tuple[int, int, str]


class _AssertionSpan(Transformer):
    def start(self, children: list[LarkToken]) -> Span:
        by_type = {tok.type: tok for tok in children}
        carets = by_type["CARETS"]
        return carets.start_pos, carets.start_pos + len(carets), by_type["SCOPE"].strip()


@lru_cache(maxsize=None)
def assertion_parser(marker: str) -> Lark:
    grammar = _ASSERTION_GRAMMAR.replace("{marker}", json.dumps(marker))
    return Lark(grammar, parser="lalr", lexer="contextual", transformer=_AssertionSpan())


def _reason(exc: UnexpectedInput) -> str:
    if isinstance(exc, UnexpectedCharacters):
        return f"unexpected {exc.char!r} at column {exc.column - 1}"
    if isinstance(exc, UnexpectedToken) and exc.token.type != "$END":
        return f"unexpected {exc.token.value!r} at column {exc.token.column - 1}"
    return "expected a caret run followed by a scope"


def _header_scope(stripped: str, header: str) -> Optional[str]:
    rest = stripped[len(header):].strip()
    m = re.match(r'"([^"]+)"|(\S+)', rest)
    if m is None:
        return None
    return m.group(1) or m.group(2)


def classify_line(raw: str, lineno: int, syntax: FixtureSyntax = DEFAULT_SYNTAX) -> FixtureLine:
    # Only trailing whitespace goes: leading blanks are columns the grammar sees.
    text = raw.rstrip()
    stripped = text.strip()

    if stripped.startswith(syntax.header):
        return DirectiveLine(lineno, text, _header_scope(stripped, syntax.header))

    if stripped.startswith(syntax.marker):
        try:
            start, end, scope = assertion_parser(syntax.marker).parse(text)
        except UnexpectedInput as exc:
            return MalformedAssertion(lineno, text, _reason(exc))
        return AssertionLine(lineno, text, Assertion(start, end, scope, lineno, text))

    return CodeLine(lineno, text)


def parse_fixture(text: str, syntax: FixtureSyntax = DEFAULT_SYNTAX) -> Iterator[FixtureLine]:
    """Lazily classify the lines of a fixture, numbering them from 1."""
    for lineno, raw in enumerate(text.split("\n"), 1):
        yield classify_line(raw, lineno, syntax)
