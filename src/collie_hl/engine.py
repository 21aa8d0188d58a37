"""Boundary to the TextMate tokenizing engine.

The harness needs exactly two things from an engine: compile a grammar by
scope name, and tokenize one line given the rule stack left by the previous
line. `TokenizerEngine` names that surface; `BabiEngine` implements it with
babi's highlighter, which runs TextMate grammars on oniguruma regexes.
"""

from __future__ import annotations

import json
import os
import tempfile
from typing import Any, Callable, Iterable, Mapping, Protocol, Tuple

from babi.highlight import Grammars, highlight_line

from .types import Grammar, RuleStack, Token
from .utils import get_logger

log = get_logger(__name__)

LineTokens = Tuple[Tuple[Token, ...], RuleStack]


class TokenizerEngine(Protocol):
    def load_grammar(self, scope_name: str) -> Grammar:
        ...

    def tokenize_line(
        self,
        grammar: Grammar,
        line: str,
        state: RuleStack,
        first_line: bool = False,
    ) -> LineTokens:
        ...

    def close(self) -> None:
        ...


# Builds an engine from the registered definitions (scope name -> raw grammar).
EngineFactory = Callable[[Mapping[str, dict[str, Any]]], TokenizerEngine]


def clip_tokens(
    spans: Iterable[Tuple[int, int, Tuple[str, ...]]],
    length: int,
) -> Tuple[Token, ...]:
    """Convert engine spans to tokens that stop at the end of the line.

    Engines see the line with its newline; the newline is not part of the
    fixture's code line, so spans are cut at `length` and emptied spans dropped.
    """
    tokens = []
    for start, end, scopes in spans:
        end = min(end, length)
        if start >= end:
            continue
        tokens.append(Token(start, end, tuple(scopes)))
    return tuple(tokens)


class BabiEngine:
    """`TokenizerEngine` on top of ``babi.highlight``.

    babi discovers grammars as ``<scopeName>.json`` files in a directory, so
    the definitions are staged into a private directory that lives as long as
    the engine (included grammars are read lazily while tokenizing).
    """

    def __init__(self, definitions: Mapping[str, dict[str, Any]]):
        self._staging = tempfile.TemporaryDirectory(prefix="collie-hl-")
        for scope_name, raw in definitions.items():
            path = os.path.join(self._staging.name, f"{scope_name}.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump(raw, f)
        log.debug("staged %d grammar(s) in %s", len(definitions), self._staging.name)
        self._grammars = Grammars(self._staging.name)

    def load_grammar(self, scope_name: str) -> Grammar:
        compiler = self._grammars.compiler_for_scope(scope_name)
        return Grammar(scope_name, compiler, compiler.root_state)

    def tokenize_line(
        self,
        grammar: Grammar,
        line: str,
        state: RuleStack,
        first_line: bool = False,
    ) -> LineTokens:
        state, regions = highlight_line(grammar.handle, state, f"{line}\n", first_line)
        spans = ((r.start, r.end, r.scope) for r in regions)
        return clip_tokens(spans, len(line)), state

    def close(self) -> None:
        self._staging.cleanup()
