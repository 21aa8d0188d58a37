"""
Line Tokenizer Session

Tokenizes the code lines of one fixture file in order. Each line is
tokenized from the rule stack the previous line left behind, so the same
text can land in different scopes depending on where it is entered from
(top level vs. inside a block comment). A session belongs to exactly one
file and starts from the grammar's initial state.
"""

from __future__ import annotations

from itertools import accumulate
from typing import Iterable, Iterator

from .engine import TokenizerEngine
from .types import CodeLine, Grammar, RuleStack, TokenizationError, TokenizedLine


class LineTokenizer:
    def __init__(self, engine: TokenizerEngine, grammar: Grammar, source: str = "<fixture>"):
        self.engine = engine
        self.grammar = grammar
        self.source = source

    def tokenize_line(
        self,
        line: CodeLine,
        prior_state: RuleStack,
        first_line: bool = False,
    ) -> TokenizedLine:
        try:
            tokens, state = self.engine.tokenize_line(
                self.grammar, line.text, prior_state, first_line=first_line
            )
        except TokenizationError:
            raise
        except Exception as exc:
            message = f"{type(exc).__name__}: {exc}"
            raise TokenizationError(self.source, line.lineno, message) from exc
        return TokenizedLine(line, tuple(tokens), state)

    def _step(self, prev: TokenizedLine, line: CodeLine) -> TokenizedLine:
        return self.tokenize_line(line, prev.state, first_line=prev.line is None)

    def fold(self, lines: Iterable[CodeLine]) -> Iterator[TokenizedLine]:
        """Left fold over `lines`, yielding one TokenizedLine per code line.

        Lazy: line n+1 is not tokenized until line n's result was consumed.
        A TokenizationError surfaces when the failing line is reached.
        """
        seed = TokenizedLine(None, (), self.grammar.initial_state)
        steps = accumulate(lines, self._step, initial=seed)
        next(steps)
        return steps
