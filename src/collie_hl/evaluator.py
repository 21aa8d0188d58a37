"""Assertion Evaluator: check one caret assertion against the tokens of its code line."""

from __future__ import annotations

from typing import Optional, Sequence

from .types import Assertion, Outcome, OutcomeKind, Token, TokenizedLine


def find_token(tokens: Sequence[Token], column: int) -> Optional[Token]:
    for tok in tokens:
        if tok.start_index <= column < tok.end_index:
            return tok
    return None


def evaluate(assertion: Assertion, tokenized: Optional[TokenizedLine]) -> Outcome:
    """Compare the innermost scope at the assertion's first caret.

    Only `start_column` selects the token; the rest of the caret run is kept
    for the report but not checked against token boundaries.
    """
    base = dict(lineno=assertion.lineno, text=assertion.text, assertion=assertion)

    if tokenized is None or tokenized.line is None:
        return Outcome(
            OutcomeKind.NO_CODE_LINE,
            detail="assertion has no code line above it",
            **base,
        )

    code_line = tokenized.line
    tok = find_token(tokenized.tokens, assertion.start_column)
    if tok is None:
        return Outcome(OutcomeKind.NO_TOKEN, code_line=code_line, **base)

    actual = tok.innermost
    kind = OutcomeKind.PASS if actual == assertion.expected_scope else OutcomeKind.SCOPE_MISMATCH
    return Outcome(kind, code_line=code_line, token=tok, actual_scope=actual, **base)
