"""prompt_toolkit rendering of tokenized fixture lines, coloured by scope."""

from __future__ import annotations

from typing import Iterable, Sequence

from prompt_toolkit.formatted_text import StyleAndTextTuples

from .types import Token, TokenizedLine

# First segment of the innermost scope -> prompt_toolkit style string.
GROUP_STYLE = {
    "keyword": "bold ansicyan",
    "storage": "bold ansiblue",
    "constant": "ansimagenta",
    "string": "ansigreen",
    "comment": "italic ansigray",
    "entity": "bold ansiyellow",
    "support": "ansiyellow",
    "variable": "",
    "punctuation": "",
    "invalid": "bold ansired",
}


def scope_style(scope: str) -> str:
    return GROUP_STYLE.get(scope.split(".", 1)[0], "")


def styled_fragments(text: str, tokens: Sequence[Token]) -> StyleAndTextTuples:
    """Split `text` into styled fragments following `tokens`.

    Gaps the tokens do not cover stay unstyled.
    """
    if not text:
        return [("", "")]

    result: StyleAndTextTuples = []
    pos = 0

    for tok in tokens:
        if tok.start_index > pos:
            result.append(("", text[pos:tok.start_index]))
        start = max(tok.start_index, pos)
        if tok.end_index > start:
            result.append((scope_style(tok.innermost), text[start:tok.end_index]))
            pos = tok.end_index

    # Trailing unstyled text.
    if pos < len(text):
        result.append(("", text[pos:]))

    return result


def render_tokenized(lines: Iterable[TokenizedLine]) -> StyleAndTextTuples:
    """Each code line coloured, followed by one row per token."""
    frags: StyleAndTextTuples = []
    for step in lines:
        if step.line is None:
            continue
        text = step.line.text
        frags.append(("bold", f"{step.line.lineno:>4} | "))
        frags.extend(styled_fragments(text, step.tokens))
        frags.append(("", "\n"))
        for tok in step.tokens:
            frags.append(
                (
                    "ansigray",
                    f"       {tok.start_index}-{tok.end_index} "
                    f"{tok.innermost} {tok.text(text)!r}\n",
                )
            )
    return frags
