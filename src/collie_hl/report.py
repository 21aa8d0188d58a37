"""
Reporter

Builds the run report as prompt_toolkit formatted text. The plain-text
report is the same fragments with the styles dropped, so what a terminal
shows in colour and what a log file captures never diverge.
"""

from __future__ import annotations

import sys
from typing import Optional, TextIO

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import FormattedText, StyleAndTextTuples, fragment_list_to_text

from .types import FixtureResult, Outcome, OutcomeKind, RunSummary

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_GRAMMAR_ERROR = 2

STYLE = {
    "file": "bold",
    "fail": "bold ansired",
    "pass": "ansigreen",
    "expected": "ansigreen",
    "actual": "ansired",
    "note": "ansiyellow",
    "plain": "",
}


def _failure_head(out: Outcome, frags: StyleAndTextTuples) -> None:
    frags.append((STYLE["fail"], f"\nFailed assertion at line {out.lineno}:\n"))


def _code_and_assertion(out: Outcome, frags: StyleAndTextTuples) -> None:
    code = out.code_line.text if out.code_line is not None else ""
    frags.append((STYLE["plain"], f'Code line: "{code}"\n'))
    frags.append((STYLE["plain"], f'Assertion: "{out.text}"\n'))


def render_outcome(out: Outcome) -> StyleAndTextTuples:
    frags: StyleAndTextTuples = []
    a = out.assertion

    match out.kind:
        case OutcomeKind.PASS:
            pass
        case OutcomeKind.SCOPE_MISMATCH:
            tok = out.token
            code = out.code_line.text if out.code_line is not None else ""
            _failure_head(out, frags)
            _code_and_assertion(out, frags)
            frags.append((STYLE["plain"], "Expected scope: "))
            frags.append((STYLE["expected"], f"{a.expected_scope}\n"))
            frags.append((STYLE["plain"], "Actual scope: "))
            frags.append((STYLE["actual"], f"{out.actual_scope}\n"))
            frags.append((STYLE["plain"], f'Text: "{tok.text(code)}"\n'))
            frags.append(
                (
                    STYLE["plain"],
                    f"Position: {a.start_column}-{a.end_column} "
                    f"(token: {tok.start_index}-{tok.end_index})\n",
                )
            )
        case OutcomeKind.NO_TOKEN:
            _failure_head(out, frags)
            frags.append(
                (STYLE["note"], f"No token found at position {a.start_column}-{a.end_column}\n")
            )
            _code_and_assertion(out, frags)
        case OutcomeKind.NO_CODE_LINE:
            _failure_head(out, frags)
            frags.append((STYLE["note"], "No code line precedes this assertion\n"))
            frags.append((STYLE["plain"], f'Assertion: "{out.text}"\n'))
        case OutcomeKind.TOKENIZE_FAILED:
            _failure_head(out, frags)
            frags.append((STYLE["note"], f"Code line could not be tokenized: {out.detail}\n"))
            _code_and_assertion(out, frags)
        case OutcomeKind.MALFORMED:
            frags.append(
                (STYLE["fail"], f"\nMalformed assertion at line {out.lineno}: {out.detail}\n")
            )
            frags.append((STYLE["plain"], f'Assertion: "{out.text}"\n'))
        case _:
            raise AssertionError(f"unknown outcome kind {out.kind!r}")

    return frags


def render_file(result: FixtureResult) -> StyleAndTextTuples:
    """Header once, then every failure in encounter order; nothing if the file passed."""
    if result.ok:
        return []

    frags: StyleAndTextTuples = [(STYLE["file"], f"\nFailures in {result.name}:\n")]
    for out in result.failures:
        frags.extend(render_outcome(out))
    if result.error is not None:
        frags.append((STYLE["fail"], f"\nFixture error: {result.error}\n"))
    return frags


def render_summary(summary: RunSummary) -> StyleAndTextTuples:
    frags: StyleAndTextTuples = [(STYLE["file"], "\nTest Summary:\n")]

    if summary.failed > 0:
        frags.append((STYLE["fail"], f"  ✗ {summary.failed} tests failed\n"))
        frags.append((STYLE["pass"], f"  ✓ {summary.passed} tests passed\n"))
    else:
        frags.append((STYLE["pass"], f"  ✓ All {summary.passed} tests passed\n"))
    frags.append((STYLE["plain"], f"  Total: {summary.total} tests\n"))

    broken = len(summary.file_errors)
    if broken:
        frags.append((STYLE["fail"], f"  ✗ {broken} fixture file(s) could not be checked\n"))
    return frags


def render_report(summary: RunSummary) -> StyleAndTextTuples:
    frags: StyleAndTextTuples = []
    for result in summary.files:
        frags.extend(render_file(result))
    frags.extend(render_summary(summary))
    return frags


def report_text(summary: RunSummary) -> str:
    return fragment_list_to_text(render_report(summary))


def emit(frags: StyleAndTextTuples, color: bool = False, file: Optional[TextIO] = None) -> None:
    out = file if file is not None else sys.stdout
    if color:
        print_formatted_text(FormattedText(frags), end="", file=out)
    else:
        out.write(fragment_list_to_text(frags))
        out.flush()


def exit_status(summary: RunSummary) -> int:
    return EXIT_OK if summary.success else EXIT_FAILED
