"""
Shared types for the Collie highlighting harness.

Tokens, classified fixture lines, assertion outcomes and the per-file and
per-run results all live here so the loader, session, parser, evaluator and
reporter can share them without importing each other.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import Any, Iterable, Optional, Tuple, Union

# Engine-specific rule stack. Only the engine knows what is inside.
RuleStack = Any


@dataclass(frozen=True)
class Token:
    """One span of a tokenized line with its scope stack (outermost first)."""

    start_index: int
    end_index: int
    scopes: Tuple[str, ...]

    @property
    def innermost(self) -> str:
        return self.scopes[-1] if self.scopes else ""

    def text(self, line: str) -> str:
        return line[self.start_index:self.end_index]


@dataclass(frozen=True)
class Grammar:
    """A compiled grammar as handed out by the loader.

    `handle` is whatever the engine compiled the definition into and
    `initial_state` is the rule stack every fixture file starts from.
    """

    scope_name: str
    handle: Any = field(repr=False, compare=False)
    initial_state: RuleStack = field(repr=False, compare=False)


# ============================================================================
# Fixture lines
# ============================================================================

@dataclass(frozen=True)
class Assertion:
    start_column: int
    end_column: int
    expected_scope: str
    lineno: int
    text: str

    @property
    def caret_count(self) -> int:
        return self.end_column - self.start_column


@dataclass(frozen=True)
class DirectiveLine:
    lineno: int
    text: str
    scope_name: Optional[str] = None


@dataclass(frozen=True)
class CodeLine:
    lineno: int
    text: str


@dataclass(frozen=True)
class AssertionLine:
    lineno: int
    text: str
    assertion: Assertion


@dataclass(frozen=True)
class MalformedAssertion:
    """A line carrying the assertion marker that is not a caret assertion."""

    lineno: int
    text: str
    reason: str


FixtureLine = Union[DirectiveLine, CodeLine, AssertionLine, MalformedAssertion]


@dataclass(frozen=True)
class TokenizedLine:
    """Result of one fold step: the line, its tokens and the state after it.

    The seed step of a fold has no line and carries the grammar's initial
    state.
    """

    line: Optional[CodeLine]
    tokens: Tuple[Token, ...]
    state: RuleStack = field(repr=False, compare=False)


# ============================================================================
# Outcomes and results
# ============================================================================

class OutcomeKind(Enum):
    PASS = auto()
    SCOPE_MISMATCH = auto()
    NO_TOKEN = auto()
    NO_CODE_LINE = auto()
    TOKENIZE_FAILED = auto()
    MALFORMED = auto()


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    lineno: int
    text: str
    assertion: Optional[Assertion] = None
    code_line: Optional[CodeLine] = None
    token: Optional[Token] = None
    actual_scope: Optional[str] = None
    detail: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.kind is OutcomeKind.PASS


@dataclass(frozen=True)
class FixtureResult:
    path: Path
    outcomes: Tuple[Outcome, ...] = ()
    error: Optional[str] = None

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def passed(self) -> int:
        return sum(1 for o in self.outcomes if o.passed)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.passed)

    @property
    def failures(self) -> Tuple[Outcome, ...]:
        return tuple(o for o in self.outcomes if not o.passed)

    @property
    def ok(self) -> bool:
        return self.error is None and self.failed == 0


@dataclass(frozen=True)
class RunSummary:
    files: Tuple[FixtureResult, ...] = ()

    @classmethod
    def from_results(cls, results: Iterable[FixtureResult]) -> "RunSummary":
        return cls(tuple(results))

    @property
    def passed(self) -> int:
        return sum(f.passed for f in self.files)

    @property
    def failed(self) -> int:
        return sum(f.failed for f in self.files)

    @property
    def total(self) -> int:
        return self.passed + self.failed

    @property
    def file_errors(self) -> Tuple[FixtureResult, ...]:
        return tuple(f for f in self.files if f.error is not None)

    @property
    def success(self) -> bool:
        return self.failed == 0 and not self.file_errors


# ---------- Exceptions ----------

class HarnessError(Exception):
    pass


class ConfigError(HarnessError):
    pass


class GrammarError(HarnessError):
    pass


class GrammarNotFound(GrammarError):
    def __init__(self, scope_name: Optional[str], location: object):
        if scope_name is None:
            super().__init__(f"No grammar definitions at {location}")
        else:
            super().__init__(f"Grammar '{scope_name}' not found in {location}")
        self.scope_name = scope_name
        self.location = location


class GrammarParseError(GrammarError):
    def __init__(self, location: object, message: str):
        super().__init__(f"Cannot parse grammar {location}: {message}")
        self.location = location
        self.message = message


class TokenizationError(HarnessError):
    """Engine failure on one line of one fixture file."""

    def __init__(self, source: str, lineno: int, message: str):
        self.source = source
        self.lineno = lineno
        self.message = message
        super().__init__(f"{source}:{lineno}: tokenization failed: {message}")


class FixtureReadError(HarnessError):
    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Cannot read fixture {path}: {message}")


class FixtureDirNotFound(HarnessError):
    def __init__(self, path: Path):
        super().__init__(f"Fixture directory not found: {path}")
        self.path = path
