from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

BASE_DIR = Path(__file__).resolve().parent.parent.parent
SRC_DIR = (BASE_DIR / "src").resolve()

if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))
if str(SRC_DIR) not in sys.path:
    sys.path.append(str(SRC_DIR))

from collie_hl.config import HarnessConfig
from collie_hl.fixture import parse_fixture
from collie_hl.runner import check_lines
from collie_hl.session import LineTokenizer
from collie_hl.types import (
    AssertionLine,
    FixtureResult,
    Grammar,
    Outcome,
    OutcomeKind,
    RuleStack,
    Token,
)

GRAMMAR_PATH = BASE_DIR / "highlight" / "syntaxes" / "collie.tmLanguage.json"
SHIPPED_FIXTURES = BASE_DIR / "highlight" / "tests" / "syntax"
SCOPE = "source.collie"


@dataclass
class ScriptedEngine:
    """TokenizerEngine double with an observable rule stack.

    The state is the number of lines tokenized so far in the session, and
    every line becomes a single token scoped ``line.<state>``. A line
    containing `fail_on` makes the engine raise.
    """

    definitions: Mapping[str, Any] = field(default_factory=dict)
    fail_on: Optional[str] = "boom"
    calls: List[Tuple[str, RuleStack, bool]] = field(default_factory=list)
    closed: bool = False

    def load_grammar(self, scope_name: str) -> Grammar:
        return Grammar(scope_name, handle=None, initial_state=0)

    def tokenize_line(
        self,
        grammar: Grammar,
        line: str,
        state: RuleStack,
        first_line: bool = False,
    ) -> Tuple[Tuple[Token, ...], RuleStack]:
        self.calls.append((line, state, first_line))
        if self.fail_on and self.fail_on in line:
            raise RuntimeError("engine choked")
        if not line:
            return (), state + 1
        return (Token(0, len(line), (grammar.scope_name, f"line.{state}")),), state + 1

    def close(self) -> None:
        self.closed = True


def scripted_factory(fail_on: Optional[str] = "boom"):
    """Engine factory for GrammarLoader that remembers the engine it built."""
    built: Dict[str, ScriptedEngine] = {}

    def factory(definitions: Mapping[str, Any]) -> ScriptedEngine:
        built["engine"] = ScriptedEngine(definitions, fail_on=fail_on)
        return built["engine"]

    factory.built = built  # type: ignore[attr-defined]
    return factory


def write_fixtures(root: Path, files: Mapping[str, str]) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    for name, text in files.items():
        (root / name).write_text(text, encoding="utf-8")
    return root


def make_config(tmp_path: Path, files: Mapping[str, str], **overrides: Any) -> HarnessConfig:
    fixture_dir = write_fixtures(tmp_path / "syntax", files)
    return HarnessConfig(grammar_path=GRAMMAR_PATH, fixture_dir=fixture_dir).merged(**overrides)


def check_text(
    text: str,
    engine: Any,
    grammar: Grammar,
    strict: bool = False,
    name: str = "inline.test.collie",
) -> FixtureResult:
    """Run one fixture held in memory through the harness."""
    lines = list(parse_fixture(text))
    outcomes, error = check_lines(lines, LineTokenizer(engine, grammar, source=name), strict=strict)
    return FixtureResult(Path(name), outcomes, error)


def count_assertions(path: Path) -> int:
    text = path.read_text(encoding="utf-8")
    return sum(1 for line in parse_fixture(text) if isinstance(line, AssertionLine))


def kinds(outcomes: Tuple[Outcome, ...]) -> List[OutcomeKind]:
    return [o.kind for o in outcomes]
