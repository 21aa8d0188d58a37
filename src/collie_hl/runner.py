from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from .config import HarnessConfig, load_config
from .engine import BabiEngine, EngineFactory, TokenizerEngine
from .evaluator import evaluate
from .fixture import DEFAULT_SYNTAX, FixtureSyntax, parse_fixture
from .grammar import GrammarLoader
from .report import EXIT_FAILED, EXIT_GRAMMAR_ERROR, EXIT_OK, emit, exit_status, render_report
from .scope_highlight import render_tokenized
from .session import LineTokenizer
from .types import (
    AssertionLine,
    CodeLine,
    ConfigError,
    DirectiveLine,
    FixtureDirNotFound,
    FixtureLine,
    FixtureReadError,
    FixtureResult,
    Grammar,
    GrammarError,
    MalformedAssertion,
    Outcome,
    OutcomeKind,
    RunSummary,
    TokenizationError,
    TokenizedLine,
)
from .utils import configure_logging, get_logger

log = get_logger(__name__)


def discover_fixtures(fixture_dir: Path, pattern: str = "*.test.collie") -> List[Path]:
    if not fixture_dir.is_dir():
        raise FixtureDirNotFound(fixture_dir)
    files = sorted(p for p in fixture_dir.glob(pattern) if p.is_file())
    if not files:
        log.warning("no fixtures matching %s in %s", pattern, fixture_dir)
    log.debug("discovered %d fixture(s) in %s", len(files), fixture_dir)
    return files


def read_fixture(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise FixtureReadError(path, exc.strerror or str(exc)) from exc
    except UnicodeDecodeError as exc:
        raise FixtureReadError(path, f"not UTF-8 ({exc.reason})") from exc


def _code_lines(lines: Sequence[FixtureLine]) -> Iterator[CodeLine]:
    return (line for line in lines if isinstance(line, CodeLine))


def check_lines(
    lines: Sequence[FixtureLine],
    tokenizer: LineTokenizer,
    strict: bool = False,
) -> tuple[tuple[Outcome, ...], Optional[str]]:
    """Tokenize the code lines in order and evaluate each assertion.

    Returns the outcomes and, if tokenization broke down, the file-level
    error. A tokenization failure ends the file: the assertions on the
    failing line are recorded as failed and the rest of the file is skipped.
    """
    steps = tokenizer.fold(_code_lines(lines))
    outcomes: List[Outcome] = []
    current: Optional[TokenizedLine] = None
    failure: Optional[TokenizationError] = None
    failed_line: Optional[CodeLine] = None

    for line in lines:
        match line:
            case DirectiveLine(scope_name=scope) if scope and scope != tokenizer.grammar.scope_name:
                log.warning(
                    "%s:%d: header names %s but checking against %s",
                    tokenizer.source, line.lineno, scope, tokenizer.grammar.scope_name,
                )
            case DirectiveLine():
                pass
            case CodeLine():
                if failure is not None:
                    break
                try:
                    current = next(steps)
                except TokenizationError as exc:
                    log.debug("%s", exc)
                    failure = exc
                    failed_line = line
            case AssertionLine(assertion=assertion):
                if failure is not None:
                    outcomes.append(
                        Outcome(
                            OutcomeKind.TOKENIZE_FAILED,
                            lineno=line.lineno,
                            text=line.text,
                            assertion=assertion,
                            code_line=failed_line,
                            detail=failure.message,
                        )
                    )
                else:
                    outcomes.append(evaluate(assertion, current))
            case MalformedAssertion():
                if strict and failure is None:
                    outcomes.append(
                        Outcome(
                            OutcomeKind.MALFORMED,
                            lineno=line.lineno,
                            text=line.text,
                            detail=line.reason,
                        )
                    )
                else:
                    log.debug(
                        "%s:%d: skipping non-assertion line (%s)",
                        tokenizer.source, line.lineno, line.reason,
                    )

    return tuple(outcomes), (str(failure) if failure is not None else None)


def check_file(
    path: Path,
    engine: TokenizerEngine,
    grammar: Grammar,
    syntax: FixtureSyntax = DEFAULT_SYNTAX,
    strict: bool = False,
) -> FixtureResult:
    """Check one fixture. Problems with the file are recorded, never raised."""
    try:
        text = read_fixture(path)
    except FixtureReadError as exc:
        log.debug("%s", exc)
        return FixtureResult(path, error=str(exc))

    lines = list(parse_fixture(text, syntax))
    tokenizer = LineTokenizer(engine, grammar, source=path.name)
    outcomes, error = check_lines(lines, tokenizer, strict=strict)
    result = FixtureResult(path, outcomes, error)
    log.debug("%s: %d passed, %d failed", path.name, result.passed, result.failed)
    return result


def run(config: HarnessConfig, engine_factory: EngineFactory = BabiEngine) -> RunSummary:
    """Load the grammar once, then check every fixture in discovery order.

    Raises GrammarError (fatal) and FixtureDirNotFound; everything else ends
    up in the returned summary.
    """
    with GrammarLoader(config.grammar_path, engine_factory) as loader:
        grammar = loader.load(config.scope_name)
        files = discover_fixtures(config.fixture_dir, config.fixture_pattern)
        results = [
            check_file(path, loader.engine, grammar, strict=config.strict_assertions)
            for path in files
        ]
    return RunSummary.from_results(results)


def show(config: HarnessConfig, path: Path, color: bool = False) -> int:
    """Print a fixture's code lines coloured by scope, with their tokens."""
    with GrammarLoader(config.grammar_path) as loader:
        grammar = loader.load(config.scope_name)
        lines = list(parse_fixture(read_fixture(path)))
        tokenizer = LineTokenizer(loader.engine, grammar, source=path.name)
        steps: List[TokenizedLine] = []
        try:
            for step in tokenizer.fold(_code_lines(lines)):
                steps.append(step)
        except TokenizationError as exc:
            emit(render_tokenized(steps), color=color)
            print(exc, file=sys.stderr)
            return EXIT_FAILED

    emit(render_tokenized(steps), color=color)
    return EXIT_OK


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="collie-hl",
        description="Check TextMate scopes against caret assertions in syntax fixtures.",
    )
    ap.add_argument("fixture_dir", nargs="?", help="Directory of fixture files")
    ap.add_argument("-g", "--grammar", help="Grammar file, or directory of grammar files")
    ap.add_argument("-s", "--scope", help="Root scope name of the grammar under test")
    ap.add_argument("-p", "--pattern", help="Glob selecting fixture files")
    ap.add_argument(
        "-c", "--config", help="Config file (default: ./collie-hl.toml if present)"
    )
    ap.add_argument(
        "--strict", action="store_true", help="Report malformed assertion lines as failures"
    )
    ap.add_argument(
        "--color",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Colour the report",
    )
    ap.add_argument(
        "--show", metavar="FILE", help="Print the tokens of one fixture instead of checking"
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = load_config(Path(args.config) if args.config else None).merged(
            fixture_dir=args.fixture_dir,
            grammar_path=args.grammar,
            scope_name=args.scope,
            fixture_pattern=args.pattern,
            strict_assertions=True if args.strict else None,
            color=args.color,
        )
    except ConfigError as exc:
        print(f"collie-hl: {exc}", file=sys.stderr)
        return EXIT_FAILED

    color = config.color if config.color is not None else sys.stdout.isatty()

    try:
        if args.show:
            return show(config, Path(args.show), color=color)
        summary = run(config)
    except GrammarError as exc:
        print(f"Failed to load grammar: {exc}", file=sys.stderr)
        return EXIT_GRAMMAR_ERROR
    except (FixtureDirNotFound, FixtureReadError) as exc:
        print(f"collie-hl: {exc}", file=sys.stderr)
        return EXIT_FAILED

    emit(render_report(summary), color=color)
    return exit_status(summary)


if __name__ == "__main__":
    sys.exit(main())
