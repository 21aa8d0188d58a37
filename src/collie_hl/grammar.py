"""
Grammar Loader

Reads TextMate grammar definitions from a file or a directory, registers
them by scope name and hands compiled grammars out of a per-run cache.
Every failure here is fatal: without a grammar there is nothing to check.
"""

from __future__ import annotations

import json
import plistlib
from xml.parsers.expat import ExpatError
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .engine import BabiEngine, EngineFactory, TokenizerEngine
from .types import Grammar, GrammarNotFound, GrammarParseError
from .utils import get_logger

log = get_logger(__name__)

JSON_SUFFIXES = (".json",)
PLIST_SUFFIXES = (".tmlanguage", ".plist")


def is_grammar_file(path: Path) -> bool:
    name = path.name.lower()
    return name.endswith(JSON_SUFFIXES) or name.endswith(PLIST_SUFFIXES)


def read_definition(path: Path) -> dict[str, Any]:
    """Parse one grammar file (JSON or plist XML) into its raw rule table."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise GrammarParseError(path, exc.strerror or str(exc)) from exc

    try:
        if path.name.lower().endswith(PLIST_SUFFIXES):
            raw = plistlib.loads(data)
        else:
            raw = json.loads(data.decode("utf-8"))
    except (ValueError, ExpatError) as exc:
        raise GrammarParseError(path, str(exc)) from exc

    if not isinstance(raw, dict):
        raise GrammarParseError(path, "top level is not an object")

    scope_name = raw.get("scopeName")
    if not isinstance(scope_name, str) or not scope_name:
        raise GrammarParseError(path, "missing 'scopeName'")

    return raw


class GrammarLoader:
    """Resolve scope names to compiled grammars.

    `grammar_path` is either one grammar file or a directory whose grammar
    files are all registered, so a grammar may include another by scope.
    """

    def __init__(self, grammar_path: Path, engine_factory: EngineFactory = BabiEngine):
        self.grammar_path = Path(grammar_path)
        self._engine_factory = engine_factory
        self._definitions: Optional[Dict[str, dict[str, Any]]] = None
        self._engine: Optional[TokenizerEngine] = None
        self._cache: Dict[str, Grammar] = {}

    def __enter__(self) -> "GrammarLoader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def definitions(self) -> Mapping[str, dict[str, Any]]:
        if self._definitions is None:
            self._definitions = self._read_definitions()
        return self._definitions

    def _read_definitions(self) -> Dict[str, dict[str, Any]]:
        path = self.grammar_path
        if path.is_dir():
            files = sorted(p for p in path.iterdir() if p.is_file() and is_grammar_file(p))
        elif path.is_file():
            files = [path]
        else:
            raise GrammarNotFound(None, path)

        registry: Dict[str, dict[str, Any]] = {}
        for file in files:
            raw = read_definition(file)
            scope_name = raw["scopeName"]
            if scope_name in registry:
                log.warning(
                    "%s redefines grammar %s; keeping the first definition", file, scope_name
                )
                continue
            log.debug("registered grammar %s from %s", scope_name, file)
            registry[scope_name] = raw
        return registry

    @property
    def engine(self) -> TokenizerEngine:
        if self._engine is None:
            self._engine = self._engine_factory(self.definitions())
        return self._engine

    def load(self, scope_name: str) -> Grammar:
        try:
            return self._cache[scope_name]
        except KeyError:
            pass

        if scope_name not in self.definitions():
            raise GrammarNotFound(scope_name, self.grammar_path)

        try:
            grammar = self.engine.load_grammar(scope_name)
        except Exception as exc:
            raise GrammarParseError(self.grammar_path, f"{type(exc).__name__}: {exc}") from exc

        log.debug("compiled grammar %s", scope_name)
        self._cache[scope_name] = grammar
        return grammar

    def close(self) -> None:
        if self._engine is not None:
            self._engine.close()
            self._engine = None
        self._cache.clear()
