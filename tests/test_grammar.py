from __future__ import annotations

import json
import plistlib
from pathlib import Path

import pytest

from collie_hl.grammar import GrammarLoader, read_definition
from collie_hl.session import LineTokenizer
from collie_hl.types import CodeLine, GrammarNotFound, GrammarParseError
from tests.support.harness import GRAMMAR_PATH, SCOPE, ScriptedEngine, scripted_factory

KEYWORD_GRAMMAR = {
    "scopeName": "source.mini",
    "patterns": [{"name": "keyword.mini", "match": "\\bdo\\b"}],
}

HOST_GRAMMAR = {
    "scopeName": "source.host",
    "patterns": [
        {"name": "constant.numeric.host", "match": "[0-9]+"},
        {"include": "source.mini"},
    ],
}


def first_scopes(loader: GrammarLoader, scope: str, text: str) -> list[str]:
    grammar = loader.load(scope)
    session = LineTokenizer(loader.engine, grammar)
    step = session.tokenize_line(CodeLine(1, text), grammar.initial_state, first_line=True)
    return [tok.innermost for tok in step.tokens]


def test_loads_shipped_grammar(collie_loader) -> None:
    grammar = collie_loader.load(SCOPE)

    assert grammar.scope_name == SCOPE
    assert grammar.initial_state is not None


def test_grammar_is_cached(collie_loader) -> None:
    assert collie_loader.load(SCOPE) is collie_loader.load(SCOPE)


def test_definitions_are_keyed_by_scope_name() -> None:
    loader = GrammarLoader(GRAMMAR_PATH)

    assert list(loader.definitions()) == [SCOPE]
    assert loader.definitions()[SCOPE]["name"] == "Collie"


def test_directory_registers_every_grammar(tmp_path: Path) -> None:
    (tmp_path / "mini.tmLanguage.json").write_text(json.dumps(KEYWORD_GRAMMAR), encoding="utf-8")
    (tmp_path / "host.tmLanguage.json").write_text(json.dumps(HOST_GRAMMAR), encoding="utf-8")
    (tmp_path / "notes.txt").write_text("not a grammar", encoding="utf-8")

    with GrammarLoader(tmp_path) as loader:
        assert sorted(loader.definitions()) == ["source.host", "source.mini"]
        assert "keyword.mini" in first_scopes(loader, "source.host", "do 42")
        assert "constant.numeric.host" in first_scopes(loader, "source.host", "do 42")


def test_plist_grammar(tmp_path: Path) -> None:
    path = tmp_path / "mini.tmLanguage"
    path.write_bytes(plistlib.dumps(KEYWORD_GRAMMAR))

    with GrammarLoader(path) as loader:
        assert first_scopes(loader, "source.mini", "do it")[0] == "keyword.mini"


def test_missing_path_is_not_found(tmp_path: Path) -> None:
    loader = GrammarLoader(tmp_path / "nope.tmLanguage.json")

    with pytest.raises(GrammarNotFound):
        loader.load(SCOPE)


def test_unknown_scope_is_not_found() -> None:
    with GrammarLoader(GRAMMAR_PATH) as loader:
        with pytest.raises(GrammarNotFound) as exc_info:
            loader.load("source.elsewhere")

    assert exc_info.value.scope_name == "source.elsewhere"
    assert "source.elsewhere" in str(exc_info.value)


@pytest.mark.parametrize(
    "name, payload, needle",
    [
        pytest.param(
            "broken.tmLanguage.json",
            b'{"scopeName": ',
            "broken.tmLanguage.json",
            id="truncated-json",
        ),
        pytest.param("list.tmLanguage.json", b"[1, 2]", "not an object", id="not-an-object"),
        pytest.param("anon.tmLanguage.json", b'{"patterns": []}', "scopeName", id="no-scope-name"),
        pytest.param(
            "latin.tmLanguage.json",
            b'{"scopeName": "\xff"}',
            "latin.tmLanguage.json",
            id="not-utf8",
        ),
        pytest.param(
            "broken.tmLanguage",
            b"<plist><dict><key>",
            "broken.tmLanguage",
            id="truncated-plist",
        ),
    ],
)
def test_unparseable_definition(tmp_path: Path, name: str, payload: bytes, needle: str) -> None:
    path = tmp_path / name
    path.write_bytes(payload)

    with pytest.raises(GrammarParseError) as exc_info:
        read_definition(path)

    assert needle in str(exc_info.value)


class BrokenEngine(ScriptedEngine):
    def load_grammar(self, scope_name: str):
        raise ValueError("bad regex")


def test_engine_compile_failure_is_a_parse_error() -> None:
    with GrammarLoader(GRAMMAR_PATH, engine_factory=BrokenEngine) as loader:
        with pytest.raises(GrammarParseError) as exc_info:
            loader.load(SCOPE)

    assert "ValueError: bad regex" in str(exc_info.value)


def test_close_releases_engine() -> None:
    factory = scripted_factory()
    loader = GrammarLoader(GRAMMAR_PATH, engine_factory=factory)
    loader.load(SCOPE)
    engine = factory.built["engine"]

    loader.close()

    assert engine.closed
