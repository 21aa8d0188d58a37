from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, Iterator, List

import pytest

BASE_DIR = Path(__file__).resolve().parent.parent
SRC_DIR = (BASE_DIR / "src").resolve()

if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))
if str(SRC_DIR) not in sys.path:
    sys.path.append(str(SRC_DIR))

from collie_hl.grammar import GrammarLoader
from collie_hl.types import Grammar
from tests.support.harness import GRAMMAR_PATH, SCOPE


def pytest_collection_modifyitems(
    session: pytest.Session,
    config: pytest.Config,
    items: List[pytest.Item],
) -> None:
    """Fail fast if pytest ever generates duplicate node IDs."""
    del session
    del config

    seen: Dict[str, int] = {}
    duplicates: List[str] = []
    for item in items:
        nodeid = item.nodeid
        if nodeid in seen:
            duplicates.append(nodeid)
            continue
        seen[nodeid] = 1

    if not duplicates:
        return

    lines = "\n".join(f"- {nodeid}" for nodeid in sorted(set(duplicates)))
    raise pytest.UsageError(
        "Duplicate pytest nodeids detected during collection:\n" f"{lines}"
    )


@pytest.fixture(scope="session")
def collie_loader() -> Iterator[GrammarLoader]:
    """The shipped Collie grammar on the real engine, compiled once per session."""
    with GrammarLoader(GRAMMAR_PATH) as loader:
        yield loader


@pytest.fixture(scope="session")
def collie_grammar(collie_loader: GrammarLoader) -> Grammar:
    return collie_loader.load(SCOPE)
