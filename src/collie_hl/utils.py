from __future__ import annotations

import logging

_ROOT = "collie_hl"


def get_logger(name: str) -> logging.Logger:
    """Return a stdlib logger namespaced under ``collie_hl``.

    >>> get_logger("runner").name
    'collie_hl.runner'
    """
    if not (name == _ROOT or name.startswith(_ROOT + ".")):
        name = f"{_ROOT}.{name}"
    return logging.getLogger(name)


def configure_logging(verbose: bool = False) -> None:
    """Send harness logs to stderr; stdout is reserved for the report."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
