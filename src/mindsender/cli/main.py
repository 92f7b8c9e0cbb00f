# src/mindsender/cli/main.py

"""
Console entrypoint.

Initializes logging, builds AppState, then runs the console REPL in the
main thread until /exit, EOF or Ctrl+C.
"""

from __future__ import annotations

import logging

from ..cli.bootstrap import create_initial_state, load_dialog_histories, save_dialog_histories
from ..config import ConfigError, get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import console_level_from_name, setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        save_dialog_histories(state)
    except Exception:
        logger.exception("Failed to save assistant histories.")

    try:
        if state.unsubscribe_feed is not None:
            state.unsubscribe_feed()
    except Exception:
        logger.debug("Feed unsubscribe failed.", exc_info=True)


def main() -> int:
    settings = get_settings()

    console_level = console_level_from_name(getattr(settings, "log_level", "INFO"))
    # Keep the REPL quiet: only warnings on stderr unless DEBUG was asked for.
    if console_level > logging.DEBUG:
        console_level = max(console_level, logging.WARNING)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    try:
        state = create_initial_state(settings=settings)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 2

    if settings.save_history:
        state.dialog_histories = load_dialog_histories(state)

    try:
        run_console_loop(state)
    finally:
        _shutdown(state)
        logger.info("Bye.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
