# src/mindsender/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..llm.client import friendly_llm_error_message

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except Exception:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def handle_line(state: AppState, line: str, emit=None) -> str:
    """
    One console turn: slash commands go to the registry, free text to the assistant.
    Always returns something printable.
    """
    try:
        with state.lock:
            cmd_response = command_registry.handle(state, line, emit=emit)
    except Exception:
        logger.exception("Command handler crashed.")
        return "Internal error while handling a command."

    if cmd_response is not None:
        return cmd_response

    if state.current_user is None:
        return "Sign in first: /login <email> or /register <email> [name]."

    user = state.current_user
    history = state.history_for(user.id)
    try:
        with state.lock:
            reply = state.assistant.ask(state.user_tasks(), history, line)
    except RuntimeError as e:
        msg = friendly_llm_error_message(e)
        logger.info("LLM runtime error: %s", msg)
        return f"[Assistant] {msg}"
    except Exception:
        logger.exception("Assistant turn crashed.")
        return "Internal error while generating a reply."

    history.append({"role": "user", "content": line})
    history.append({"role": "assistant", "content": reply.text})
    return reply.text


def run_console_loop(state: AppState) -> None:
    app_name = str(getattr(state.settings, "app_name", "MindSender"))
    logger.info("Console connector started.")
    _print_ts(f"[{app_name}] Type /help for commands, free text talks to the assistant. /exit to quit.\n")

    def emit(text: str) -> None:
        print(f"\n[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = input(">>> ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        response = handle_line(state, user_input, emit=emit)
        print(f"[{_ts_local()}] <<< {response}\n")

    logger.info("Console connector finished.")
