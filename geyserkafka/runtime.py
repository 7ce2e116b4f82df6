"""Logging setup and shutdown signalling."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from typing import IO

LOG_ENV = "GEYSERKAFKA_LOG"

_HANDLER_NAME = "geyserkafka"
_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": logging.CRITICAL + 10,
}


def setup_tracing(stream: IO[str] | None = None) -> logging.Handler:
    """Install the log handler on the root logger; levels come from ``LOG_ENV``."""
    stream = sys.stdout if stream is None else stream
    root = logging.getLogger()
    if any(handler.get_name() == _HANDLER_NAME for handler in root.handlers):
        raise RuntimeError("logging has already been set up")

    ansi = all(getattr(s, "isatty", lambda: False)() for s in (stream, sys.stderr))
    level_fmt = "\x1b[1m%(levelname)s\x1b[0m" if ansi else "%(levelname)s"
    handler = logging.StreamHandler(stream)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(f"%(asctime)s {level_fmt} %(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.INFO)

    # Directives are ``level`` or ``target=level``; invalid ones are skipped.
    for directive in os.environ.get(LOG_ENV, "").split(","):
        target, sep, name = directive.strip().rpartition("=")
        level = _LEVELS.get(name.lower())
        if level is None or (sep and not target):
            continue
        logging.getLogger(target or None).setLevel(level)
    return handler


def create_shutdown() -> asyncio.Future[None]:
    """Return a future completed by SIGINT or SIGTERM; needs a running loop."""
    loop = asyncio.get_running_loop()
    done: asyncio.Future[None] = loop.create_future()
    signals = (signal.SIGINT, signal.SIGTERM)

    def fire() -> None:
        if not done.done():
            done.set_result(None)

    for signum in signals:
        loop.add_signal_handler(signum, fire)
    done.add_done_callback(lambda _: [loop.remove_signal_handler(s) for s in signals])
    return done