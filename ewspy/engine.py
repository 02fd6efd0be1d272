"""Process-wide lifecycle of the HTTP engine.

The embedding application calls `initialize()` once before creating any
request and `shutdown()` once at exit. Calls nest: only the first
`initialize()` configures the engine and only the matching last `shutdown()`
tears it down.

Logging output is left to the application unless the settings ask otherwise:
`log_to_stderr` attaches a stderr handler to the ``ewspy`` logger, and
`verbose` routes the ``ewspy.wire`` request/response trace to stderr.
"""
import logging
import sys
import threading
from contextlib import contextmanager
from typing import Generator

from .config import Settings, settings as default_settings


logger = logging.getLogger(__name__)

_PACKAGE_LOGGER = "ewspy"
_WIRE_LOGGER = "ewspy.wire"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_lock = threading.Lock()
_refcount = 0
_active_settings: Settings | None = None
_handlers: list[tuple[logging.Logger, logging.Handler]] = []


def _attach_stderr_handler(target: logging.Logger, level: str | int, fmt: str) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    target.addHandler(handler)
    target.setLevel(level)
    _handlers.append((target, handler))


def initialize(settings: Settings | None = None) -> None:
    global _refcount, _active_settings

    with _lock:
        if _refcount == 0:
            _active_settings = settings if settings is not None else default_settings

            if _active_settings.log_to_stderr:
                _attach_stderr_handler(logging.getLogger(_PACKAGE_LOGGER), _active_settings.log_level, _LOG_FORMAT)

            if _active_settings.verbose:
                wire = logging.getLogger(_WIRE_LOGGER)
                if _active_settings.log_to_stderr:
                    wire.setLevel(logging.DEBUG)
                else:
                    _attach_stderr_handler(wire, logging.DEBUG, "%(message)s")
                    wire.propagate = False

            if not _active_settings.verify_tls:
                logger.warning("TLS peer verification is disabled; do not use in production")
            logger.debug("HTTP engine initialized")
        _refcount += 1


def shutdown() -> None:
    global _refcount, _active_settings

    with _lock:
        if _refcount == 0:
            raise RuntimeError("shutdown() called without a matching initialize()")
        _refcount -= 1
        if _refcount == 0:
            logger.debug("HTTP engine shut down")
            for target, handler in _handlers:
                target.removeHandler(handler)
                handler.close()
            _handlers.clear()

            for name in (_PACKAGE_LOGGER, _WIRE_LOGGER):
                logging.getLogger(name).setLevel(logging.NOTSET)
            logging.getLogger(_WIRE_LOGGER).propagate = True
            _active_settings = None


def is_initialized() -> bool:
    with _lock:
        return _refcount > 0


def current_settings() -> Settings:
    """Returns the settings installed by `initialize()`, or the module defaults."""
    with _lock:
        return _active_settings if _active_settings is not None else default_settings


@contextmanager
def initialized(settings: Settings | None = None) -> Generator[None, None, None]:
    initialize(settings)
    try:
        yield
    finally:
        shutdown()
