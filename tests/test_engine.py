import logging
import pytest


from ewspy import engine
from ewspy.config import Settings, settings as default_settings


def _handlers(name: str = "ewspy"):
    return list(logging.getLogger(name).handlers)


def test_not_initialized_by_default():
    assert not engine.is_initialized()
    assert engine.current_settings() is default_settings


def test_initialize_and_shutdown_are_reference_counted():
    custom = Settings(timeout=1.5, log_to_stderr=True)
    handlers_before = _handlers()

    engine.initialize(custom)
    engine.initialize()
    try:
        assert engine.is_initialized()
        assert engine.current_settings() is custom
        assert len(_handlers()) == len(handlers_before) + 1

        engine.shutdown()
        assert engine.is_initialized()
        assert engine.current_settings() is custom
    finally:
        engine.shutdown()

    assert not engine.is_initialized()
    assert engine.current_settings() is default_settings
    assert _handlers() == handlers_before


def test_default_settings_leave_logging_alone():
    handlers_before = _handlers()
    wire_before = _handlers("ewspy.wire")

    with engine.initialized(Settings()):
        assert _handlers() == handlers_before
        assert _handlers("ewspy.wire") == wire_before
        assert logging.getLogger("ewspy").level == logging.NOTSET


def test_unbalanced_shutdown_raises():
    with pytest.raises(RuntimeError):
        engine.shutdown()


def test_initialized_context_manager():
    with engine.initialized(Settings(log_level="DEBUG", log_to_stderr=True)):
        assert engine.is_initialized()
        assert logging.getLogger("ewspy").level == logging.DEBUG
    assert not engine.is_initialized()
    assert logging.getLogger("ewspy").level == logging.NOTSET


def test_verbose_routes_wire_trace_to_stderr():
    wire = logging.getLogger("ewspy.wire")
    wire_before = _handlers("ewspy.wire")

    with engine.initialized(Settings(verbose=True)):
        assert len(_handlers("ewspy.wire")) == len(wire_before) + 1
        assert wire.level == logging.DEBUG
        assert not wire.propagate

    assert _handlers("ewspy.wire") == wire_before
    assert wire.level == logging.NOTSET
    assert wire.propagate


def test_verbose_with_package_handler_does_not_duplicate_output():
    wire_before = _handlers("ewspy.wire")

    with engine.initialized(Settings(verbose=True, log_to_stderr=True)):
        assert _handlers("ewspy.wire") == wire_before
        assert logging.getLogger("ewspy.wire").propagate


def test_insecure_settings_are_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="ewspy.engine"):
        with engine.initialized(Settings(verify_tls=False)):
            pass
    assert "TLS peer verification is disabled" in caplog.text
