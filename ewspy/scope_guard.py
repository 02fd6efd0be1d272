import logging
from typing import Callable


logger = logging.getLogger(__name__)


class OnScopeExit:
    """Runs a deferred action when the ``with`` block exits, on every exit path.

    The action runs at most once and never raises out of ``__exit__``: a cleanup
    failure is logged and dropped. Call `release()` to disarm the guard. If the
    guard cannot be armed, the action runs immediately instead of being lost.
    """

    def __init__(self, func: Callable[[], object]) -> None:
        if not callable(func):
            raise TypeError("OnScopeExit requires a callable")

        self._func: Callable[[], object] | None = None
        try:
            self._arm(func)
        except Exception:
            func()
            raise

    def _arm(self, func: Callable[[], object]) -> None:
        self._func = func

    def __copy__(self):
        raise TypeError("OnScopeExit cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("OnScopeExit cannot be copied")

    @property
    def armed(self) -> bool:
        return self._func is not None

    def release(self) -> None:
        self._func = None

    def __enter__(self) -> "OnScopeExit":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        func, self._func = self._func, None
        if func is not None:
            try:
                func()
            except Exception:
                logger.exception("Scope exit action failed")
