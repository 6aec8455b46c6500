import logging

from typing import Any, Callable, Generic, List, Optional, TypeVar

from .error import LinkvoteError


log = logging.getLogger(__name__)

T = TypeVar("T")

_PENDING = "PENDING"
_FINISHED = "FINISHED"
_CANCELLED = "CANCELLED"


class InvalidStateError(LinkvoteError):
    pass


class CancelledError(LinkvoteError):
    pass


class PendingFuture(Generic[T]):
    """Placeholder for data which will be available after a flush

    Unlike :py:class:`concurrent.futures.Future` it is not thread-safe and
    never blocks: :py:meth:`result` can be called only when future is done.
    Future can be fulfilled only once.
    """

    def __init__(self) -> None:
        self._state = _PENDING
        self._result: Optional[T] = None
        self._exception: Optional[BaseException] = None
        self._callbacks: List[Callable[["PendingFuture[T]"], Any]] = []

    def __repr__(self) -> str:
        if self._state == _FINISHED:
            if self._exception is not None:
                return "<{} raised {!r}>".format(
                    self.__class__.__name__, self._exception,
                )
            return "<{} result={!r}>".format(
                self.__class__.__name__, self._result,
            )
        return "<{} {}>".format(self.__class__.__name__, self._state.lower())

    @classmethod
    def resolved(cls, value: T) -> "PendingFuture[T]":
        fut: PendingFuture[T] = cls()
        fut.set_result(value)
        return fut

    def done(self) -> bool:
        return self._state != _PENDING

    def cancelled(self) -> bool:
        return self._state == _CANCELLED

    def result(self) -> T:
        if self._state == _PENDING:
            raise InvalidStateError("Result is not ready yet")
        if self._state == _CANCELLED:
            raise CancelledError()
        if self._exception is not None:
            raise self._exception
        return self._result  # type: ignore[return-value]

    def exception(self) -> Optional[BaseException]:
        if self._state == _PENDING:
            raise InvalidStateError("Exception is not set yet")
        if self._state == _CANCELLED:
            raise CancelledError()
        return self._exception

    def add_done_callback(
        self, fn: Callable[["PendingFuture[T]"], Any],
    ) -> None:
        if self.done():
            fn(self)
        else:
            self._callbacks.append(fn)

    def then(self, fn: Callable[[T], Any]) -> "PendingFuture":
        """Returns future for the ``fn(result)``, failures are propagated"""
        chained: PendingFuture = PendingFuture()

        def callback(fut: "PendingFuture[T]") -> None:
            if fut.cancelled():
                chained.cancel()
            elif fut.exception() is not None:
                chained.set_exception(fut.exception())  # type: ignore
            else:
                chained.set_result(fn(fut.result()))

        self.add_done_callback(callback)
        return chained

    def set_result(self, value: T) -> None:
        self._finish(_FINISHED)
        self._result = value
        self._run_callbacks()

    def set_exception(self, exception: BaseException) -> None:
        self._finish(_FINISHED)
        self._exception = exception
        self._run_callbacks()

    def cancel(self) -> bool:
        if self.done():
            return False
        self._state = _CANCELLED
        self._run_callbacks()
        return True

    def _finish(self, state: str) -> None:
        if self._state != _PENDING:
            raise InvalidStateError("Future is already {}".format(
                self._state.lower(),
            ))
        self._state = state

    def _run_callbacks(self) -> None:
        callbacks, self._callbacks = self._callbacks, []
        error: Optional[Exception] = None
        for fn in callbacks:
            try:
                fn(self)
            except Exception as exc:
                if error is None:
                    error = exc
                else:
                    log.error("Callback %r failed: %r", fn, exc)
        if error is not None:
            raise error
