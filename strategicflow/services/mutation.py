"""
Mutation executor: wraps one write against the REST API.

A mutation:
  - tracks whether a call is pending and skips a second submission while it is
  - on success, invalidates the cache keys/tags the write affected and
    raises one success toast
  - on failure, raises one destructive toast with the server's message
    when it sent one, else the per-action fallback
  - never writes into the cache directly; fresh data arrives only through
    invalidation + refetch

mutate() never raises. Callers check MutationResult.ok.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from strategicflow.core.exceptions import ApiRequestError, ValidationError
from strategicflow.services.query_cache import Invalidation, QueryCache
from strategicflow.services.toast import ToastLog

logger = logging.getLogger(__name__)


@dataclass
class MutationResult:
    """Structured outcome of a mutate() call.

    Attributes:
        ok:       True if the write succeeded.
        data:     Decoded upstream response body on success.
        error:    The exception that stopped the write, if any.
        skipped:  True when the call was rejected because another was pending.
    """

    ok: bool
    data: Any = None
    error: Exception | None = None
    skipped: bool = False

    @property
    def message(self) -> str | None:
        if self.error is None:
            return None
        return getattr(self.error, "server_message", None) or str(self.error)


def validation_failure(toasts: ToastLog, exc: ValidationError) -> MutationResult:
    """Report a client-side validation failure: one toast, no request."""
    toasts.error(str(exc))
    return MutationResult(ok=False, error=exc)


def _resolve(value, *args):
    return value(*args) if callable(value) else value


class Mutation:
    """One create/update/delete operation bound to a cache and a toast log.

    Args:
        fn:          Callable performing the write; receives the variables.
        cache:       QueryCache to invalidate on success.
        toasts:      ToastLog receiving exactly one toast per executed call.
        invalidates: Invalidations, or a callable of the variables returning them.
        success:     Success toast text, or callable(variables, data) -> text.
        failure:     Fallback failure text, or callable(variables) -> text.
        on_success:  Extra hook called with (variables, data) after invalidation.
        on_error:    Extra hook called with (variables, exc).
    """

    def __init__(
        self,
        fn: Callable[[Any], Any],
        *,
        cache: QueryCache,
        toasts: ToastLog,
        invalidates: Iterable[Invalidation] | Callable[[Any], Iterable[Invalidation]] = (),
        success: str | Callable[[Any, Any], str] | None = None,
        failure: str | Callable[[Any], str] = "Something went wrong",
        success_title: str = "Success",
        failure_title: str = "Error",
        on_success: Callable[[Any, Any], None] | None = None,
        on_error: Callable[[Any, Exception], None] | None = None,
    ) -> None:
        self._fn = fn
        self._cache = cache
        self._toasts = toasts
        self._invalidates = invalidates
        self._success = success
        self._failure = failure
        self._success_title = success_title
        self._failure_title = failure_title
        self._on_success = on_success
        self._on_error = on_error
        self._pending = False
        self._lock = threading.Lock()

    @property
    def is_pending(self) -> bool:
        with self._lock:
            return self._pending

    def mutate(self, variables: Any = None) -> MutationResult:
        with self._lock:
            if self._pending:
                logger.debug("Mutation skipped: previous call still pending")
                return MutationResult(ok=False, skipped=True)
            self._pending = True

        try:
            try:
                data = self._fn(variables)
            except ApiRequestError as exc:
                return self._fail(variables, exc, exc.server_message)
            except Exception as exc:
                logger.exception("Unexpected mutation failure")
                return self._fail(variables, exc, None)

            invalidations = _resolve(self._invalidates, variables)
            if invalidations:
                self._cache.invalidate(*invalidations)
            if self._success:
                self._toasts.push(self._success_title, _resolve(self._success, variables, data))
            if self._on_success:
                self._on_success(variables, data)
            return MutationResult(ok=True, data=data)
        finally:
            with self._lock:
                self._pending = False

    def _fail(self, variables, exc: Exception, server_message: str | None) -> MutationResult:
        self._toasts.error(
            server_message or _resolve(self._failure, variables),
            title=self._failure_title,
        )
        if self._on_error:
            self._on_error(variables, exc)
        return MutationResult(ok=False, error=exc)
