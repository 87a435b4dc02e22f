"""
All-or-nothing execution of multi-store work.

A unit of work is any callable that performs a sequence of store writes.
While it runs, every store defers its commits (writes are flushed, not
committed). The unit's outcome is captured as a :class:`UnitResult`; the
coordinator then either commits the session once or rolls it back and
raises :class:`OperationFailedError` carrying the original cause.

Side effects that must only happen for committed work, such as audit
events, are queued with :meth:`TransactionCoordinator.after_commit`.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, List, Optional, TypeVar

from sqlalchemy.orm import Session

from services.entity_store import EntityStore
from utils.audit import audit
from utils.logging_utils import LogTimer

from .errors import OperationFailedError

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass
class UnitResult(Generic[R]):
    """Outcome of a unit of work: a value, or the error that stopped it."""

    value: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: R) -> "UnitResult[R]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "UnitResult[R]":
        return cls(error=error)


class TransactionCoordinator:
    """
    Runs units of work across a set of stores sharing one session.

    Args:
        session: The session every store writes through.
        stores: Stores whose auto-commit is suspended during a unit.
        on_rollback: Called after a rollback, e.g. to drop caches that may
            have seen uncommitted records.
    """

    def __init__(
        self,
        session: Session,
        stores: Iterable[EntityStore],
        on_rollback: Optional[Callable[[], None]] = None,
    ):
        self.session = session
        self.stores = list(stores)
        self.on_rollback = on_rollback
        self._active = False
        self._after_commit: List[Callable[[], None]] = []

    @property
    def active(self) -> bool:
        return self._active

    def _should_commit(self, value: bool) -> None:
        for store in self.stores:
            store.should_commit(value)

    def after_commit(self, callback: Callable[[], None]) -> None:
        """
        Run ``callback`` once the current unit has committed.

        Outside a unit it runs immediately; if the unit rolls back it never
        runs.
        """
        if self._active:
            self._after_commit.append(callback)
        else:
            callback()

    @staticmethod
    def run_unit(unit: Callable[[], R]) -> UnitResult[R]:
        """Call ``unit`` and fold a raised error into the result."""
        try:
            return UnitResult.success(unit())
        except Exception as e:
            return UnitResult.failure(e)

    def commit(self, unit: Callable[[], R], operation: str = "transaction") -> R:
        """
        Execute ``unit`` atomically and return its value.

        A unit started while another is running joins the outer one.

        Raises:
            OperationFailedError: The unit or the final commit failed; the
                session has been rolled back and ``cause`` holds the error.
        """
        if self._active:
            return unit()

        self._active = True
        self._after_commit = []
        self._should_commit(False)
        try:
            with LogTimer(logger, operation, level=logging.DEBUG) as timer:
                result = self.run_unit(unit)
                if result.ok:
                    committed = self.run_unit(self.session.commit)
                    if not committed.ok:
                        result = committed
                timer.add_info("status", "committed" if result.ok else "failed")
        finally:
            self._active = False
            self._should_commit(True)
            pending, self._after_commit = self._after_commit, []

        if result.ok:
            for callback in pending:
                callback()
            return result.value

        self._rollback(operation, result.error)
        raise OperationFailedError(f"{operation} failed", cause=result.error) from result.error

    def _rollback(self, operation: str, error: BaseException) -> None:
        try:
            self.session.rollback()
        except Exception:
            logger.exception(f"Rollback failed for {operation}")
        logger.warning(f"Rolled back {operation}: {error}")
        audit.log_rollback(operation, error)
        if self.on_rollback is not None:
            self.on_rollback()
