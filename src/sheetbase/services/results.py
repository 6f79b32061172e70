"""Results of multi-table service operations.

The tabular store has no transactions. A service operation is a sequence
of committed steps; when a later step fails, earlier steps are undone
with best-effort compensations, and the result records exactly what was
committed, what was undone and which compensations failed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from sheetbase.exceptions import SheetbaseError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Step:
    """One committed write."""

    action: str  # "create", "update" or "delete"
    table: str
    record_id: Any
    undo: Callable[[], Any] | None = field(default=None, repr=False, compare=False)

    def describe(self) -> str:
        return f"{self.action} {self.table}:{self.record_id}"

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, "table": self.table, "record_id": self.record_id}


@dataclass
class OperationResult(Generic[T]):
    """Outcome of a service operation.

    ``committed`` lists the steps that were written. On failure,
    ``compensated`` lists the steps that were undone and
    ``compensation_errors`` the undo attempts that themselves failed;
    a step in ``committed`` but not in ``compensated`` is still in the store.
    """

    ok: bool
    value: T | None = None
    error: SheetbaseError | None = None
    committed: list[Step] = field(default_factory=list)
    compensated: list[Step] = field(default_factory=list)
    compensation_errors: list[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        """True when a failure left some committed steps in place."""
        return not self.ok and len(self.compensated) < len(self.committed)

    def unwrap(self) -> T:
        """Return the value, or raise the error of a failed operation."""
        if not self.ok and self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "value": self.value,
            "error": self.error.to_dict() if self.error else None,
            "committed": [s.to_dict() for s in self.committed],
            "compensated": [s.to_dict() for s in self.compensated],
            "compensation_errors": list(self.compensation_errors),
        }


class Saga:
    """Tracks committed steps of one operation and undoes them on failure.

    Example:
        saga = Saga("create_order")
        order = orders.create(data)
        saga.record("create", "Orders", order["id"], lambda: orders.delete(order["id"]))
        ...
        return saga.fail(error)  # compensates in reverse order
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.committed: list[Step] = []

    def record(
        self, action: str, table: str, record_id: Any, undo: Callable[[], Any] | None = None
    ) -> Step:
        step = Step(action, table, record_id, undo)
        self.committed.append(step)
        return step

    def succeed(self, value: T) -> OperationResult[T]:
        logger.debug(f"{self.name}: committed {len(self.committed)} step(s)")
        return OperationResult(ok=True, value=value, committed=list(self.committed))

    def reject(self, error: SheetbaseError) -> OperationResult[Any]:
        """Fail before anything was written."""
        logger.info(f"{self.name} rejected: {error.message}")
        return OperationResult(ok=False, error=error, committed=list(self.committed))

    def fail(self, error: SheetbaseError) -> OperationResult[Any]:
        """Fail after writes: run compensations newest first, keep going on errors."""
        logger.warning(
            f"{self.name} failed after {len(self.committed)} step(s): {error.message}"
        )
        compensated: list[Step] = []
        problems: list[str] = []
        for step in reversed(self.committed):
            if step.undo is None:
                problems.append(f"No compensation for {step.describe()}")
                continue
            try:
                step.undo()
            except SheetbaseError as e:
                logger.error(f"{self.name}: compensation of {step.describe()} failed: {e.message}")
                problems.append(f"{step.describe()}: {e.message}")
            else:
                compensated.append(step)

        if problems:
            logger.error(f"{self.name}: {len(problems)} step(s) could not be undone")
        return OperationResult(
            ok=False,
            error=error,
            committed=list(self.committed),
            compensated=compensated,
            compensation_errors=problems,
        )
