"""
Cycle lifecycle errors.

Configuration problems are never raised; they are returned as message lists by
``validate_algorithm_config``. Re-completing a completed cycle is not an error
either: ``complete_cycle`` returns the stored record unchanged.
"""

from __future__ import annotations


class CycleError(RuntimeError):
    """Base class for cycle lifecycle failures.

    Attributes:
        cycle_id: The cycle the operation targeted.
    """

    def __init__(self, cycle_id: str, message: str) -> None:
        self.cycle_id = cycle_id
        super().__init__(message)


class CycleNotFoundError(CycleError):
    """Raised when no record exists for a cycle id."""

    def __init__(self, cycle_id: str) -> None:
        super().__init__(cycle_id, f"Cycle '{cycle_id}' not found.")


class IncompleteDataError(CycleError):
    """Raised when completion resolves no current price for any snapshot asset.

    Retryable: the cycle stays active and untouched.

    Attributes:
        requested: Number of snapshot assets that needed a price.
    """

    def __init__(self, cycle_id: str, requested: int) -> None:
        self.requested = requested
        super().__init__(
            cycle_id,
            f"Cycle '{cycle_id}': none of {requested} snapshot assets resolved a "
            "current price. Retry once prices are available.",
        )


class InvalidCycleStateError(CycleError):
    """Raised when an operation requires a different lifecycle state.

    Attributes:
        status: The cycle's current status.
        required: The status the operation needs.
    """

    def __init__(self, cycle_id: str, status: str, required: str) -> None:
        self.status = status
        self.required = required
        super().__init__(
            cycle_id,
            f"Cycle '{cycle_id}' is {status}; this operation requires a {required} cycle.",
        )
