"""
Re-entrancy guard for contract entrypoints.

A guard is held for the whole duration of a mutating entrypoint. Any nested
attempt to enter a mutating entrypoint on the same contract (for example from
a fee recipient's receive hook) is rejected.
"""

from errors import ReentrancyError


class ReentrancyGuard:
    """
    Explicit acquire/release flag scoped around one contract's entrypoints.

    Usage:
        with contract.guard:
            ...  # mutate, then transfer
    """

    def __init__(self, owner: str):
        self.owner = owner
        self._entered = False

    @property
    def entered(self) -> bool:
        return self._entered

    def acquire(self) -> None:
        if self._entered:
            raise ReentrancyError(self.owner)
        self._entered = True

    def release(self) -> None:
        self._entered = False

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, _exc_type, _exc_val, _exc_tb):
        self.release()
        return False
