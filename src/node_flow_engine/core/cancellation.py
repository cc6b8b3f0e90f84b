"""Cooperative cancellation for flow runs."""

from __future__ import annotations

from .errors import FlowAbortedError


class AbortSignal:
    """
    Read side of a cancellation request.

    A signal is shared by a run and all of its nested sub-flow runs. It is
    only checked between node steps and loop iterations; a node that is
    already executing is never interrupted.
    """

    def __init__(self):
        self._aborted = False
        self._reason: str | None = None

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> str | None:
        return self._reason

    def raise_if_aborted(self, partial_results: list | None = None) -> None:
        if self._aborted:
            raise FlowAbortedError(
                f"Flow execution aborted: {self._reason}" if self._reason else "Flow execution aborted",
                partial_results=partial_results,
            )

    def _set(self, reason: str | None) -> None:
        if not self._aborted:
            self._aborted = True
            self._reason = reason


class AbortController:
    """Owner side: creates a signal and can trip it."""

    def __init__(self):
        self.signal = AbortSignal()

    def abort(self, reason: str | None = None) -> None:
        self.signal._set(reason)
