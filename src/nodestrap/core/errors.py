"""Errors that signal internal corruption rather than environment trouble."""

from __future__ import annotations

# Exit status used when an invariant violation terminates the process
INTERNAL_ERROR_EXIT_CODE = 70


class InvariantViolation(RuntimeError):
    """An internal invariant no longer holds.

    Never caught by the bootstrap task boundary: the process is terminated
    instead of continuing in an inconsistent state.
    """

    pass
