from __future__ import annotations


class PhaseError(RuntimeError):
    """A batch phase failed; `phase` names which one."""

    def __init__(self, phase: str, cause: BaseException) -> None:
        super().__init__(f"phase {phase!r} failed: {cause}")
        self.phase = phase
        self.cause = cause


class ProfileInvariantError(RuntimeError):
    """Upstream contract breach, e.g. a user profile with no ratings."""


class PhaseCancelledError(RuntimeError):
    """A worker pool stopped claiming tasks because its cancel event was set."""

    def __init__(self, completed: int, total: int) -> None:
        super().__init__(f"cancelled after {completed}/{total} tasks")
        self.completed = completed
        self.total = total
