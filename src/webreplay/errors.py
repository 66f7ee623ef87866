"""Failure taxonomy for recording and playback."""

from __future__ import annotations


class ReplayError(RuntimeError):
    """Base class for every failure raised by webreplay."""


class StepFailure(ReplayError):
    """A failure contained to one action: retried, then skipped."""


class LocatorResolutionError(StepFailure):
    pass


class AgentUnavailableError(StepFailure):
    pass


class DispatchTimeoutError(StepFailure):
    pass


class DispatchError(StepFailure):
    pass


class TabProvisioningError(ReplayError):
    """No destination tab could be created or navigated; aborts the run."""


class StoreAccessError(ReplayError):
    """The persistence store is unreadable or unwritable; aborts the run."""
