"""Exception hierarchy for the scheduler, retry helper and worker pool.

Task failures are deliberately absent: a failed task's future carries the
exact exception raised by its work callable.
"""

from __future__ import annotations


class JobQueueError(Exception):
    """Base class for errors raised by jobqueue itself."""


class InvalidArgumentError(JobQueueError, ValueError):
    """Malformed construction or configuration value."""


class QueueClosedError(JobQueueError):
    """Submission attempted after ``close()``."""


class RetryAbortedError(JobQueueError):
    """Retry loop stopped through its stop event."""


class OwnershipError(JobQueueError):
    """Access to a buffer whose ownership was already moved."""
