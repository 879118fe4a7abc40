"""
Error taxonomy for the check-and-alert engine.

Check errors never escape the checker: they are converted into a "down"
CheckResult whose error field carries the message. Channel failures are
caught per channel by the dispatcher and written to the notification history.
"""


class UptimerError(Exception):
    """Base class for engine errors."""


class CheckError(UptimerError):
    """A check that did not produce the expected response."""


class CheckTimeout(CheckError):
    pass


class CheckTransportError(CheckError):
    pass


class CheckStatusMismatch(CheckError):
    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected status {expected}, got {actual}")


class HistoryWriteFailure(UptimerError):
    pass


class ChannelSendFailure(UptimerError):
    pass


class CheckInProgress(UptimerError):
    """A check for this monitor is already running."""
