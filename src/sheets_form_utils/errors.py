from __future__ import annotations


class FormUtilsError(RuntimeError):
    pass


class InvalidPeriodError(FormUtilsError, ValueError):
    pass


class LockTimeoutError(FormUtilsError):
    pass


class UnsupportedModeError(FormUtilsError):
    pass


class OutOfBoundsError(FormUtilsError, IndexError):
    pass
