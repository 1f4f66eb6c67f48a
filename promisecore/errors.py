"""Exception types raised and carried by promises."""


class PromiseError(Exception):
    """Base class for promisecore errors."""


class PromiseException(PromiseError):
    """Carries an arbitrary rejection reason through a raise.

    Raising it from an executor or a handler rejects with ``value`` rather
    than with the exception itself.
    """

    def __init__(self, value):
        self.value = value
        super().__init__(value)

    def __str__(self):
        return repr(self.value)


class ChainingCycleError(PromiseError, TypeError):
    """A promise was resolved with itself."""


class AggregateError(PromiseError):
    """Every input of ``Promise.any`` rejected."""

    def __init__(self, errors, message='All promises were rejected'):
        self.errors = list(errors)
        super().__init__(message)


class EventLoopLimitError(PromiseError, RuntimeError):
    """Too many timer callbacks ran in a single ``EventLoop.run``."""


def as_exception(reason):
    if isinstance(reason, BaseException):
        return reason
    return PromiseException(reason)
