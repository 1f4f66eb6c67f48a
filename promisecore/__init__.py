from promisecore.deferred import Deferred
from promisecore.errors import (
    AggregateError,
    ChainingCycleError,
    EventLoopLimitError,
    PromiseError,
    PromiseException,
)
from promisecore.promise import FULFILLED, PENDING, REJECTED, Promise
from promisecore.runtime import Runtime, get_runtime, set_runtime
from promisecore.scheduler import AsyncioScheduler, EventLoop, Scheduler

__version__ = '0.1.0'

__all__ = [
    'AggregateError',
    'AsyncioScheduler',
    'ChainingCycleError',
    'Deferred',
    'EventLoop',
    'EventLoopLimitError',
    'FULFILLED',
    'PENDING',
    'Promise',
    'PromiseError',
    'PromiseException',
    'REJECTED',
    'Runtime',
    'Scheduler',
    'get_runtime',
    'set_runtime',
]
