"""Job queue and unhandled-rejection tracking shared by a group of promises.

Every promise belongs to a runtime. Continuations are appended to the
runtime's job queue; the first job of a cycle asks the host scheduler for a
single ``flush``, which drains the queue to exhaustion before anything else
the host has queued gets to run.

A promise rejected with no continuation attached is recorded. When the queue
has been drained, records that are still unhandled are reported through
``on_unhandled(reason, promise)``; attaching a continuation to an already
reported promise later queues ``on_handled(promise)``.
"""

import asyncio
import weakref
from collections import deque

from promisecore.config import get_settings
from promisecore.logging import get_logger
from promisecore.scheduler import AsyncioScheduler, EventLoop

logger = get_logger(__name__)


def report_unhandled(reason, promise):
    if get_settings().unhandled_rejections == 'warn':
        logger.warning('unhandled_rejection', reason=repr(reason))


def report_handled(promise):
    if get_settings().unhandled_rejections == 'warn':
        logger.info('rejection_handled', reason=repr(promise.result))


class Runtime:
    def __init__(self, scheduler=None, on_unhandled=None, on_handled=None):
        self.scheduler = scheduler if scheduler is not None else EventLoop()
        self.on_unhandled = on_unhandled if on_unhandled is not None else report_unhandled
        self.on_handled = on_handled if on_handled is not None else report_handled
        self.jobs = deque()
        self.rejections = []
        self.reported = weakref.WeakSet()
        self.flush_requested = False

    def enqueue(self, job, *args):
        self.jobs.append((job, args))
        self.request_flush()

    def request_flush(self):
        if not self.flush_requested:
            self.flush_requested = True
            self.scheduler.schedule(self.flush)

    def track_rejection(self, promise):
        self.rejections.append(promise)
        self.request_flush()

    def rejection_handled(self, promise):
        if promise in self.reported:
            self.reported.discard(promise)
            self.enqueue(self.notify, self.on_handled, promise)

    def flush(self):
        jobs = self.jobs
        try:
            while jobs or self.rejections:
                while jobs:
                    job, args = jobs.popleft()
                    job(*args)
                self.report_rejections()
        finally:
            self.flush_requested = False
            if jobs or self.rejections:
                self.request_flush()

    def report_rejections(self):
        rejections, self.rejections = self.rejections, []
        for promise in rejections:
            if promise.handled:
                continue
            self.reported.add(promise)
            self.notify(self.on_unhandled, promise.result, promise)

    def notify(self, callback, *args):
        try:
            callback(*args)
        except Exception:
            logger.exception('rejection_reporter_failed', reporter=getattr(callback, '__name__', repr(callback)))


_runtime = None
_sync_runtime = None
_loop_runtimes = weakref.WeakKeyDictionary()


def get_runtime():
    """Get the default runtime.

    A runtime installed with ``set_runtime`` always wins. Otherwise code
    running inside an asyncio loop gets a runtime scheduled on that loop, and
    code outside any loop shares one ``EventLoop``-backed runtime.
    """
    global _sync_runtime
    if _runtime is not None:
        return _runtime

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop is not None:
        runtime = _loop_runtimes.get(loop)
        if runtime is None:
            runtime = _loop_runtimes[loop] = Runtime(AsyncioScheduler())
        return runtime

    if _sync_runtime is None:
        _sync_runtime = Runtime()
    return _sync_runtime


def set_runtime(runtime):
    """Install ``runtime`` as the default and return the previous one.

    ``None`` restores the automatic choice made by ``get_runtime``.
    """
    global _runtime
    previous, _runtime = _runtime, runtime
    return previous
