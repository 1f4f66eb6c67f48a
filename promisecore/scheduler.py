"""Host schedulers that run promise continuations.

A runtime hands its flush to ``schedule`` once per cycle. ``EventLoop`` is a
deterministic host with a microtask queue and virtual-clock timers;
``AsyncioScheduler`` runs flushes on an asyncio loop.
"""

import asyncio
import heapq
import itertools
from collections import deque

from promisecore.config import get_settings
from promisecore.errors import EventLoopLimitError


class Scheduler:
    def schedule(self, callback, *args):
        """Run ``callback(*args)`` after the current synchronous code."""
        raise NotImplementedError


class EventLoop(Scheduler):
    """Microtasks and timers, with microtasks always drained first."""

    def __init__(self, max_iterations=None):
        if max_iterations is None:
            max_iterations = get_settings().event_loop_max_iterations
        self.max_iterations = max_iterations
        self.now = 0
        self.microtasks = deque()
        self.timers = []
        self.cancelled = set()
        self.sequence = itertools.count(1)

    def schedule(self, callback, *args):
        self.microtasks.append((callback, args))

    def set_timeout(self, callback, delay=0, *args):
        handle = next(self.sequence)
        due = self.now + max(delay, 0)
        heapq.heappush(self.timers, (due, handle, callback, args))
        return handle

    def clear_timeout(self, handle):
        if any(timer[1] == handle for timer in self.timers):
            self.cancelled.add(handle)

    def pending(self):
        return len(self.microtasks) + len(self.timers) - len(self.cancelled)

    def run_microtasks(self):
        microtasks = self.microtasks
        while microtasks:
            callback, args = microtasks.popleft()
            callback(*args)

    def run(self):
        """Run until both queues are empty. Returns the number of timers run."""
        self.run_microtasks()
        executed = 0
        while self.timers:
            due, handle, callback, args = heapq.heappop(self.timers)
            if handle in self.cancelled:
                self.cancelled.discard(handle)
                continue
            executed += 1
            if executed > self.max_iterations:
                raise EventLoopLimitError(
                    'Timer execution limit exceeded (%d callbacks). '
                    'Possible infinite timer loop detected.' % self.max_iterations
                )
            self.now = max(self.now, due)
            callback(*args)
            self.run_microtasks()
        return executed


class AsyncioScheduler(Scheduler):
    """Microtasks on an asyncio loop, or on the running loop when none is given.

    Microtasks are drained by one ``call_soon`` callback and again right
    after every timer started through ``set_timeout``. Timers added directly
    with ``loop.call_later`` may run before microtasks queued by a timer that
    fell due in the same loop iteration.
    """

    def __init__(self, loop=None):
        self.loop = loop
        self.microtasks = deque()
        self.drain_requested = False

    def get_loop(self):
        return self.loop if self.loop is not None else asyncio.get_running_loop()

    def schedule(self, callback, *args):
        self.microtasks.append((callback, args))
        if not self.drain_requested:
            self.schedule_drain()

    def set_timeout(self, callback, delay=0, *args):
        """Call ``callback(*args)`` after ``delay`` milliseconds. Returns an asyncio handle."""
        return self.get_loop().call_later(max(delay, 0) / 1000, self.run_timer, callback, args)

    def clear_timeout(self, handle):
        handle.cancel()

    def run_timer(self, callback, args):
        callback(*args)
        self.run_microtasks()

    def run_microtasks(self):
        microtasks = self.microtasks
        try:
            while microtasks:
                callback, args = microtasks.popleft()
                callback(*args)
        finally:
            self.drain_requested = False
            if microtasks:
                self.schedule_drain()

    def schedule_drain(self):
        self.drain_requested = True
        self.get_loop().call_soon(self.run_microtasks)
