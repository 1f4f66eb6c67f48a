import asyncio

from promisecore.errors import AggregateError, ChainingCycleError, PromiseError, PromiseException, as_exception
from promisecore.runtime import get_runtime
from promisecore.scheduler import EventLoop

PENDING = 'pending'
FULFILLED = 'fulfilled'
REJECTED = 'rejected'


def empty(resolve, reject):
    pass


def identity(value):
    return value


def thrower(reason):
    raise PromiseException(reason)


def resolving_functions(promise):
    """Return the ``(resolve, reject)`` pair handed to an executor.

    The pair shares one flag: whichever is called first wins, even if the
    promise is still pending because it is following a thenable.
    """
    already_resolved = False

    def resolve_function(value=None):
        nonlocal already_resolved
        if already_resolved:
            return
        already_resolved = True
        resolve(promise, value)

    def reject_function(reason=None):
        nonlocal already_resolved
        if already_resolved:
            return
        already_resolved = True
        reject(promise, reason)

    return resolve_function, reject_function


def resolve(promise, value):
    if value is promise:
        reject(promise, ChainingCycleError('Chaining cycle detected for promise'))
        return

    if isinstance(value, type):
        fulfill(promise, value)
        return

    try:
        then = getattr(value, 'then', None)
    except Exception as e:
        reject(promise, e)
        return

    if not callable(then):
        fulfill(promise, value)
        return

    # Adoption runs as its own job; the stack stays flat for nested thenables.
    promise.runtime.enqueue(adopt, promise, then)


def adopt(promise, then):
    resolve_function, reject_function = resolving_functions(promise)
    try:
        then(resolve_function, reject_function)
    except PromiseException as e:
        reject_function(e.value)
    except Exception as e:
        reject_function(e)


def fulfill(promise, value):
    settle(promise, FULFILLED, value)


def reject(promise, reason):
    settle(promise, REJECTED, reason)
    if not promise.handled:
        promise.runtime.track_rejection(promise)


def settle(promise, state, result):
    jobs = promise.reactions
    promise.state = state
    promise.result = result
    promise.reactions = []
    for job in jobs:
        promise.runtime.enqueue(execute_job, promise, job)


def execute_job(promise, job):
    handler = job['resolve'] if promise.state == FULFILLED else job['reject']
    resolve_function, reject_function = resolving_functions(job['promise'])
    try:
        value = handler(promise.result)
    except PromiseException as e:
        reject_function(e.value)
        return
    except Exception as e:
        reject_function(e)
        return
    resolve_function(value)


class Promise:
    def __init__(self, fn, runtime=None):
        if not callable(fn):
            raise TypeError('Promise resolver %r is not callable' % (fn,))

        self.state = PENDING
        self.result = None
        self.reactions = []
        self.handled = False
        self.runtime = runtime if runtime is not None else get_runtime()

        resolve_function, reject_function = resolving_functions(self)
        try:
            fn(resolve_function, reject_function)
        except PromiseException as e:
            reject_function(e.value)
        except Exception as e:
            reject_function(e)

    def __repr__(self):
        if self.state == PENDING:
            return '<%s pending>' % self.__class__.__name__
        return '<%s %s: %r>' % (self.__class__.__name__, self.state, self.result)

    @classmethod
    def resolve(cls, value=None, runtime=None):
        if isinstance(value, cls) and (runtime is None or runtime is value.runtime):
            return value
        promise = cls(empty, runtime=runtime)
        resolve(promise, value)
        return promise

    @classmethod
    def reject(cls, reason=None, runtime=None):
        promise = cls(empty, runtime=runtime)
        reject(promise, reason)
        return promise

    def then(self, on_resolve=None, on_reject=None):
        """Register continuations and return the promise of their outcome.

        Handlers that are not callable are ignored: the value or the reason
        passes through to the returned promise unchanged.
        """
        job = {
            'promise': self.__class__(empty, runtime=self.runtime),
            'resolve': on_resolve if callable(on_resolve) else identity,
            'reject': on_reject if callable(on_reject) else thrower,
        }
        if self.state == PENDING:
            self.reactions.append(job)
        else:
            if self.state == REJECTED and not self.handled:
                self.runtime.rejection_handled(self)
            self.runtime.enqueue(execute_job, self, job)
        self.handled = True
        return job['promise']

    def catch(self, on_reject):
        return self.then(None, on_reject)

    def finally_(self, on_finally):
        """Run ``on_finally()`` once settled, passing the outcome through.

        The outcome changes only when ``on_finally`` raises or returns a
        thenable that rejects.
        """
        if not callable(on_finally):
            return self.then(on_finally, on_finally)

        cls = self.__class__
        runtime = self.runtime

        def on_resolve(value):
            return cls.resolve(on_finally(), runtime=runtime).then(lambda _: value)

        def on_reject(reason):
            return cls.resolve(on_finally(), runtime=runtime).then(lambda _: thrower(reason))

        return self.then(on_resolve, on_reject)

    def __await__(self):
        """Await the outcome from an asyncio coroutine.

        A promise whose runtime runs on an ``EventLoop`` has that loop drained
        first; if it is still pending afterwards nothing on the asyncio side
        could ever settle it, so ``PromiseError`` is raised.
        """
        future = asyncio.get_running_loop().create_future()

        def on_resolve(value):
            if not future.done():
                future.set_result(value)

        def on_reject(reason):
            if not future.done():
                future.set_exception(as_exception(reason))

        self.then(on_resolve, on_reject)

        scheduler = self.runtime.scheduler
        if isinstance(scheduler, EventLoop):
            scheduler.run()
            if not future.done():
                raise PromiseError(
                    '%r is still pending after its EventLoop drained; '
                    'use a Runtime(AsyncioScheduler()) to await it' % (self,)
                )
        return future.__await__()

    @classmethod
    def all(cls, promises, runtime=None):
        """Fulfill with every value in input order, or reject with the first reason."""
        def executor(resolve_function, reject_function):
            values = []
            remaining = 1

            def element(index):
                def on_resolve(value):
                    nonlocal remaining
                    values[index] = value
                    remaining -= 1
                    if remaining == 0:
                        resolve_function(values)
                return on_resolve

            for index, item in enumerate(promises):
                values.append(None)
                remaining += 1
                cls.resolve(item, runtime=runtime).then(element(index), reject_function)

            remaining -= 1
            if remaining == 0:
                resolve_function(values)

        return cls(executor, runtime=runtime)

    @classmethod
    def all_settled(cls, promises, runtime=None):
        """Fulfill with a status record per input once every input has settled."""
        def executor(resolve_function, reject_function):
            results = []
            remaining = 1

            def element(index, key, status):
                def on_settled(result):
                    nonlocal remaining
                    results[index] = {'status': status, key: result}
                    remaining -= 1
                    if remaining == 0:
                        resolve_function(results)
                return on_settled

            for index, item in enumerate(promises):
                results.append(None)
                remaining += 1
                cls.resolve(item, runtime=runtime).then(
                    element(index, 'value', FULFILLED),
                    element(index, 'reason', REJECTED),
                )

            remaining -= 1
            if remaining == 0:
                resolve_function(results)

        return cls(executor, runtime=runtime)

    @classmethod
    def race(cls, promises, runtime=None):
        def executor(resolve_function, reject_function):
            for item in promises:
                cls.resolve(item, runtime=runtime).then(resolve_function, reject_function)

        return cls(executor, runtime=runtime)

    @classmethod
    def any(cls, promises, runtime=None):
        """Fulfill with the first value, or reject with an AggregateError of every reason."""
        def executor(resolve_function, reject_function):
            errors = []
            remaining = 1

            def element(index):
                def on_reject(reason):
                    nonlocal remaining
                    errors[index] = reason
                    remaining -= 1
                    if remaining == 0:
                        reject_function(AggregateError(errors))
                return on_reject

            for index, item in enumerate(promises):
                errors.append(None)
                remaining += 1
                cls.resolve(item, runtime=runtime).then(resolve_function, element(index))

            remaining -= 1
            if remaining == 0:
                reject_function(AggregateError(errors))

        return cls(executor, runtime=runtime)
