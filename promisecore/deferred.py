from promisecore.promise import Promise


class Deferred:
    """A promise paired with the two functions that settle it.

    Handy when whoever settles the promise is not whoever creates it, such as
    a timer callback or a completion handler: pass ``deferred.resolve`` or
    ``deferred.reject`` along and hand ``deferred.promise`` to consumers.
    Both functions follow the promise's settle-once rule.
    """

    def __init__(self, runtime=None, promise_class=Promise):
        self.promise = promise_class(self._capture, runtime=runtime)

    def __repr__(self):
        return '<Deferred %r>' % (self.promise,)

    def _capture(self, resolve, reject):
        self.resolve = resolve
        self.reject = reject
