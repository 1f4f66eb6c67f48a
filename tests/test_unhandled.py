"""Test unhandled-rejection tracking and reporting."""

from structlog.testing import capture_logs

from promisecore import Promise, Runtime


def fail(value):
    raise ValueError('failed step')


class TestTracking:
    """Test which rejections are reported as unhandled."""

    def test_rejection_without_handler_is_reported(self, loop, unhandled):
        Promise.reject('x')
        assert unhandled == []
        loop.run()
        assert unhandled == ['x']

    def test_catch_attached_synchronously(self, loop, unhandled):
        Promise.reject('x').catch(lambda reason: None)
        loop.run()
        assert unhandled == []

    def test_only_end_of_chain_is_reported(self, loop, unhandled):
        Promise.resolve(1).then(fail).then(lambda value: value)
        loop.run()
        assert len(unhandled) == 1
        assert isinstance(unhandled[0], ValueError)

    def test_handler_attached_later_in_same_cycle(self, loop, unhandled):
        rejected = Promise.reject('x')
        Promise.resolve().then(lambda value: rejected.catch(lambda reason: None))
        loop.run()
        assert unhandled == []

    def test_rejection_inside_cycle_is_reported_after_drain(self, loop, unhandled):
        log = []

        def reject_inside(value):
            Promise.reject('inner')

        Promise.resolve().then(reject_inside)
        Promise.resolve().then(lambda value: log.append(list(unhandled)))
        loop.run()
        assert log == [[]]
        assert unhandled == ['inner']

    def test_late_handling_is_reported(self, loop, unhandled, handled):
        rejected = Promise.reject('x')
        loop.run()
        assert unhandled == ['x']
        assert handled == []

        rejected.catch(lambda reason: None)
        loop.run()
        assert handled == ['x']

    def test_late_handling_from_timer(self, loop, unhandled, handled):
        rejected = Promise.reject('x')
        loop.set_timeout(lambda: rejected.catch(lambda reason: None), 100)
        loop.run()
        assert unhandled == ['x']
        assert handled == ['x']

    def test_late_handling_reported_once(self, loop, handled):
        rejected = Promise.reject('x')
        loop.run()
        rejected.catch(lambda reason: None)
        rejected.catch(lambda reason: None)
        loop.run()
        assert handled == ['x']

    def test_fulfilled_promises_are_never_reported(self, loop, unhandled):
        Promise.resolve(1).then(lambda value: value)
        loop.run()
        assert unhandled == []


class TestDefaultReporters:
    """Test the structlog reporters used when no callbacks are given."""

    def test_warns_on_unhandled(self, loop):
        runtime = Runtime(loop)
        with capture_logs() as logs:
            Promise.reject('x', runtime=runtime)
            loop.run()
        assert logs == [
            {'event': 'unhandled_rejection', 'reason': "'x'", 'log_level': 'warning'}
        ]

    def test_reports_late_handling(self, loop):
        runtime = Runtime(loop)
        with capture_logs() as logs:
            rejected = Promise.reject('x', runtime=runtime)
            loop.run()
            rejected.catch(lambda reason: None)
            loop.run()
        assert [entry['event'] for entry in logs] == ['unhandled_rejection', 'rejection_handled']

    def test_ignore_setting_silences(self, loop, settings_env):
        settings_env('UNHANDLED_REJECTIONS', 'ignore')
        runtime = Runtime(loop)
        with capture_logs() as logs:
            Promise.reject('x', runtime=runtime)
            loop.run()
        assert logs == []

    def test_failing_reporter_is_logged(self, loop):
        def reporter(reason, promise):
            raise RuntimeError('reporter broke')

        runtime = Runtime(loop, on_unhandled=reporter)
        values = []
        with capture_logs() as logs:
            Promise.reject('x', runtime=runtime)
            Promise.resolve(1, runtime=runtime).then(values.append)
            loop.run()
        assert values == [1]
        assert [entry['event'] for entry in logs] == ['rejection_reporter_failed']
        assert logs[0]['reporter'] == 'reporter'
