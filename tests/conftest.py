"""Pytest configuration for promisecore tests."""

import pytest

from promisecore import EventLoop, Runtime, set_runtime
from promisecore.config import get_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    """Re-read settings for every test so monkeypatched env vars apply."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings_env(monkeypatch):
    """Set a ``PROMISECORE_*`` variable and drop the cached settings.

    Fixtures such as ``loop`` read settings before the test body runs.
    """
    def setenv(name, value):
        monkeypatch.setenv('PROMISECORE_' + name, value)
        get_settings.cache_clear()

    return setenv


@pytest.fixture
def loop():
    return EventLoop()


@pytest.fixture
def unhandled():
    """Reasons reported as unhandled, in report order."""
    return []


@pytest.fixture
def handled():
    """Reasons of reported rejections that were handled late."""
    return []


@pytest.fixture(autouse=True)
def runtime(loop, unhandled, handled):
    """Install a runtime driven by ``loop`` as the default for the test."""
    runtime = Runtime(
        loop,
        on_unhandled=lambda reason, promise: unhandled.append(reason),
        on_handled=lambda promise: handled.append(promise.result),
    )
    previous = set_runtime(runtime)
    yield runtime
    set_runtime(previous)
