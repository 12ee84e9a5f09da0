"""
Shared fixtures: in-memory telemetry and provider/consumer wiring
"""
import threading
from types import SimpleNamespace

import pytest
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from cmdbus.config import BusConfig
from cmdbus.registry import BusContext
from cmdbus.result import CallResult, Status
from cmdbus.telemetry.metrics import setup_metrics
from cmdbus.telemetry.tracer import setup_tracer


@pytest.fixture(scope="session", autouse=True)
def telemetry():
    """Route spans and metrics to in-memory sinks for the whole session"""
    span_exporter = InMemorySpanExporter()
    metric_reader = InMemoryMetricReader()
    setup_tracer("cmdbus-tests", exporter=span_exporter)
    setup_metrics("cmdbus-tests", reader=metric_reader)
    return SimpleNamespace(spans=span_exporter, metrics=metric_reader)


class FatalRecorder:
    """Fatal handler that records instead of aborting the process"""

    def __init__(self):
        self.errors = []
        self.event = threading.Event()

    def __call__(self, error):
        self.errors.append(error)
        self.event.set()

    def wait(self, timeout=2.0):
        return self.event.wait(timeout)


class Recorder:
    """Provider callback that records every command it receives"""

    def __init__(self, result=None):
        self.commands = []
        self.private = []
        self.result = result

    def __call__(self, private_data, command):
        self.commands.append(command)
        self.private.append(private_data)
        if self.result is not None:
            return self.result
        return CallResult(Status.OK, command)


@pytest.fixture
def fatal():
    return FatalRecorder()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def context():
    """BusContext whose loops and consumers are torn down after the test"""
    ctx = BusContext(BusConfig(max_listeners=4, read_timeout=1.0))
    yield ctx
    # Stop loops before closing consumers: a closed consumer reads as EOF on the listener
    for name in ctx.names():
        handle = ctx.find(name)
        if handle.loop is not None:
            handle.loop.stop()
    for name in ctx.names():
        for listener in ctx.find(name).listeners:
            listener.close()


@pytest.fixture
def provider(context, recorder, fatal):
    """Provider 'vadmin' with two registered consumers, started"""
    handle = context.create("vadmin", fatal_handler=fatal)
    consumers = [context.register("vadmin"), context.register("vadmin")]
    handle.install(recorder, private_data={"owner": "vadmin"})
    context.start("vadmin")
    yield SimpleNamespace(handle=handle, consumers=consumers, recorder=recorder, fatal=fatal)
    handle.loop.stop()
    for consumer in consumers:
        consumer.close()
