import unittest

import pytest

from cascadebind import CascadeContainer, NullContainer, ServiceNotFound


class TestExtendInstances(unittest.TestCase):
    cont: CascadeContainer

    def setUp(self):
        self.cont = CascadeContainer()
        self.calls = []

    def wrap(self, container):
        self.calls.append(container)
        return CascadeContainer(container)

    def test_extend_instance_replaces_value_immediately(self):
        original = NullContainer()
        self.cont.set("container", original)

        self.cont.extend("container", self.wrap)

        assert self.calls == [original], "instances are extended eagerly"
        extended = self.cont.get("container")
        assert isinstance(extended, CascadeContainer)
        assert extended.parent is original
        assert self.cont.get("container") is extended
        assert len(self.calls) == 1

    def test_extensions_compose_in_order(self):
        self.cont.set("n", 1)
        self.cont.extend("n", lambda n: n + 1)
        self.cont.extend("n", lambda n: n * 10)

        assert self.cont.get("n") == 20

    def test_failing_extension_leaves_instance_untouched(self):
        def broken(value):
            msg = "cannot decorate"
            raise RuntimeError(msg)

        self.cont.set("n", 1)

        with pytest.raises(RuntimeError):
            self.cont.extend("n", broken)
        assert self.cont.get("n") == 1


class TestExtendDeferred(unittest.TestCase):
    cont: CascadeContainer

    def setUp(self):
        self.cont = CascadeContainer()
        self.produced = []
        self.transformed = []

    def make(self):
        self.produced.append(1)
        return NullContainer()

    def wrap(self, container):
        self.transformed.append(container)
        return CascadeContainer(container)

    def test_extend_deferred_stays_lazy(self):
        self.cont.deferred("container", self.make)
        self.cont.extend("container", self.wrap)

        assert self.produced == []
        assert self.transformed == []

    def test_extend_deferred_runs_once_then_is_cached(self):
        self.cont.deferred("container", self.make)
        self.cont.extend("container", self.wrap)

        first = self.cont.get("container")
        second = self.cont.get("container")

        assert isinstance(first, CascadeContainer)
        assert isinstance(first.parent, NullContainer)
        assert second is first
        assert len(self.produced) == 1
        assert len(self.transformed) == 1

    def test_extensions_compose_in_order(self):
        self.cont.deferred("n", lambda: 1)
        self.cont.extend("n", lambda n: n + 1)
        self.cont.extend("n", lambda n: n * 10)

        assert self.cont.get("n") == 20

    def test_extend_after_promotion_is_eager(self):
        self.cont.deferred("container", self.make)
        self.cont.get("container")

        self.cont.extend("container", self.wrap)

        assert len(self.transformed) == 1
        assert len(self.produced) == 1


class TestExtendFactories(unittest.TestCase):
    cont: CascadeContainer

    def setUp(self):
        self.cont = CascadeContainer()
        self.transformed = []

    def test_extend_factory_reapplies_on_every_lookup(self):
        class Clock:
            timezone = "UTC"

        def localize(clock):
            self.transformed.append(clock)
            clock.timezone = "Europe/Madrid"
            return clock

        self.cont.factory("clock", Clock)
        self.cont.extend("clock", localize)

        a = self.cont.get("clock")
        b = self.cont.get("clock")

        assert a is not b
        assert a.timezone == "Europe/Madrid"
        assert b.timezone == "Europe/Madrid"
        assert len(self.transformed) == 2


def test_extend_by_alias_extends_the_target():
    c = CascadeContainer()
    c.set("container", c)
    c.alias("container", "interface")

    c.extend("interface", lambda container: container.cascade())

    assert isinstance(c.get("container"), CascadeContainer)
    assert c.get("container") is c.get("interface")
    assert c.get("container") is not c


def test_extension_fills_unannotated_parameters_by_name():
    c = CascadeContainer()
    c.set("n", 1)
    c.set("step", 5)

    c.extend("n", lambda n, step: n + step)

    assert c.get("n") == 6


def test_extension_autowires_its_other_parameters():
    class Clock:
        def __init__(self, now: str = "2025-01-01T12:00:00Z"):
            self.now = now

    class Stamped:
        def __init__(self, inner, now):
            self.inner = inner
            self.now = now

    c = CascadeContainer()
    c.deferred(Clock, Clock)
    c.factory("service", NullContainer)

    def stamp(service, clock: Clock):
        return Stamped(service, clock.now)

    c.extend("service", stamp)

    result = c.get("service")
    assert isinstance(result, Stamped)
    assert isinstance(result.inner, NullContainer)
    assert result.now == "2025-01-01T12:00:00Z"


def test_extend_unbound_service_raises_service_not_found():
    c = CascadeContainer()

    with pytest.raises(ServiceNotFound) as ctx:
        c.extend("missing", lambda value: value)
    assert ctx.value.service_id == "missing"


def test_extend_requires_callable():
    c = CascadeContainer()
    c.set("n", 1)

    with pytest.raises(TypeError):
        c.extend("n", "not callable")
