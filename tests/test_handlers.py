"""
Test 2: Handler Chain (handlers.py)

Tests FaultHandler and HandlerChain ordering, replacement and mutation.
"""

import threading

import pytest
from unittest.mock import MagicMock

from faultline.core import Fault, FaultKind, Severity
from faultline.handlers import FaultHandler, HandlerChain
from faultline.testing import RecordingHandler


def make_fault(message="original"):
    return Fault.from_signal(Severity.WARNING, message, "app.py", 1)


# ============================================================================
# FaultHandler (abstract)
# ============================================================================

class TestFaultHandler:

    def test_abstract(self):
        with pytest.raises(TypeError):
            FaultHandler()

    def test_subclass(self):
        class MyHandler(FaultHandler):
            def handle(self, fault):
                return None

        assert MyHandler().handle(make_fault()) is None


# ============================================================================
# Mutation
# ============================================================================

class TestChainMutation:

    def test_empty(self):
        chain = HandlerChain()
        assert chain.list() == []
        assert len(chain) == 0

    def test_push_is_fluent(self):
        chain = HandlerChain()
        a, b = RecordingHandler(), RecordingHandler()
        assert chain.push(a).push(b) is chain
        assert chain.list() == [a, b]

    def test_duplicates_allowed(self):
        chain = HandlerChain()
        h = RecordingHandler()
        chain.push(h).push(h)
        assert len(chain) == 2

    def test_push_then_pop_returns_same_handler(self):
        chain = HandlerChain([RecordingHandler()])
        h = RecordingHandler()
        chain.push(h)
        assert chain.pop() is h
        assert len(chain) == 1

    def test_pop_empty_returns_none(self):
        assert HandlerChain().pop() is None

    def test_clear(self):
        chain = HandlerChain([RecordingHandler() for _ in range(5)])
        assert chain.clear() is chain
        assert chain.list() == []

    def test_list_is_a_copy(self):
        chain = HandlerChain([RecordingHandler()])
        chain.list().clear()
        assert len(chain) == 1

    def test_constructor_handlers_keep_order(self):
        a, b = RecordingHandler(), RecordingHandler()
        assert HandlerChain([a, b]).list() == [a, b]


# ============================================================================
# Dispatch
# ============================================================================

class TestChainRun:

    def test_runs_in_reverse_registration_order(self):
        calls = []
        h1, h2, h3 = (RecordingHandler(log=calls, name=n) for n in ("h1", "h2", "h3"))
        chain = HandlerChain().push(h1).push(h2).push(h3)

        chain.run(make_fault())

        assert calls == [h3, h2, h1]

    def test_no_replacement_returns_original(self):
        fault = make_fault()
        chain = HandlerChain([RecordingHandler(), RecordingHandler()])
        assert chain.run(fault) is fault

    def test_empty_chain_returns_original(self):
        fault = make_fault()
        assert HandlerChain().run(fault) is fault

    def test_replacement_flows_to_later_handlers(self):
        replacement = make_fault("replaced")
        first_registered = RecordingHandler()
        replacer = RecordingHandler(replacement)
        chain = HandlerChain([first_registered, replacer])

        result = chain.run(make_fault())

        assert result is replacement
        assert first_registered.last_fault is replacement

    def test_last_replacement_wins(self):
        r1, r2 = make_fault("r1"), make_fault("r2")
        # Registration order: r2-producer first, so it runs last
        chain = HandlerChain([RecordingHandler(r2), RecordingHandler(r1)])
        assert chain.run(make_fault()) is r2

    def test_exception_replacement_becomes_native_fault(self):
        error = ValueError("swapped")
        chain = HandlerChain([RecordingHandler(error)])

        result = chain.run(make_fault())

        assert result.kind is FaultKind.NATIVE
        assert result.cause is error

    def test_non_fault_return_is_ignored(self):
        fault = make_fault()
        chain = HandlerChain([RecordingHandler("not a fault")])
        assert chain.run(fault) is fault

    def test_every_handler_sees_one_value(self):
        handlers = [RecordingHandler() for _ in range(3)]
        fault = make_fault()
        HandlerChain(handlers).run(fault)
        assert all(h.faults == [fault] for h in handlers)

    def test_handler_exception_propagates_and_stops_chain(self):
        skipped = RecordingHandler()
        failing = RecordingHandler(raises=RuntimeError("handler broke"))
        chain = HandlerChain([skipped, failing])

        with pytest.raises(RuntimeError, match="handler broke"):
            chain.run(make_fault())

        assert failing.call_count == 1
        assert skipped.call_count == 0

    def test_mock_handler(self):
        handler = MagicMock(spec=FaultHandler)
        handler.handle.return_value = None
        fault = make_fault()

        HandlerChain([handler]).run(fault)

        handler.handle.assert_called_once_with(fault)

    def test_handler_may_mutate_chain_during_run(self):
        chain = HandlerChain()

        class Pusher(FaultHandler):
            def handle(self, fault):
                chain.push(RecordingHandler())

        chain.push(Pusher())
        chain.run(make_fault())
        assert len(chain) == 2


class TestChainConcurrency:

    def test_concurrent_pushes(self):
        chain = HandlerChain()

        def worker():
            for _ in range(100):
                chain.push(RecordingHandler())

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(chain) == 400
