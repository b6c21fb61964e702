# Copyright 2016 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.
"""Common utilities for the tests
"""
import heapq
import unittest

from flowcut.base import Observable, Observer, Subscription, FatalError, \
                         to_seconds


class ValidationObserver(Observer):
    """Compare the values in a event stream to the expected values.
    Use the test_case for the assertions (for proper error reporting in a unit
    test).
    """
    def __init__(self, expected_stream, test_case,
                 extract_value_fn=lambda event:event):
        self.expected_stream = expected_stream
        self.next_idx = 0
        self.test_case = test_case # this can be either a method or a class
        self.extract_value_fn = extract_value_fn
        self.completed = False
        self.name = "ValidationObserver(%s)" % \
                      test_case.__class__.__name__ \
                    if isinstance(test_case, unittest.TestCase) \
                    else "ValidationObserver(%s.%s)" % \
                      (test_case.__self__.__class__.__name__,
                       test_case.__name__)

    def _tcls(self):
        return self.test_case if isinstance(self.test_case, unittest.TestCase)\
               else self.test_case.__self__

    def on_next(self, x):
        tcls = self._tcls()
        tcls.assertFalse(self.completed, "Got an event after on_completed()")
        tcls.assertLess(self.next_idx, len(self.expected_stream),
                        "Got an event after reaching the end of the expected stream")
        expected = self.expected_stream[self.next_idx]
        actual = self.extract_value_fn(x)
        tcls.assertEqual(actual, expected,
                       "Values for element %d of event stream mismatch" %
                         self.next_idx)
        self.next_idx += 1

    def on_completed(self):
        tcls = self._tcls()
        tcls.assertFalse(self.completed, "Got on_completed() twice")
        tcls.assertEqual(self.next_idx, len(self.expected_stream),
                         "Got on_completed() before end of stream")
        self.completed = True

    def on_error(self, exc):
        tcls = self._tcls()
        tcls.assertTrue(False,
                        "Got an unexpected on_error call with parameter: %s" %
                        exc)

    def __repr__(self):
        return self.name


class CaptureObserver(Observer):
    """Capture the sequence of events in a list for later use. Also records
    the terminal notifications, so tests can check that exactly one
    arrived.
    """
    def __init__(self, expecting_error=False):
        self.events = []
        self.completed = False
        self.expecting_error = expecting_error
        self.errored = False
        self.error = None
        self.terminal_count = 0

    def on_next(self, x):
        self.events.append(x)

    def on_completed(self):
        self.completed = True
        self.terminal_count += 1

    def on_error(self, e):
        self.terminal_count += 1
        if self.expecting_error:
            self.errored = True
            self.error = e
        else:
            raise FatalError("Should not get on_error, got on_error(%s)" % e)


class PushSource(Observable):
    """An Observable whose events are pushed by the test, through push(),
    complete() and fail(). Keeps track of the subscriptions it has been
    given, so tests can check that they were cancelled.
    """
    def __init__(self, name='PushSource'):
        super().__init__(name=name)
        self.observers = []
        self.subscriptions = []

    def _subscribe_core(self, observer, subscription):
        self.observers.append(observer)
        self.subscriptions.append(subscription)
        subscription.add(lambda: self.observers.remove(observer))

    @property
    def active(self):
        return len(self.observers)

    def push(self, *values):
        for x in values:
            for o in list(self.observers):
                o.on_next(x)

    def complete(self):
        for o in list(self.observers):
            o.on_completed()

    def fail(self, e):
        for o in list(self.observers):
            o.on_error(e)


class VirtualScheduler:
    """Stand-in for flowcut.base.Scheduler that runs on a virtual clock.
    Nothing happens until the test advances the clock. Timers that were
    cancelled before firing are recorded in cancelled.
    """
    def __init__(self, start=0.0):
        self.clock = start
        self.queue = []
        self.seq = 0
        self.pending = set()
        self.cancelled = []

    def now(self):
        return self.clock

    def after(self, interval, action):
        due = self.clock + to_seconds(interval)
        token = Subscription()
        self.seq += 1
        heapq.heappush(self.queue, (due, self.seq, token, action))
        self.pending.add(token)
        def cancel():
            if token in self.pending:
                self.pending.remove(token)
                self.cancelled.append(due)
        token.add(cancel)
        return token

    def advance_to(self, t):
        while self.queue and self.queue[0][0] <= t:
            (due, seq, token, action) = heapq.heappop(self.queue)
            if token not in self.pending:
                continue
            self.pending.remove(token)
            self.clock = due
            action()
        self.clock = max(self.clock, t)

    def advance_by(self, dt):
        self.advance_to(self.clock + dt)

    def run(self):
        """Fire timers until there are none left."""
        while self.pending:
            self.advance_to(min(q[0] for q in self.queue))


class TimedSource(Observable):
    """An Observable that, for each subscription, emits values at fixed
    offsets from the time of subscribing, using the given scheduler. The
    events are a list of (offset, value) pairs. The stream can be ended with
    on_completed at complete_at or on_error(error) at error_at.
    """
    def __init__(self, scheduler, events, complete_at=None, error=None,
                 error_at=None, name='TimedSource'):
        super().__init__(name=name)
        self.scheduler = scheduler
        self.events = events
        self.complete_at = complete_at
        self.error = error
        self.error_at = error_at
        self.subscriptions = []

    def _subscribe_core(self, observer, subscription):
        self.subscriptions.append(subscription)
        def emit(v):
            return lambda: observer.on_next(v)
        for (offset, value) in self.events:
            subscription.add(self.scheduler.after(offset, emit(value)).cancel)
        if self.complete_at is not None:
            subscription.add(self.scheduler.after(self.complete_at,
                                                  observer.on_completed).cancel)
        if self.error_at is not None:
            subscription.add(self.scheduler.after(self.error_at,
                                                  lambda: observer.on_error(self.error)).cancel)


def failing_iterable(values, exc):
    """Generator that yields the values and then raises exc."""
    for v in values:
        yield v
    raise exc
