# Copyright 2016 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.
"""Filters that drop a prefix or suffix of a stream: skip, skip_while,
skip_last and their time-based versions.
"""
from collections import deque
import threading

from flowcut.base import Observable, Filter, FunctionFilter, FilterObservable,\
                         ArgumentOutOfRangeException, filtermethod, to_seconds
from flowcut.filters.timeout import Timeout


@filtermethod(Observable, alias="drop")
def skip(this, count, scheduler=None):
    """Bypasses a specified number of elements in an event sequence
    and then returns the remaining elements.
    If a scheduler is given, count is instead a duration and this is the
    same as skip_with_time(count, scheduler).

    Keyword arguments:
    count: The number of elements to skip before returning the remaining
        elements. A count of zero (or less) passes everything through.
    Returns an event sequence that contains the elements that occur
    after the specified index in the input sequence.
    """
    if scheduler is not None:
        return this.skip_with_time(count, scheduler)

    def make_filter(observer):
        remaining = [count]
        def on_next(self, value):
            if remaining[0] <= 0:
                self._dispatch_next(value)
            else:
                remaining[0] -= 1
        return FunctionFilter(observer, on_next=on_next,
                              name="skip(%s)" % count)
    return FilterObservable(this, make_filter, name="skip(%s)" % count)


class SkipWithTime(Filter):
    """Drop events until the timer fires, then pass everything on.
    """
    def __init__(self, observer, scheduler, interval):
        super().__init__(observer)
        self.interval = interval
        self.open = False
        self.lock = threading.RLock()
        self.timeout = Timeout(scheduler, self.on_timeout)
        self.name = "skip_with_time(%s)" % interval

    def _start(self):
        self.timeout.start(self.interval)

    def on_timeout(self):
        with self.lock:
            self.open = True

    def on_next(self, x):
        with self.lock:
            if self.open:
                self._dispatch_next(x)

    def on_error(self, e):
        with self.lock:
            self._dispatch_error(e)

    def on_completed(self):
        with self.lock:
            self._dispatch_completed()

    def _close(self):
        self.timeout.clear()


@filtermethod(Observable)
def skip_with_time(this, duration, scheduler):
    """Drop the events that arrive within duration (seconds or a timedelta)
    of subscribing and pass on everything after that. If the input
    completes or errors first, that notification is passed on and the timer
    cancelled.
    """
    interval = to_seconds(duration)
    return FilterObservable(this,
                            lambda observer: SkipWithTime(observer, scheduler,
                                                          interval),
                            name="skip_with_time(%s)" % interval)


@filtermethod(Observable)
def skip_while(this, predicate):
    """Drop events as long as predicate(event) is true. From the first event
    for which it is false, pass on everything. The predicate is not called
    again after that.
    """
    def make_filter(observer):
        skipping = [True]
        def on_next(self, x):
            if skipping[0] and predicate(x):
                return
            skipping[0] = False
            self._dispatch_next(x)
        return FunctionFilter(observer, on_next, name="skip_while")
    return FilterObservable(this, make_filter, name="skip_while")


@filtermethod(Observable)
def skip_last(this, count, scheduler=None):
    """Bypasses a specified number of elements at the end of an event
    sequence. Events are held back in a buffer of count elements; once the
    buffer is full, each new event pushes out (and sends on) the oldest.
    The events still in the buffer at completion are dropped.

    If a scheduler is given, count is instead a duration and this is the same
    as skip_last_with_time(count, scheduler).
    """
    if scheduler is not None:
        return this.skip_last_with_time(count, scheduler)
    if count < 0:
        raise ArgumentOutOfRangeException("skip_last count must be non-negative, got %s" %
                                          count)

    def make_filter(observer):
        q = deque()
        def on_next(self, x):
            q.append(x)
            if len(q) > count:
                self._dispatch_next(q.popleft())

        def on_close(self):
            q.clear()
        return FunctionFilter(observer, on_next=on_next, on_close=on_close,
                              name="skip_last(%s)" % count)
    return FilterObservable(this, make_filter, name="skip_last(%s)" % count)


@filtermethod(Observable)
def skip_last_with_time(this, duration, scheduler):
    """Drop the events that arrive within duration (seconds or a timedelta)
    of the end of the stream. Events are held back and sent on once they are
    at least duration old, checked whenever a new event arrives and at
    completion. Arrival times come from scheduler.now().
    """
    interval = to_seconds(duration)

    def make_filter(observer):
        q = deque()
        lock = threading.RLock()
        def release_old(self, now):
            while len(q) and now - q[0][1] >= interval:
                (v, ts) = q.popleft()
                self._dispatch_next(v)

        def on_next(self, x):
            with lock:
                now = scheduler.now()
                q.append((x, now))
                release_old(self, now)

        def on_completed(self):
            with lock:
                release_old(self, scheduler.now())
                self._dispatch_completed()

        def on_close(self):
            q.clear()
        return FunctionFilter(observer, on_next=on_next, on_completed=on_completed,
                              on_close=on_close,
                              name="skip_last_with_time(%s)" % interval)
    return FilterObservable(this, make_filter,
                            name="skip_last_with_time(%s)" % interval)
