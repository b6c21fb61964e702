# Copyright 2016 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.
"""Filters that pass on a bounded prefix or suffix of a stream: take,
take_while, take_last, last and their time-based versions.
"""
from collections import deque
import threading

from flowcut.base import Observable, Filter, FunctionFilter, FilterObservable,\
                         FatalError, ArgumentOutOfRangeException, \
                         filtermethod, to_seconds
from flowcut.internal import NO_VALUE
from flowcut.filters.timeout import Timeout


class SequenceContainsNoElementsError(FatalError):
    pass


@filtermethod(Observable)
def take(this, count, scheduler=None):
    """Takes a specified number of contiguous elements in an event sequence.
    If a scheduler is given, count is instead a duration and this is the
    same as take_with_time(count, scheduler).

    Keyword arguments:
    count: The number of elements to send forward before skipping the remaining
           elements. A count of zero (or less) completes immediately, without
           subscribing to the input.
    """
    if scheduler is not None:
        return this.take_with_time(count, scheduler)

    if count <= 0:
        def complete_now(observer, subscription):
            observer.on_completed()
        return Observable(complete_now, name="take(%s)" % count)

    def make_filter(observer):
        remaining = [count]
        def on_next(self, value):
            remaining[0] -= 1
            self._dispatch_next(value)
            if remaining[0]==0:
                self.disconnect_from_upstream()
                self._dispatch_completed()
        # If the input completes or errors before we have seen count
        # elements, that notification is passed through unchanged.
        return FunctionFilter(observer, on_next=on_next,
                              name="take(%s)" % count)
    return FilterObservable(this, make_filter, name="take(%s)" % count)


class TakeWithTime(Filter):
    """Pass on events until the timer fires, then complete.
    """
    def __init__(self, observer, scheduler, interval):
        super().__init__(observer)
        self.interval = interval
        self.lock = threading.RLock()
        self.timeout = Timeout(scheduler, self.on_timeout)
        self.name = "take_with_time(%s)" % interval

    def _start(self):
        self.timeout.start(self.interval)

    def on_timeout(self):
        with self.lock:
            self.disconnect_from_upstream()
            self._dispatch_completed()

    def on_next(self, x):
        with self.lock:
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
def take_with_time(this, duration, scheduler):
    """Pass on the events that arrive within duration (seconds or a
    timedelta) of subscribing, then complete. If the input completes or
    errors first, that notification is passed on and the timer cancelled.
    """
    interval = to_seconds(duration)
    return FilterObservable(this,
                            lambda observer: TakeWithTime(observer, scheduler,
                                                          interval),
                            name="take_with_time(%s)" % interval)


@filtermethod(Observable)
def take_while(this, predicate):
    """Pass on events as long as predicate(event) is true. The first event
    for which it is false is dropped, the stream completes, and the input
    subscription is cancelled.
    """
    def make_filter(observer):
        def on_next(self, x):
            if predicate(x):
                self._dispatch_next(x)
            else:
                self.disconnect_from_upstream()
                self._dispatch_completed()
        return FunctionFilter(observer, on_next, name="take_while")
    return FilterObservable(this, make_filter, name="take_while")


@filtermethod(Observable)
def take_last(this, count, scheduler=None):
    """Takes a specified number of contiguous elements from the end of an observable sequence.
    This operator accumulates a buffer with a length enough to store
    elements count elements. Upon completion of the source sequence, this
    buffer is drained on the result sequence. This causes the elements to be
    delayed. If the source sequence ends with an error, the buffer is
    discarded and only the error is passed on.

    If a scheduler is given, count is instead a duration and this is the same
    as take_last_with_time(count, scheduler).

    Keyword arguments:
    count: The number of elements to take from the end of the sequence
    """
    if scheduler is not None:
        return this.take_last_with_time(count, scheduler)
    if count < 0:
        raise ArgumentOutOfRangeException("take_last count must be non-negative, got %s" %
                                          count)

    def make_filter(observer):
        q = deque(maxlen=count)
        def on_next(self, x):
            q.append(x)

        def on_completed(self):
            while len(q):
                v = q.popleft()
                self._dispatch_next(v)
            self._dispatch_completed()

        def on_error(self, e):
            q.clear()
            self._dispatch_error(e)

        def on_close(self):
            q.clear()
        return FunctionFilter(observer, on_next=on_next, on_completed=on_completed,
                              on_error=on_error, on_close=on_close,
                              name="take_last(%s)" % count)
    return FilterObservable(this, make_filter, name="take_last(%s)" % count)


@filtermethod(Observable)
def take_last_with_time(this, duration, scheduler):
    """Upon completion, pass on the events that arrived within duration
    (seconds or a timedelta) of the completion, in their original order.
    Arrival times come from scheduler.now().
    """
    interval = to_seconds(duration)

    def make_filter(observer):
        q = deque()
        lock = threading.RLock()
        def trim(now):
            while len(q) and now - q[0][1] >= interval:
                q.popleft()

        def on_next(self, x):
            with lock:
                now = scheduler.now()
                q.append((x, now))
                trim(now)

        def on_completed(self):
            with lock:
                trim(scheduler.now())
                while len(q):
                    (v, ts) = q.popleft()
                    self._dispatch_next(v)
                self._dispatch_completed()

        def on_error(self, e):
            with lock:
                q.clear()
                self._dispatch_error(e)

        def on_close(self):
            q.clear()
        return FunctionFilter(observer, on_next=on_next, on_completed=on_completed,
                              on_error=on_error, on_close=on_close,
                              name="take_last_with_time(%s)" % interval)
    return FilterObservable(this, make_filter,
                            name="take_last_with_time(%s)" % interval)


@filtermethod(Observable)
def last(this, default=NO_VALUE):
    """Pass on only the final element of the stream, once the stream
    completes. If the stream was empty, default (which may be None) is passed
    on instead. If no default was given either, an on_error with a
    SequenceContainsNoElementsError is sent.
    """
    def make_filter(observer):
        value = [NO_VALUE]

        def on_next(self, x):
            value[0] = x

        def on_completed(self):
            if value[0] is NO_VALUE and default is NO_VALUE:
                self._dispatch_error(SequenceContainsNoElementsError())
            else:
                self._dispatch_next(default if value[0] is NO_VALUE else value[0])
                self._dispatch_completed()
        return FunctionFilter(observer, on_next=on_next, on_completed=on_completed,
                              name='last')
    return FilterObservable(this, make_filter, name='last')
