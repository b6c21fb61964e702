# Copyright 2016 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.
"""take_until and skip_until. Both accept either a predicate over the
events or a second ("other") Observable.

With an other Observable, the first event of any kind from it (on_next,
on_completed or on_error) is the cutoff, and its payload is ignored. An
on_error from the other Observable is a cutoff like any other and is not
passed downstream.

The filters for the other Observable case hold two subscriptions, which
may call back from different threads. Whichever event is seen first
decides the outcome. The decision is made under a lock, and events from
the losing side are ignored afterward.
"""
import threading
import logging
logger = logging.getLogger(__name__)

from flowcut.base import Observable, Filter, FunctionFilter, FilterObservable,\
                         CallableAsObserver, Subscription, filtermethod


class _CompanionFilter(Filter):
    """Base for the filters that watch an other Observable. The events of
    the other Observable arrive on the on_other_next(), on_other_error(),
    and on_other_completed() methods.
    """
    def __init__(self, observer, other):
        super().__init__(observer)
        self.other = other
        self.lock = threading.RLock()
        self.decided = False
        self.other_subscription = Subscription()

    def _start(self):
        # The other Observable is subscribed first. If it fires while we
        # subscribe, the decision is made before the input is subscribed.
        self._subscription.add(self.other_subscription.cancel)
        self.other._subscribe_with(
            CallableAsObserver(on_next=self.on_other_next,
                               on_error=self.on_other_error,
                               on_completed=self.on_other_completed),
            self.other_subscription)

    def on_other_next(self, x):
        self._other_fired()

    def on_other_error(self, e):
        logger.warning("%s: other stream failed with %r, treating it as the cutoff" %
                       (self, e))
        self._other_fired()

    def on_other_completed(self):
        self._other_fired()

    def _other_fired(self):
        raise NotImplementedError


class TakeUntilOther(_CompanionFilter):
    def __init__(self, observer, other):
        super().__init__(observer, other)
        self.name = "take_until(%s)" % other

    def _other_fired(self):
        with self.lock:
            if self.decided:
                return
            self.decided = True
            self.other_subscription.cancel()
            self.disconnect_from_upstream()
            self._dispatch_completed()

    def on_next(self, x):
        with self.lock:
            if not self.decided:
                self._dispatch_next(x)

    def on_error(self, e):
        with self.lock:
            if self.decided:
                return
            self.decided = True
            self.other_subscription.cancel()
            self._dispatch_error(e)

    def on_completed(self):
        with self.lock:
            if self.decided:
                return
            self.decided = True
            self.other_subscription.cancel()
            self._dispatch_completed()


class SkipUntilOther(_CompanionFilter):
    def __init__(self, observer, other):
        super().__init__(observer, other)
        self.name = "skip_until(%s)" % other

    def _other_fired(self):
        with self.lock:
            if self.decided:
                return
            self.decided = True
        # no further interest in the other stream
        self.other_subscription.cancel()

    def on_next(self, x):
        with self.lock:
            if self.decided:
                self._dispatch_next(x)

    def on_error(self, e):
        with self.lock:
            self.other_subscription.cancel()
            self._dispatch_error(e)

    def on_completed(self):
        with self.lock:
            self.other_subscription.cancel()
            self._dispatch_completed()


@filtermethod(Observable)
def take_until(this, other_or_predicate):
    """Pass on events until a cutoff, then complete.

    If other_or_predicate is an Observable, the cutoff is its first event of
    any kind. Events of this stream are passed on until then, and the
    cutoff completes the stream and cancels both subscriptions. If this
    stream ends first, its notification is passed on and the other
    subscription cancelled.

    Otherwise it is a predicate, and events are passed on until one for
    which the predicate is true. That event is the last one passed on.
    """
    if isinstance(other_or_predicate, Observable):
        other = other_or_predicate
        return FilterObservable(this,
                                lambda observer: TakeUntilOther(observer, other),
                                name="take_until(%s)" % other)

    predicate = other_or_predicate
    def make_filter(observer):
        def on_next(self, x):
            cutoff = predicate(x)
            self._dispatch_next(x)
            if cutoff:
                self.disconnect_from_upstream()
                self._dispatch_completed()
        return FunctionFilter(observer, on_next, name="take_until")
    return FilterObservable(this, make_filter, name="take_until")


@filtermethod(Observable)
def skip_until(this, other_or_predicate):
    """Drop events until a cutoff, then pass on everything.

    If other_or_predicate is an Observable, the cutoff is its first event of
    any kind, after which the other subscription is cancelled.

    Otherwise it is a predicate, and events are dropped until one for which
    the predicate is true. That event and all later ones are passed on,
    without calling the predicate again.
    """
    if isinstance(other_or_predicate, Observable):
        other = other_or_predicate
        return FilterObservable(this,
                                lambda observer: SkipUntilOther(observer, other),
                                name="skip_until(%s)" % other)

    predicate = other_or_predicate
    def make_filter(observer):
        skipping = [True]
        def on_next(self, x):
            if skipping[0] and not predicate(x):
                return
            skipping[0] = False
            self._dispatch_next(x)
        return FunctionFilter(observer, on_next, name="skip_until")
    return FilterObservable(this, make_filter, name="skip_until")
