# Copyright 2016,2017 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.
"""
Base functionality for flowcut. All the core abstractions
are defined here. Everything else is just subclassing or using
these abstractions.

The key abstractions are:

 * Observer     - the interface for things that receive an event stream
                  through on_next(), on_error(), and on_completed().
 * Subscription - the cancellable handle for one observer's attachment to
                  an Observable. Cancelling it stops delivery and releases
                  everything the attachment holds (upstream subscriptions,
                  timers, buffers).
 * Observable   - a cold description of an event stream. Each call to
                  subscribe() is an independent execution with its own state.
 * Filter       - the per-subscription adapter created by an operator. It
                  is an Observer toward its upstream and dispatches to the
                  downstream Observer, never sending anything after a
                  terminal event.
 * Scheduler    - wraps an asyncio event loop. It provides the current time
                  and one-time timers for the time-bounded operators.

The operators themselves live in the flowcut.filters package. Importing
one of its modules adds the operator as a method on Observable.
"""

import asyncio
import datetime
import threading
import logging
logger = logging.getLogger(__name__)

from flowcut.internal import noop


class Observer:
    """This is the interface for the receiving end of an event stream.
    Subclasses override the methods they care about.
    """
    def on_next(self, x):
        pass

    def on_error(self, e):
        pass

    def on_completed(self):
        pass


class CallableAsObserver:
    """Wrap any callable with the Observer interface.
    We only pass it the on_next() calls. on_error and on_completed
    can be passed in or default to noops.
    """
    def __init__(self, on_next=None, on_error=None, on_completed=None):
        self.on_next = on_next or noop
        if on_error:
            self.on_error = on_error
        else:
            def default_error(err):
                if isinstance(err, FatalError):
                    raise err.with_traceback(err.__traceback__)
                else:
                    logger.error("%s: Received on_error(%s)" %
                                 (self, err))
            self.on_error = default_error
        self.on_completed = on_completed or noop

    def __str__(self):
        return 'CallableAsObserver(%s)' % str(self.on_next)

    def __repr__(self):
        return 'CallableAsObserver(on_next=%s, on_error=%s, on_completed=%s)' % \
            (repr(self.on_next), repr(self.on_error), repr(self.on_completed))


class FatalError(Exception):
    """This is the base class for exceptions that should not be turned into
    on_error events. This should be for out-of-bound errors, not for normal
    errors in the data stream. Examples of out-of-bound errors include an
    invalid operator argument or an exception raised by the final observer
    while an event is being dispatched to it.
    """
    pass


class ArgumentOutOfRangeException(FatalError):
    pass


class ExcInDispatch(FatalError):
    """Dispatching an event should not raise an error, other than a
    fatal error.
    """
    pass


class ScheduleError(FatalError):
    pass


def to_seconds(interval):
    """Accept either a number of seconds or a datetime.timedelta and return
    the number of seconds as a float. Negative intervals are rejected.
    """
    if isinstance(interval, datetime.timedelta):
        interval = interval.total_seconds()
    if interval < 0:
        raise ArgumentOutOfRangeException("Interval must be non-negative, got %s" %
                                          interval)
    return float(interval)


class Subscription:
    """The cancellable relationship between an Observable and one Observer.

    Release actions are registered with add(). cancel() runs each of them
    exactly once, no matter how many times (or from how many threads) it is
    called. An action added after the subscription was cancelled is run
    immediately.
    """
    def __init__(self, *actions):
        self._lock = threading.Lock()
        self._actions = list(actions)
        self.closed = False

    def add(self, action):
        with self._lock:
            if not self.closed:
                self._actions.append(action)
                return
        action()

    def cancel(self):
        with self._lock:
            if self.closed:
                return
            self.closed = True
            actions = self._actions
            self._actions = []
        for action in actions:
            action()

    def __repr__(self):
        return 'Subscription(closed=%s)' % self.closed


class Observable:
    """A cold event stream. The Observable itself holds no per-subscription
    state: every subscribe() call runs the production logic again for the
    new observer.

    A simple Observable can be built directly from a function::

        def produce(observer, subscription):
            observer.on_next(1)
            observer.on_completed()
        Observable(produce)

    The function should stop pushing events once subscription.closed is
    True, and can register cleanup with subscription.add().
    """
    def __init__(self, subscribe_fn=None, name=None):
        self._subscribe_fn = subscribe_fn
        if name:
            self.name = name

    def subscribe(self, observer=None, on_next=None, on_error=None,
                  on_completed=None):
        """Attach an observer and start the stream. The observer can be
        anything with on_next/on_error/on_completed methods or a plain
        callable (which will only receive on_next calls). Alternatively,
        pass the individual functions as keyword arguments.

        Returns a Subscription that can be cancelled to stop the stream.
        """
        if observer is None:
            observer = CallableAsObserver(on_next, on_error, on_completed)
        elif not hasattr(observer, 'on_next') and callable(observer):
            observer = CallableAsObserver(observer)
        subscription = Subscription()
        self._subscribe_with(observer, subscription)
        return subscription

    def _subscribe_with(self, observer, subscription):
        """Subscribe using a Subscription created by the caller. This is for
        filters that need a handle on a subscription before any events can
        arrive on it.
        """
        sink = Filter(observer)
        sink._attach(subscription, subscription)
        self._subscribe_core(sink, subscription)

    def _subscribe_core(self, observer, subscription):
        """Run the production logic, pushing events to observer. Subclasses
        override this. The observer is always a Filter, so it is safe
        to push to it after a terminal event or cancellation.
        """
        if self._subscribe_fn is None:
            raise FatalError("%s has no subscribe function" % self)
        self._subscribe_fn(observer, subscription)

    def __str__(self):
        if hasattr(self, 'name') and self.name:
            return self.name
        else:
            return self.__class__.__name__ + '()'


class Filter(Observer):
    """The per-subscription end of an operator. A Filter sits between its
    upstream subscription and a downstream observer. It holds two handles:

     * _subscription - the subscription the downstream side holds on us.
       When it is cancelled, we stop dispatching and release our state.
     * _upstream - our own subscription to the upstream Observable.
       Cancelling it stops the upstream events. It is cancelled
       whenever _subscription is.

    The _dispatch methods enforce the terminal-once rule: nothing is
    passed downstream after on_completed, on_error, or cancellation. After
    a terminal event is dispatched, the subscription is cancelled so that
    upstream subscriptions and timers are released right away.
    """
    def __init__(self, observer):
        self._observer = observer
        self._subscription = None
        self._upstream = None
        self._terminated = False

    def _attach(self, subscription, upstream):
        self._subscription = subscription
        self._upstream = upstream
        if upstream is not subscription:
            subscription.add(upstream.cancel)
        subscription.add(self._close)

    def _start(self):
        """Called once the filter is attached, before subscribing to the
        upstream. Subclasses start timers and companion subscriptions here.
        If the filter has terminated by the time this returns, the
        upstream is never subscribed.
        """
        pass

    def _close(self):
        """Called exactly once, when the subscription is cancelled or
        the filter has terminated. Release any held state here.
        """
        pass

    @property
    def is_stopped(self):
        return self._terminated or self._subscription.closed

    def disconnect_from_upstream(self):
        self._upstream.cancel()

    def on_next(self, x):
        self._dispatch_next(x)

    def on_error(self, e):
        self._dispatch_error(e)

    def on_completed(self):
        self._dispatch_completed()

    def _dispatch_next(self, x):
        if self.is_stopped:
            return
        try:
            self._observer.on_next(x)
        except FatalError:
            raise
        except Exception as e:
            raise ExcInDispatch("Unexpected exception when dispatching event '%s' to Observer %s from %s" %
                                (repr(x), self._observer, self)) from e

    def _dispatch_completed(self):
        if self.is_stopped:
            return
        self._terminated = True
        try:
            self._observer.on_completed()
        except FatalError:
            raise
        except Exception as e:
            raise ExcInDispatch("Unexpected exception when dispatching completed to Observer %s from %s" %
                                (self._observer, self)) from e
        finally:
            self._subscription.cancel()

    def _dispatch_error(self, e):
        if self.is_stopped:
            return
        self._terminated = True
        try:
            self._observer.on_error(e)
        except FatalError:
            raise
        except Exception as exc:
            raise ExcInDispatch("Unexpected exception when dispatching error '%s' to Observer %s from %s" %
                                (repr(e), self._observer, self)) from exc
        finally:
            self._subscription.cancel()

    def __str__(self):
        if hasattr(self, 'name'):
            return self.name
        else:
            return self.__class__.__name__ + '()'


class FunctionFilter(Filter):
    """Implement a filter by providing functions that implement the
    on_next, on_completed, and one_error logic. This is useful
    when the logic is really simple or when a more functional programming
    style is more convenient.

    Each function takes a "self" parameter, so it works almost like it was
    defined as a bound method. The signatures are then::

        on_next(self, x)
        on_completed(self)
        on_error(self, e)
        on_close(self)

    If a function is not provided to __init__, we just dispatch the call downstream.

    Exceptions other than FatalError raised by on_next (usually from a
    user-supplied predicate or key selector) are turned into a single
    on_error downstream, and the upstream subscription is cancelled.
    """
    def __init__(self, observer,
                 on_next=None, on_completed=None,
                 on_error=None, on_close=None, name=None):
        """name is an option name to be used in __str__() calls.
        """
        super().__init__(observer)
        self._on_next = on_next
        self._on_error = on_error
        self._on_completed = on_completed
        self._on_close = on_close
        if name:
            self.name = name

    def on_next(self, x):
        if self.is_stopped:
            return
        try:
            if self._on_next:
                # we pass in an extra "self" since this is a function, not a method
                self._on_next(self, x)
            else:
                self._dispatch_next(x)
        except FatalError:
            raise
        except Exception as e:
            logger.exception("Got an exception on %s.on_next(%s)" %
                             (self, x))
            self.disconnect_from_upstream() # stop from getting upstream events
            self._dispatch_error(e)

    def on_error(self, e):
        if self.is_stopped:
            return
        if self._on_error:
            self._on_error(self, e)
        else:
            self._dispatch_error(e)

    def on_completed(self):
        if self.is_stopped:
            return
        if self._on_completed:
            self._on_completed(self)
        else:
            self._dispatch_completed()

    def _close(self):
        if self._on_close:
            self._on_close(self)


class FilterObservable(Observable):
    """The Observable returned by an operator. For every subscription,
    make_filter(observer) is called to build a fresh Filter (and thus fresh
    operator state), which is then connected to the source.
    """
    def __init__(self, source, make_filter, name=None):
        super().__init__(name=name)
        self.source = source
        self.make_filter = make_filter

    def _subscribe_core(self, observer, subscription):
        upstream = Subscription()
        f = self.make_filter(observer)
        f._attach(subscription, upstream)
        f._start()
        if f.is_stopped:
            return
        self.source._subscribe_core(f, upstream)

    def __str__(self):
        if hasattr(self, 'name') and self.name:
            return '%s.%s' % (self.source, self.name)
        else:
            return super().__str__()


def _is_thunk(t):
    return hasattr(t, '__thunk__')


def _make_thunk(t):
    setattr(t, '__thunk__', True)


class _ThunkBuilder:
    """This is used to create a thunk from a linq-style
    method.
    """
    def __init__(self, func):
        self.func = func
        self.__name__ = func.__name__

    def __call__(self, *args, **kwargs):
        if len(args)==0 and len(kwargs)==0:
            _make_thunk(self.func)
            return self.func
        def apply(this):
            return self.func(this, *args, **kwargs)
        apply.__name__ = self.__name__
        _make_thunk(apply)
        return apply

    def __repr__(self):
        return "_ThunkBuilder(%s)" % self.__name__


def _connect_thunk(prev, thunk):
    """Connect the thunk to the previous in the chain. Handles
    all the cases where we might be given a thunk, a thunk builder
    (unevaluated linq function), an observer, or a bare callable. The
    last two are subscribed and the Subscription is returned."""
    if callable(thunk):
        if _is_thunk(thunk):
            return thunk(prev)
        elif isinstance(thunk, _ThunkBuilder):
            real_thunk = thunk()
            assert _is_thunk(real_thunk)
            return real_thunk(prev)
    return prev.subscribe(thunk)


def filtermethod(base, alias=None):
    """Function decorator that creates a linq-style filter out of the
    specified function. As described in the flowcut.filters documentation,
    it should take an Observable as its first argument (the source of events)
    and return an Observable (representing the end of the filter sequence
    once the filter is included). The returned Observable is typically an
    instance of flowcut.base.FilterObservable.

    The specified function is used in two places:

    1. A method with the specified name is added to the specified class
       (usually the Observable base class). This is for the fluent (method
       chaining) API.
    2. A function is created in the local namespace for use in the functional API.
       This function does not take the Observable as an argument. Instead,
       it takes the remaining arguments and then returns a function which,
       when passed an Observable, applies the operator to it.

    Decorator arguments:

    * param T base: Base class to extend with method
      (usually flowcut.base.Observable)
    * param string alias: an alias for this function or list of aliases
                         (e.g. filter for where, etc.).
    * returns: A function that takes the class to be decorated.
    * rtype: func -> func

    This was adapted from the RxPy extensionmethod decorator.
    """
    def inner(func):
        """This function is returned by the outer filtermethod()

        :param types.FunctionType func: Function to be decorated
        """
        func_names = [func.__name__,]
        if alias:
            aliases = alias if isinstance(alias, list) else [alias]
            func_names += aliases

        _thunk = _ThunkBuilder(func)

        # For the primary name and all aliases, set the name on the
        # base class as well as in the local namespace.
        for func_name in func_names:
            setattr(base, func_name, func)
            func.__globals__[func_name] = _thunk
        return _thunk
    return inner


class IterableAsObservable(Observable):
    """Convert any iterable to an Observable. Each subscription iterates
    the iterable afresh, synchronously, inside subscribe(). Iteration stops
    as soon as the subscription is cancelled.
    """
    def __init__(self, iterable, name=None):
        super().__init__(name=name)
        self.iterable = iterable

    def _subscribe_core(self, observer, subscription):
        it = iter(self.iterable)
        while not subscription.closed:
            try:
                event = it.__next__()
            except StopIteration:
                observer.on_completed()
                return
            except FatalError:
                raise
            except Exception as e:
                # If the iterable throws an exception, we treat it as non-fatal.
                # The error is dispatched downstream and the iteration ends.
                logger.debug("Iterable for %s raised %r" % (self, e))
                observer.on_error(e)
                return
            observer.on_next(event)


def from_iterable(i):
    return IterableAsObservable(i)


def from_list(l):
    return IterableAsObservable(l, name='from_list(%d items)' % len(l))


class Scheduler:
    """Wrap an asyncio event loop and provide the time source and one-time
    timers used by the time-bounded operators.

    The event loop is exited once there are no pending timers and no held
    sources left. A source that gets its events from somewhere other than
    after() (another thread, a socket, or the loop's own call_later) should
    call hold() when it starts and cancel the returned Subscription when it
    is done, so that run_forever() does not return under it.

    Timers may be cancelled and stop() called from any thread. Such
    requests are passed to the event loop thread.
    """
    def __init__(self, event_loop):
        self.event_loop = event_loop
        self.active_schedules = {} # mapping from timer token to loop handle
        self.active_sources = {} # mapping from hold token to source name
        # Set the following to an exception if we are exiting the loop due to
        # an exception. We will then raise a ScheduleError when the event loop
        # exits.
        self.fatal_error = None
        # we set the exception handler to stop all active schedules and
        # break out of the event loop if we get an unexpected error.
        def exception_handler(loop, context):
            assert loop==self.event_loop
            self.fatal_error = context.get('exception')
            self.stop()
        self.event_loop.set_exception_handler(exception_handler)

    def now(self):
        """Current time in seconds, according to the event loop's clock.
        """
        return self.event_loop.time()

    def _on_loop_thread(self):
        try:
            return asyncio.get_running_loop() is self.event_loop
        except RuntimeError:
            return False

    def _call_on_loop(self, fn):
        """Run fn now if we are on the event loop's thread (or the loop is
        not running yet). Otherwise hand it to the loop, which also wakes
        the loop up.
        """
        if self.event_loop.is_running() and not self._on_loop_thread():
            self.event_loop.call_soon_threadsafe(fn)
        else:
            fn()

    def _remove_from_active_schedules(self, token):
        """Remove the specified timer from the active_schedules map.
        If there are no more active schedules, we will request exiting of
        the event loop. This method must be run from the event loop thread.
        """
        del self.active_schedules[token]
        self._stop_if_idle()

    def _stop_if_idle(self):
        if len(self.active_schedules)==0 and len(self.active_sources)==0:
            logger.info("No more active schedules, will exit event loop")
            self._stop_loop()

    def after(self, interval, action):
        """Call action() once, after interval (seconds or a timedelta) has
        passed. Returns a Subscription whose cancel() method removes the
        timer if it has not fired yet.
        """
        interval = to_seconds(interval)
        token = Subscription()
        def remove():
            handle = self.active_schedules.get(token)
            if handle is None:
                return # already fired or scheduler stopped
            logger.debug("canceling timer %s" % repr(action))
            handle.cancel()
            self._remove_from_active_schedules(token)
        def run():
            if token not in self.active_schedules:
                return
            if token.closed:
                # cancelled from another thread, removal is queued
                return
            # Remove from the active schedules since this was a one-time
            # schedule. The action may add new timers, so we only check
            # for an idle scheduler after it has run.
            del self.active_schedules[token]
            action()
            self._stop_if_idle()
        handle = self.event_loop.call_later(interval, run)
        self.active_schedules[token] = handle
        token.add(lambda: self._call_on_loop(remove))
        return token

    def hold(self, name):
        """Keep the event loop running on behalf of a source whose events
        do not come from after(). Returns a Subscription. Cancelling it
        (from any thread) releases the hold, and the loop exits if nothing
        else is pending.
        """
        token = Subscription()
        self.active_sources[token] = name
        def release():
            if token in self.active_sources:
                logger.debug("releasing hold for %s" % name)
                del self.active_sources[token]
                self._stop_if_idle()
        token.add(lambda: self._call_on_loop(release))
        return token

    def run_forever(self):
        """Call the event loop's run_forever(). We don't really run forever:
        the event loop is exited if we run out of scheduled timers and held
        sources, or if stop() is called.
        """
        try:
            self.event_loop.run_forever()
        except KeyboardInterrupt:
            # If someone hit Control-C to break out of the loop,
            # they might be trying to diagonose a hang. Log the
            # active timers here before passing on the interrupt.
            logger.info("Active timers: %s" %
                        ', '.join([repr(h) for h in self.active_schedules.values()]))
            logger.info("Held sources: %s" %
                        ', '.join(self.active_sources.values()))
            raise
        if self.fatal_error is not None:
            raise ScheduleError("Scheduler aborted due to fatal error") \
                from self.fatal_error

    def stop(self):
        """Cancel any pending timers, drop any holds and then call stop() on
        the event loop. Can be called from any thread.
        """
        self._call_on_loop(self._stop_loop)

    def _stop_loop(self):
        for handle in self.active_schedules.values():
            handle.cancel()
        self.active_schedules = {}
        self.active_sources = {}
        self.event_loop.stop()
