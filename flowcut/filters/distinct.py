# Copyright 2016 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.
"""Filters that drop repeated events.
"""
from flowcut.base import Observable, FunctionFilter, FilterObservable, \
                         filtermethod
from flowcut.internal import identity, NO_VALUE


@filtermethod(Observable)
def distinct(this, key_selector=None):
    """Pass on only the events whose key has not been seen before in this
    subscription. The key is key_selector(event), or the event itself if no
    key selector is given. Keys must be hashable.

    Note that the set of seen keys is kept for the lifetime of the
    subscription, so memory grows with the number of distinct keys.
    """
    get_key = key_selector or identity

    def make_filter(observer):
        seen = set()
        def on_next(self, x):
            key = get_key(x)
            if key not in seen:
                seen.add(key)
                self._dispatch_next(x)
        def on_close(self):
            seen.clear()
        return FunctionFilter(observer, on_next, on_close=on_close,
                              name="distinct")
    return FilterObservable(this, make_filter, name="distinct")


@filtermethod(Observable)
def distinct_until_changed(this, key_selector=None):
    """Pass on an event only if its key differs from the key of the last
    event passed on. The first event is always passed on.
    """
    get_key = key_selector or identity

    def make_filter(observer):
        last_key = [NO_VALUE]
        def on_next(self, x):
            key = get_key(x)
            if last_key[0] is NO_VALUE or key != last_key[0]:
                last_key[0] = key
                self._dispatch_next(x)
        return FunctionFilter(observer, on_next,
                              name="distinct_until_changed")
    return FilterObservable(this, make_filter, name="distinct_until_changed")
