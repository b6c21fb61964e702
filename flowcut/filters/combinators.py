# Copyright 2016 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.
"""
This module defines the compose combinator for linq-style functions.
A linq-style function takes the previous Observable in a chain as its
first input ("this"), parameters to the filter as subsequent inputs, and
returns an Observable that should be used as the input to the next step
in the filter chain.

We use the term "thunk" for the special case where the linq-style function
takes only a single input - the previous Observable in the chain.
If a linq-style filter F was defined using the @filtermethod decorator,
then calling the function directly (not as a method of an Observable)
returns a thunk. For example::

    top_three = compose(where(lambda x: x > 100), distinct(), take(3))
    subscription = top_three(source).subscribe(print)
"""

from flowcut.base import Observable, _make_thunk, _connect_thunk


def compose(*thunks):
    """Given a list of thunks, compose them in a sequence and return a
    thunk. The last element may also be an observer or a plain callable, in
    which case applying the thunk subscribes it and returns the
    Subscription.
    """
    def apply(this):
        p = this
        for thunk in thunks:
            assert isinstance(p, Observable), \
                "attempted to compose a terminal Observer in non-final position"
            p = _connect_thunk(p, thunk)
        return p
    _make_thunk(apply)
    return apply
