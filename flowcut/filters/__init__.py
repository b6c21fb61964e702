# Copyright 2016,2017 by MPI-SWS and Data-ken Research.
# Licensed under the Apache 2.0 License.
"""
This sub-module provides a collection of filters for providing linq-style
programming (inspired by RxPy) over Observables. The filters select a
bounded subset of a stream: they filter, deduplicate, or truncate it.

Each function appears as a method on the Observable base class, allowing for
easy chaining of calls. For example::

    source.where(lambda x: x > 100).distinct().take(10)

If the @filtermethod decorator is used, then a standalone function is also
defined that takes all the arguments except the Observable and returns a
function which, when called, takes an Observable and returns the filtered
Observable. We call this returned function a "thunk". Thunks can be used with
the compose() combinator, defined in combinators.py. For example::

    compose(where(lambda x: x > 100), take(10))(source)

The implementation code for a linq-style filter typically looks like the
following::

    @filtermethod(Observable)
    def example(this, ...):
        def make_filter(observer):
            state = [...]
            def on_next(self, x):
                ....
            return FunctionFilter(observer, on_next, name="example")
        return FilterObservable(this, make_filter, name="example")

Note that, by convention, we use `this` as the first argument of the function,
rather than self. The `this` parameter corresponds to the previous element in
the chain, while the `self` parameter used in the on_next() function represents
the filter for the current subscription. make_filter() is called once per
subscription, so any state it creates is never shared between
subscriptions. Keep per-subscription state inside make_filter(), not in the
enclosing function.
"""

from . import distinct
from . import first
from . import never
from . import skip
from . import take
from . import timeout
from . import until
from . import where
from . import combinators
