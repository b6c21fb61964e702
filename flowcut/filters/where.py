# Copyright 2016 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.
from flowcut.base import Observable, FunctionFilter, FilterObservable, \
                         filtermethod

@filtermethod(Observable, alias="filter")
def where(this, predicate):
    """Filter a stream based on the specified predicate function.
    If the predicate raises, the exception is passed downstream as an
    on_error and no further events are evaluated.
    """
    def make_filter(observer):
        def on_next(self, x):
            if predicate(x):
                self._dispatch_next(x)
        return FunctionFilter(observer, on_next, name="where")
    return FilterObservable(this, make_filter, name="where")


@filtermethod(Observable)
def ignore_elements(this):
    """Drop every event, passing on only the on_completed or on_error
    notification.
    """
    return this.where(lambda x: False)
