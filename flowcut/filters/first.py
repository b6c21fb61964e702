# Copyright 2016 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.

from flowcut.base import Observable, filtermethod
import flowcut.filters.take

@filtermethod(Observable)
def first(this):
    """Pass on the first element of the stream and then complete, which
    cancels the subscription to the input. An empty stream just completes.
    """
    return this.take(1)
