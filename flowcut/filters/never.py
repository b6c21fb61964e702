# Copyright 2016 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.
from flowcut.base import Observable

class Never(Observable):
    """An Observable that never calls its observers: creates an empty stream
    that never goes away.
    """
    def __init__(self):
        super().__init__(name='never()')

    def _subscribe_core(self, observer, subscription):
        """Do nothing
        """
        pass


def never():
    return Never()
