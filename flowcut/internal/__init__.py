# Copyright 2016,2017 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.
"""Internal helpers shared by the rest of flowcut.
"""

def noop(*args, **kwargs):
    pass


def identity(x):
    return x


class _NoValue:
    """Marker for a slot that has not been filled yet (None is a valid
    event value, so it cannot be used for this).
    """
    def __repr__(self):
        return 'NO_VALUE'

NO_VALUE = _NoValue()
