# Copyright 2016, 2017 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.
"""
This is the main package for flowcut, a library of linq-style operators that
filter, deduplicate, and truncate push-based event streams. Directly within
this package you will find the following module:

 * `base` - the core abstractions and classes of the system.

The rest of the functionality is in sub-packages:

 * `filters` - the operators. Importing `flowcut.filters` (or one of its
   modules) adds the operators as methods on `flowcut.base.Observable`.
 * `internal` - some internal definitions
"""

__version__ = "1.0.0"
