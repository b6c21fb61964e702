#!/usr/bin/env python
# Copyright 2016,2017 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.
"""Setup script for flowcut distribution. Note that we only
package up the python code. The tests and docs are kept only
in the full source repository.
"""

import os
import re

from setuptools import setup


def _read_version():
    # read the version without importing the package
    init_py = os.path.join(os.path.dirname(os.path.abspath(__file__)),
                           'flowcut', '__init__.py')
    with open(init_py) as f:
        return re.search(r'^__version__ = "([^"]+)"', f.read(), re.M).group(1)


DESCRIPTION =\
"""
flowcut is a (Python3) library of linq-style operators over push-based
event streams. The operators select a bounded subset of a stream: they
filter (where, ignore_elements), deduplicate (distinct,
distinct_until_changed), or truncate it (take, skip, take_while,
skip_while, take_last, skip_last, take_until, skip_until, first, last),
by count, by predicate, by elapsed time, or by a second stream.

Streams are cold: every subscription runs independently with its own
operator state, and cancelling a subscription releases all upstream
subscriptions and timers. Time-based operators take an explicit scheduler,
which by default wraps an asyncio event loop.

flowcut is pure Python (3.6 or later) with no dependencies outside the
standard library.
"""

setup(name='flowcut',
      version=_read_version(),
      description="Filtering and truncating operators for push-based event streams",
      long_description=DESCRIPTION,
      license="Apache 2.0",
      packages=['flowcut', 'flowcut.internal', 'flowcut.filters'],
      python_requires='>=3.6',
      extras_require={
          'test': ['pytest'],
      },
      classifiers = [
          'Development Status :: 4 - Beta',
          'License :: OSI Approved :: Apache Software License',
          'Programming Language :: Python :: 3',
          'Operating System :: OS Independent',
          'Intended Audience :: Developers' ,
      ],
      keywords = ['events', 'streams', 'reactive', 'linq'],
)
