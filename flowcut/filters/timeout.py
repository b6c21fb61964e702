# Copyright 2016 by MPI-SWS and Data-Ken Research.
# Licensed under the Apache 2.0 License.
"""Timer support for the time-bounded filters.
"""
import logging
logger = logging.getLogger(__name__)


class Timeout:
    """A one-shot timer owned by a filter. When the timer fires,
    on_timeout() is called. The timer is cancellable through clear(),
    which is safe to call any number of times, whether or not the timer
    has already fired.
    """
    def __init__(self, scheduler, on_timeout):
        self.scheduler = scheduler
        self.on_timeout = on_timeout
        self.pending = None

    def start(self, interval):
        if self.pending:
            self.pending.cancel()
        self.pending = self.scheduler.after(interval, self._fire)

    def clear(self):
        if self.pending:
            self.pending.cancel()
            self.pending = None

    def _fire(self):
        """If this gets called, we hit the timeout
        """
        self.pending = None
        logger.debug("timeout fired, calling %s" % repr(self.on_timeout))
        self.on_timeout()
