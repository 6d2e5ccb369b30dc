# -*- coding: utf-8 -*-
from collections import Counter
from threading import Event, Lock, Thread
import logging


class RepeatingTimer(Thread):
    ''' A daemon thread that calls `callback` every `interval` seconds until cancelled

    Args:
        name (str): name of the timer, used for the thread name and in log messages
        interval (float): seconds between calls
        callback (callable): called with no arguments on every tick
        runNow (bool, optional): call `callback` once immediately before waiting for the first interval.  Default is False.
    '''
    _logger = logging.getLogger(__name__)

    def __init__(self, name, interval, callback, runNow=False):
        super(RepeatingTimer, self).__init__(name=name, daemon=True)
        self.interval = interval
        self._callback = callback
        self._runNow = runNow
        self._cancelled = Event()

    @property
    def cancelled(self):
        return self._cancelled.is_set()

    def cancel(self):
        ''' Stop the timer.  Cancelling an already cancelled timer does nothing. '''
        self._cancelled.set()

    def run(self):
        if self._runNow and not self.cancelled:
            self._tick()
        while not self._cancelled.wait(self.interval):
            self._tick()

    def _tick(self):
        try:
            self._callback()
        except Exception:
            # A failing tick must never stop the timer
            self._logger.exception('{0} timer callback failed'.format(self.name))


class Scheduler(object):
    ''' Owns the named timers of a single Device.

    Starting a timer under a name that already has a live timer cancels the old one first, so there is never more than one live timer per name.  Stopping is idempotent.

    Args:
        owner (str): identifies the owning device in thread names and log messages
    '''
    _logger = logging.getLogger(__name__)

    def __init__(self, owner=''):
        self._owner = owner
        self._timers = dict()
        self._lock = Lock()
        self._starts = Counter()
        self._restarts = Counter()

    def start(self, name, interval, callback, runNow=False):
        ''' Start (or restart) the timer called `name`

        Returns:
            the new :obj:`RepeatingTimer`
        '''
        with self._lock:
            previous = self._timers.pop(name, None)
            if previous is not None and not previous.cancelled:
                previous.cancel()
                self._restarts[name] += 1
            timer = RepeatingTimer('{0}:{1}'.format(self._owner, name) if self._owner else name, interval, callback, runNow)
            self._timers[name] = timer
            self._starts[name] += 1
        self._logger.debug('start {0} timer for {1} every {2}s'.format(name, self._owner, interval))
        timer.start()
        return timer

    def stop(self, name):
        ''' Cancel the timer called `name` if there is one '''
        with self._lock:
            timer = self._timers.pop(name, None)
        if timer is not None and not timer.cancelled:
            self._logger.debug('stop {0} timer for {1}'.format(name, self._owner))
            timer.cancel()

    def stopAll(self):
        ''' Cancel every timer '''
        with self._lock:
            names = list(self._timers)
        for name in names:
            self.stop(name)

    def active(self):
        ''' Names of the timers that are currently live '''
        with self._lock:
            return sorted(n for n, t in self._timers.items() if not t.cancelled)

    def interval(self, name):
        with self._lock:
            timer = self._timers.get(name)
        return timer.interval if timer is not None and not timer.cancelled else None

    def starts(self, name):
        return self._starts[name]

    def restarts(self, name):
        ''' Number of times a live `name` timer was replaced by a new one '''
        return self._restarts[name]
