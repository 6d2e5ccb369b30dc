# -*- coding: utf-8 -*-
from datetime import datetime, timedelta, timezone
from numbers import Real
import logging
import math

FRESHNESS = timedelta(seconds=10) # a reading older than this means the probe is offline


def parseTimestamp(value):
    ''' Convert an ISO-8601 timestamp from the cloud API into an aware datetime.  Naive timestamps are taken to be UTC.

    Raises:
        ValueError: if the value is not a valid ISO-8601 timestamp
    '''
    if isinstance(value, datetime):
        ts = value
    else:
        if not isinstance(value, str):
            raise ValueError('{0!r} is not a timestamp'.format(value))
        # fromisoformat before python 3.11 does not accept a trailing Z
        ts = datetime.fromisoformat(value[:-1] + '+00:00' if value.endswith('Z') else value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def isFresh(created, now=None):
    ''' Return True if a reading taken at `created` is less than 10 seconds old.  The boundary is exclusive: a reading exactly 10 seconds old is stale. '''
    now = now if now is not None else datetime.now(timezone.utc)
    return parseTimestamp(created) + FRESHNESS > now


def isReal(value):
    ''' True for a finite int or float.  Booleans, NaN and infinities are rejected. '''
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value)


def toPercent(fraction):
    ''' Convert a 0..1 fraction reported by the cloud into a whole percentage, rounding half up and clamping to 0..100 '''
    percent = int(math.floor(fraction * 100 + 0.5))
    return min(max(percent, 0), 100)


class Channel(object):
    ''' A single temperature probe attached to a device.

    A channel only remembers the last values it was given.  Every update returns a changelog holding the keys that actually changed so the owning Device can decide what needs to be republished.

    Args:
        id: the identifier the cloud assigned to the channel.  Never changes after creation.
    '''
    _logger = logging.getLogger(__name__)

    def __init__(self, id):
        self.id = id
        self.number = None
        self.name = None
        self.enabled = None
        self.online = None

        self.temperature = None
        self.lastUpdated = None

    def __repr__(self):
        return 'Channel(id={0!r}, number={1!r}, name={2!r})'.format(self.id, self.number, self.name)

    @property
    def available(self):
        return bool(self.enabled and self.online)

    def updateProp(self, key, value):
        ''' Store value under key if it differs from what is already there

        Returns:
            `{key: value}` if the value changed, otherwise an empty `dict`
        '''
        if getattr(self, key) == value:
            return {}
        setattr(self, key, value)
        return {key: value}

    def updateDevice(self, snapshot, now=None):
        ''' Apply a channel snapshot from the cloud API

        Args:
            snapshot (`dict`): one entry of the device's `channels` list
            now (:obj:`datetime`, optional): the time used to judge whether the latest reading is fresh.  Defaults to the current time.

        Returns:
            A `dict` holding every property that changed and its new value.  Empty if nothing changed.
        '''
        updateLog = {}
        updateLog.update(self.updateProp('number', snapshot['channel']))
        updateLog.update(self.updateProp('name', snapshot['channel_label']))
        updateLog.update(self.updateProp('enabled', bool(snapshot.get('enabled', True))))

        if snapshot.get('current_temp') is not None:
            created = snapshot['last_templog']['created']
            updateLog.update(self.updateProp('online', isFresh(created, now)))
            updateLog.update(self.updateProp('temperature', snapshot['current_temp']))
            updateLog.update(self.updateProp('lastUpdated', created))
        else:
            updateLog.update(self.updateProp('online', False))

        if updateLog:
            self._logger.debug('channel {0} changed: {1}'.format(self.number, updateLog))
        return updateLog

    def disable(self):
        ''' Mark a channel that is no longer reported by the cloud as disabled.  Channels are never removed. '''
        return self.updateProp('enabled', False)

    def markOffline(self):
        return self.updateProp('online', False)
