# -*- coding: utf-8 -*-
import logging

from fireboard2mqtt.Channel import isReal, toPercent
from fireboard2mqtt.exceptions import MalformedSnapshotError

MODES = ('off', 'manual', 'auto')


def validateDrivelog(drivelog):
    ''' Check that a realtime drivelog holds every field :meth:`Drive.updateDevice` reads

    Raises:
        MalformedSnapshotError: naming the first problem found
    '''
    try:
        mode = drivelog['modetype']
        if not isinstance(mode, str) or mode.lower() not in MODES:
            raise ValueError('unknown drive mode {0!r}'.format(mode))
        for key in ('driveper', 'setpoint'):
            if not isReal(drivelog[key]):
                raise ValueError('{0} must be a finite number'.format(key))
        if not isinstance(drivelog['lidpaused'], bool):
            raise TypeError('lidpaused must be true or false')
    except KeyError as e:
        raise MalformedSnapshotError('drivelog is missing {0}'.format(e))
    except (TypeError, ValueError) as e:
        raise MalformedSnapshotError('drivelog is invalid: {0}'.format(e))


class Drive(object):
    ''' The blower of a FireBoard Drive, as reported by the realtime drivelog.

    Like a :obj:`Channel`, a Drive only remembers the last values it was given and every update returns a changelog of the keys that changed.
    '''
    _logger = logging.getLogger(__name__)

    def __init__(self):
        self.available = None
        self.percent = None
        self.mode = None
        self.setpoint = None
        self.lidPaused = None
        self.tiedChannel = None

    def __repr__(self):
        return 'Drive(available={0!r}, mode={1!r}, percent={2!r})'.format(self.available, self.mode, self.percent)

    @property
    def setpointAvailable(self):
        ''' A setpoint is only followed in auto mode '''
        return bool(self.available and self.mode == 'auto')

    def attributes(self):
        return {
            'modetype': self.mode,
            'setpoint': self.setpoint,
            'tiedchannel': self.tiedChannel,
            'lid_paused': self.lidPaused,
        }

    def updateProp(self, key, value):
        if getattr(self, key) == value:
            return {}
        setattr(self, key, value)
        return {key: value}

    def updateDevice(self, drivelog):
        ''' Apply a realtime drivelog from the cloud API

        Args:
            drivelog (`dict`): the drivelog, or None when the cloud reports no drive activity.  None only marks the drive unavailable; the last known values are kept.

        Returns:
            A `dict` holding every property that changed and its new value.  Empty if nothing changed.
        '''
        if drivelog is None:
            updateLog = self.markOffline()
        else:
            updateLog = {}
            updateLog.update(self.updateProp('available', True))
            updateLog.update(self.updateProp('percent', toPercent(drivelog['driveper'])))
            updateLog.update(self.updateProp('mode', drivelog['modetype'].lower()))
            updateLog.update(self.updateProp('setpoint', drivelog['setpoint']))
            updateLog.update(self.updateProp('lidPaused', drivelog['lidpaused']))
            updateLog.update(self.updateProp('tiedChannel', drivelog.get('tiedchannel')))

        if updateLog:
            self._logger.debug('drive changed: {0}'.format(updateLog))
        return updateLog

    def markOffline(self):
        return self.updateProp('available', False)
