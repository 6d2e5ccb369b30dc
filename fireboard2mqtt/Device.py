# -*- coding: utf-8 -*-
from threading import Event, Lock, RLock
import logging
import queue

from fireboard2mqtt.Channel import Channel, isReal, parseTimestamp, toPercent
from fireboard2mqtt.Drive import Drive, MODES, validateDrivelog
from fireboard2mqtt.Prober import Prober
from fireboard2mqtt.Scheduler import Scheduler
from fireboard2mqtt.Topics import Topics, ONLINE, OFFLINE, ON, OFF
from fireboard2mqtt.exceptions import CloudApiError, MalformedSnapshotError

_STOP = object() # marks the end of a device's event stream


def validateSnapshot(snapshot):
    ''' Check that a device snapshot holds every field the diff engine reads

    Raises:
        MalformedSnapshotError: naming the first problem found
    '''
    try:
        for key in ('hardware_id', 'uuid'):
            if not isinstance(snapshot[key], str) or not snapshot[key]:
                raise ValueError('{0} must be a non-empty string'.format(key))
        snapshot['id']
        snapshot['title']
        log = snapshot['device_log']
        if not isinstance(log, dict):
            raise TypeError('device_log must be an object')
        if not isReal(log['vBattPer']):
            raise ValueError('device_log.vBattPer must be a finite number')
        if not isinstance(snapshot['channels'], list):
            raise TypeError('channels must be a list')
        numbers = set()
        for ch in snapshot['channels']:
            ch['id']
            ch['channel_label']
            if not isinstance(ch['channel'], int) or isinstance(ch['channel'], bool):
                raise TypeError('channel number must be an integer')
            if ch['channel'] in numbers:
                raise ValueError('channel {0} appears twice'.format(ch['channel']))
            numbers.add(ch['channel'])
            if ch.get('current_temp') is not None:
                if not isReal(ch['current_temp']):
                    raise ValueError('current_temp of channel {0} must be a finite number'.format(ch['channel']))
                parseTimestamp(ch['last_templog']['created'])
    except MalformedSnapshotError:
        raise
    except KeyError as e:
        raise MalformedSnapshotError('device snapshot is missing {0}'.format(e))
    except (TypeError, ValueError, AttributeError) as e:
        raise MalformedSnapshotError('device snapshot is invalid: {0}'.format(e))


class Device(object):
    ''' Keeps one FireBoard in sync with the message bus.

    A Device probes the board on the local network, polls the cloud API at a cadence chosen by the probe result, diffs every snapshot against what it already knows and queues the topic/payload pairs needed to bring subscribers up to date.  Those pairs are read with :meth:`events`.

    Polling cadence: while the board answers pings it is on and most likely cooking, so the cloud is polled every `reachablePollInterval` seconds.  While it does not answer, it is polled every `unreachablePollInterval` seconds.

    Args:
        snapshot (`dict`): the device as returned by the cloud API
        apiClient: anything with a `getDevice(uuid)` method returning a snapshot and raising :obj:`CloudApiError` on failure.  With enableDrive it must also provide `getDrivelog(uuid)`.
        prober (:obj:`Prober`, optional): reachability prober.  Default is an unprivileged ICMP :obj:`Prober`.
        topics (:obj:`Topics`, optional): topic scheme.  Default is `Topics()`.
        uniqueIdPrefix (str, optional): prepended to every entity unique_id
        pingInterval (float, optional): seconds between reachability probes
        pingTimeout (float, optional): seconds to wait for a probe reply.  Default is one second less than pingInterval.
        reachablePollInterval (float, optional): seconds between polls while the board answers pings
        unreachablePollInterval (float, optional): seconds between polls while it does not
        maxFetchFailures (int, optional): consecutive failed polls after which every channel is reported offline
        enableDrive (bool, optional): also poll the realtime drivelog and publish the drive entities.  Default is False.

    Raises:
        MalformedSnapshotError: if the initial snapshot can not be used
    '''
    _logger = logging.getLogger(__name__)

    MANUFACTURER = 'Fireboard Labs, Inc.'
    COMPONENT = 'sensor'
    BINARY_COMPONENT = 'binary_sensor'
    BATTERY = 'battery'
    DRIVE = 'drive'
    DRIVE_MODE = 'drive_mode'
    DRIVE_SETPOINT = 'drive_setpoint'
    DRIVE_LIDPAUSED = 'drive_lidpaused'

    def __init__(self, snapshot, apiClient, prober=None, topics=None, uniqueIdPrefix='fireboard', pingInterval=10, pingTimeout=None, reachablePollInterval=20, unreachablePollInterval=300, maxFetchFailures=3, enableDrive=False):
        validateSnapshot(snapshot)
        self._snapshot = snapshot
        self._apiClient = apiClient
        self._prober = prober if prober is not None else Prober()
        self._topics = topics if topics is not None else Topics()
        self._uniqueIdPrefix = uniqueIdPrefix
        self._pingInterval = pingInterval
        self._pingTimeout = pingTimeout if pingTimeout is not None else max(pingInterval - 1, 1)
        self._reachablePollInterval = reachablePollInterval
        self._unreachablePollInterval = unreachablePollInterval
        self._maxFetchFailures = maxFetchFailures

        self._channels = dict() # channel number -> Channel
        self._online = None # unset until the first probe
        self._batteryPercent = None
        self._drive = Drive() if enableDrive else None
        self._fetchFailures = 0

        self._lock = RLock() # guards device and channel state
        self._fetchLock = Lock() # held while a cloud fetch is in flight
        self._eventQueue = queue.Queue()
        self._stopped = Event()
        self.scheduler = Scheduler(self.uniqueId)

    @classmethod
    def fromConfig(cls, snapshot, apiClient, cfg, prober=None):
        return cls(snapshot, apiClient, prober=prober, topics=Topics.fromConfig(cfg), uniqueIdPrefix=cfg.uniqueIdPrefix,
                   pingInterval=cfg.pingInterval, pingTimeout=cfg.pingTimeout, reachablePollInterval=cfg.reachablePollInterval,
                   unreachablePollInterval=cfg.unreachablePollInterval, maxFetchFailures=cfg.maxFetchFailures,
                   enableDrive=cfg.enableDrive)

    def __repr__(self):
        return 'Device(uniqueId={0!r}, name={1!r})'.format(self.uniqueId, self.name)

    ''' IDENTITY, read from the latest snapshot '''

    @property
    def uniqueId(self):
        return self._snapshot['hardware_id']

    @property
    def cloudId(self):
        return self._snapshot['id']

    @property
    def uuid(self):
        return self._snapshot['uuid']

    @property
    def name(self):
        return self._snapshot['title']

    @property
    def model(self):
        return self._snapshot['device_log'].get('model') or self._snapshot.get('model')

    @property
    def swVersion(self):
        return self._snapshot.get('version')

    @property
    def macAddress(self):
        return self._snapshot['device_log'].get('macNIC')

    @property
    def localIp(self):
        return self._snapshot['device_log'].get('internalIP')

    @property
    def manufacturer(self):
        return self.MANUFACTURER

    @property
    def configurationUrl(self):
        return 'https://fireboard.io/devices/{0}/edit/'.format(self.cloudId)

    @property
    def unitOfMeasurement(self):
        return '°C' if self._snapshot.get('degreetype') == 1 else '°F'

    ''' STATE '''

    @property
    def online(self):
        ''' `True` or `False` once the first probe has finished, `None` before '''
        with self._lock:
            return self._online

    @property
    def batteryPercent(self):
        return self._batteryPercent

    @property
    def drive(self):
        ''' The :obj:`Drive`, or None when drive support is disabled '''
        return self._drive

    @property
    def channels(self):
        with self._lock:
            return dict(self._channels)

    def _readBattery(self):
        return toPercent(self._snapshot['device_log']['vBattPer'])

    ''' LIFECYCLE '''

    def start(self):
        ''' Publish the full state of the device and start probing it.

        Queues, in order: battery discovery, battery state and then the discovery, state and availability payloads of every channel.  Channels without a reading get no state payload.  With drive support the discovery payloads of the drive entities follow; their states arrive with the first drivelog.  The first probe runs immediately; its result starts the poll timer.
        '''
        self._logger.info('starting {0} ({1}) at localIp ({2})'.format(self.name, self.uniqueId, self.localIp))
        with self._lock:
            self._batteryPercent = self._readBattery()
            payloads = self.getBatteryPayload(includeDiscovery=True)
            self._updateChannels(self._snapshot['channels'])
            for number in sorted(self._channels):
                channel = self._channels[number]
                # never publish a null temperature
                payloads.update(self.getChannelPayload(channel, includeState=channel.temperature is not None))
            if self._drive is not None:
                payloads.update(self.getDriveDiscovery())
            self._emit(payloads)

        self._logger.info('begin pinging {0} at localIp ({1}) every {2}s'.format(self.uniqueId, self.localIp, self._pingInterval))
        self.scheduler.start('ping', self._pingInterval, self.ping, runNow=True)

    def stop(self):
        ''' Cancel both timers and end the event stream.  Calling stop more than once does nothing. '''
        with self._lock:
            if self._stopped.is_set():
                return
            self._stopped.set()
            self._logger.info('stopping {0}'.format(self.uniqueId))
            self.scheduler.stopAll()
            self._eventQueue.put(_STOP)

    @property
    def stopped(self):
        return self._stopped.is_set()

    def events(self, block=True):
        ''' Yield `(topic, payload)` pairs as the device produces them

        Args:
            block (bool, optional): wait for new pairs.  If False, stop once the queued pairs have been read.  Default is True.

        The stream ends after :meth:`stop` once every queued pair has been read.  String payloads are sent as is; any other payload is meant to be JSON encoded by the publisher.
        '''
        while True:
            try:
                item = self._eventQueue.get(block=block and not self._stopped.is_set())
            except queue.Empty:
                return
            self._eventQueue.task_done()
            if item is _STOP:
                return
            yield item

    def _emit(self, payloads):
        for topic, payload in payloads.items():
            self._eventQueue.put((topic, payload))

    ''' REACHABILITY AND POLLING '''

    def ping(self):
        ''' Probe the board once and hand the result to :meth:`setReachability` '''
        self._logger.debug('ping {0} at internalIP ({1})'.format(self.uniqueId, self.localIp))
        reachable = self._prober.probe(self.localIp, self._pingTimeout)
        self._logger.debug('ping to internalIP ({0}) {1}'.format(self.localIp, 'succeeded' if reachable else 'failed'))
        self.setReachability(reachable)

    def setReachability(self, reachable):
        ''' Record the latest probe result.

        If it differs from the current state the device availability is published and the poll timer is cancelled and restarted at the interval of the new state.  The first result always starts the poll timer.

        Returns:
            `True` if the state changed
        '''
        reachable = bool(reachable)
        with self._lock:
            if self._stopped.is_set() or self._online is reachable:
                return False
            self._online = reachable
            self._emit({self._topics.deviceAvailability(self.uniqueId): ONLINE if reachable else OFFLINE})
            if reachable:
                self._logger.info('fireboard at localIp ({0}) is online, polling cloud api every {1}s'.format(self.localIp, self._reachablePollInterval))
                interval = self._reachablePollInterval
            else:
                self._logger.info('fireboard at localIp ({0}) is offline, polling cloud api every {1}s'.format(self.localIp, self._unreachablePollInterval))
                interval = self._unreachablePollInterval
            self.scheduler.start('poll', interval, self.refresh)
        return True

    def refresh(self):
        ''' Fetch a fresh snapshot from the cloud API and apply it.

        Only one fetch runs at a time; a call made while another is in flight is skipped.  Holding the fetch lock for the whole request is what keeps responses applied in the order they were requested, so an older snapshot can never overwrite a newer one.  Fetch failures and malformed snapshots are logged and leave the last known state in place.

        With drive support the realtime drivelog is fetched after a snapshot has been applied.  A drivelog that can not be fetched or read leaves the drive as it was.

        Returns:
            `True` if a snapshot was applied
        '''
        if self._stopped.is_set():
            return False
        if not self._fetchLock.acquire(blocking=False):
            self._logger.debug('previous fetch for {0} still in flight, skipping poll'.format(self.uniqueId))
            return False
        try:
            self._logger.debug('poll cloud api for {0}'.format(self.uniqueId))
            try:
                snapshot = self._apiClient.getDevice(self.uuid)
            except CloudApiError as e:
                self._fetchFailed(e)
                return False

            with self._lock:
                if self._stopped.is_set():
                    return False
                try:
                    self.applySnapshot(snapshot)
                except MalformedSnapshotError as e:
                    self._logger.warning('skipping malformed snapshot for {0}: {1}'.format(self.uniqueId, e))
                    return False
                self._fetchFailures = 0

            if self._drive is not None:
                self._refreshDrive()
            return True
        finally:
            self._fetchLock.release()

    def _refreshDrive(self):
        try:
            drivelog = self._apiClient.getDrivelog(self.uuid)
        except CloudApiError as e:
            self._logger.warning('unable to fetch drivelog of {0}: {1}'.format(self.uniqueId, e))
            return
        with self._lock:
            if self._stopped.is_set():
                return
            try:
                self.applyDrivelog(drivelog)
            except MalformedSnapshotError as e:
                self._logger.warning('skipping malformed drivelog for {0}: {1}'.format(self.uniqueId, e))

    def _fetchFailed(self, error):
        with self._lock:
            if self._stopped.is_set():
                return
            self._fetchFailures += 1
            self._logger.warning('unable to fetch {0} from cloud api ({1} in a row): {2}'.format(self.uniqueId, self._fetchFailures, error))
            if self._fetchFailures != self._maxFetchFailures:
                return
            self._logger.warning('{0} polls failed for {1}, reporting every channel offline'.format(self._fetchFailures, self.uniqueId))
            updates = {}
            for number, channel in self._channels.items():
                change = channel.markOffline()
                if change:
                    updates[number] = change
            payloads = self._channelPayloads(updates)
            if self._drive is not None:
                payloads.update(self._drivePayloads(self._drive.markOffline()))
            self._emit(payloads)

    ''' DIFF ENGINE '''

    def applySnapshot(self, snapshot, now=None):
        ''' Replace the cached snapshot and publish whatever changed.

        Every channel in the snapshot is diffed (unseen channel numbers create a new Channel), channels missing from the snapshot are marked disabled, and the battery level is compared with the last published value.  Payloads for every change are queued.

        Args:
            snapshot (`dict`): the device as returned by the cloud API
            now (:obj:`datetime`, optional): time used to judge reading freshness

        Returns:
            `dict` of channel number to changelog, holding only the channels that changed

        Raises:
            MalformedSnapshotError: if the snapshot can not be used.  Nothing is changed.
        '''
        validateSnapshot(snapshot)
        with self._lock:
            self._snapshot = snapshot

            payloads = {}
            battery = self._readBattery()
            if battery != self._batteryPercent:
                self._logger.debug('battery of {0} changed to {1}%'.format(self.uniqueId, battery))
                self._batteryPercent = battery
                payloads.update(self.getBatteryPayload())

            updates = self._updateChannels(snapshot['channels'], now)
            payloads.update(self._channelPayloads(updates))
            self._emit(payloads)
        return updates

    def _updateChannels(self, channelSnapshots, now=None):
        updates = {}
        seen = set()
        for ch in channelSnapshots:
            number = ch['channel']
            seen.add(number)
            if number not in self._channels:
                self._logger.info('found channel {0} ({1}) on {2}'.format(number, ch['channel_label'], self.uniqueId))
                self._channels[number] = Channel(ch['id'])
            change = self._channels[number].updateDevice(ch, now)
            if change:
                updates[number] = change

        for number, channel in self._channels.items():
            if number not in seen:
                change = channel.disable()
                if change:
                    self._logger.info('channel {0} is no longer reported by {1}'.format(number, self.uniqueId))
                    updates[number] = change
        return updates

    def _channelPayloads(self, updates):
        ''' Turn channel changelogs into payloads.  Only the message kinds whose category changed are included. '''
        payloads = {}
        for number in sorted(updates):
            change = updates[number]
            payloads.update(self.getChannelPayload(
                self._channels[number],
                includeState='temperature' in change,
                includeAvailability='online' in change or 'enabled' in change,
                includeDiscovery='name' in change,
            ))
        return payloads

    def applyDrivelog(self, drivelog):
        ''' Diff a realtime drivelog against the drive and publish whatever changed

        Args:
            drivelog (`dict`): as returned by :meth:`ApiClient.getDrivelog`.  None marks the drive unavailable.

        Returns:
            the drive changelog

        Raises:
            MalformedSnapshotError: if the drivelog can not be used.  Nothing is changed.
        '''
        if drivelog is not None:
            validateDrivelog(drivelog)
        with self._lock:
            change = self._drive.updateDevice(drivelog)
            self._emit(self._drivePayloads(change))
        return change

    def _drivePayloads(self, change):
        ''' Turn a drive changelog into payloads.  While the drive is unavailable only availability is published. '''
        drive = self._drive
        payloads = {}
        if not change:
            return payloads
        if drive.available:
            if 'percent' in change:
                payloads[self._topics.state(self.uniqueId, self.DRIVE)] = drive.percent
            if 'mode' in change:
                payloads[self._topics.state(self.uniqueId, self.DRIVE_MODE)] = drive.mode
            if drive.setpointAvailable and ('setpoint' in change or 'mode' in change or 'available' in change):
                payloads[self._topics.state(self.uniqueId, self.DRIVE_SETPOINT)] = drive.setpoint
            if 'lidPaused' in change:
                payloads[self._topics.state(self.uniqueId, self.DRIVE_LIDPAUSED)] = ON if drive.lidPaused else OFF
            if set(change) & {'mode', 'setpoint', 'lidPaused', 'tiedChannel'}:
                payloads[self._topics.attributes(self.uniqueId, self.DRIVE)] = drive.attributes()
        if 'available' in change:
            payloads[self._topics.availability(self.uniqueId, self.DRIVE)] = ONLINE if drive.available else OFFLINE
        if 'available' in change or 'mode' in change:
            payloads[self._topics.availability(self.uniqueId, self.DRIVE_SETPOINT)] = ONLINE if drive.setpointAvailable else OFFLINE
        return payloads

    ''' PAYLOADS '''

    def _entityUniqueId(self, sensorKey):
        if self._uniqueIdPrefix:
            return '{0}_{1}_{2}'.format(self._uniqueIdPrefix, self.uniqueId, sensorKey)
        return '{0}_{1}'.format(self.uniqueId, sensorKey)

    def getEntityDevice(self):
        ''' The device descriptor shared by every discovery payload of this board '''
        return {
            'configuration_url': self.configurationUrl,
            'identifiers': [str(self.uniqueId), str(self.cloudId), str(self.uuid)],
            'manufacturer': self.manufacturer,
            'connections': [['mac', self.macAddress]],
            'model': self.model,
            'name': self.name,
            'sw_version': self.swVersion,
        }

    def getBatteryPayload(self, includeDiscovery=False):
        payloads = {}
        stateTopic = self._topics.state(self.uniqueId, self.BATTERY)

        if includeDiscovery:
            uniqueId = self._entityUniqueId(self.BATTERY)
            payloads[self._topics.discovery(self.COMPONENT, self.uniqueId, self.BATTERY)] = {
                'name': '{0} ({1}) Battery'.format(self.name, self.uniqueId),
                'device_class': 'battery',
                'state_topic': stateTopic,
                'state_class': 'measurement',
                'unique_id': uniqueId,
                'object_id': uniqueId,
                'device': self.getEntityDevice(),
                'unit_of_measurement': '%',
                'availability_mode': 'all',
                'availability': [
                    {'topic': self._topics.bridgeAvailability()},
                ],
            }

        payloads[stateTopic] = self._batteryPercent
        return payloads

    def getChannelPayload(self, channel, includeState=True, includeAvailability=True, includeDiscovery=True):
        ''' Payloads for one channel, in the order discovery, state, availability

        Args:
            channel (:obj:`Channel`): the channel to describe
            includeState (bool): include the temperature on the state topic
            includeAvailability (bool): include `online`/`offline` on the availability topic
            includeDiscovery (bool): include the discovery payload
        '''
        payloads = {}
        sensorKey = Topics.channelKey(channel.number)
        stateTopic = self._topics.state(self.uniqueId, sensorKey)
        availabilityTopic = self._topics.availability(self.uniqueId, sensorKey)

        if includeDiscovery:
            uniqueId = self._entityUniqueId(sensorKey)
            payloads[self._topics.discovery(self.COMPONENT, self.uniqueId, sensorKey)] = {
                'name': channel.name,
                'device_class': 'temperature',
                'state_topic': stateTopic,
                'state_class': 'measurement',
                'unique_id': uniqueId,
                'object_id': uniqueId,
                'device': self.getEntityDevice(),
                'unit_of_measurement': self.unitOfMeasurement,
                'availability_mode': 'all',
                'availability': [
                    {'topic': self._topics.bridgeAvailability()},
                    {'topic': availabilityTopic},
                ],
            }
        if includeState:
            payloads[stateTopic] = channel.temperature
        if includeAvailability:
            payloads[availabilityTopic] = ONLINE if channel.available else OFFLINE
        return payloads

    def _driveEntity(self, component, sensorKey, name, availability, **fields):
        uniqueId = self._entityUniqueId(sensorKey)
        payload = {
            'name': '{0} ({1}) {2}'.format(self.name, self.uniqueId, name),
            'state_topic': self._topics.state(self.uniqueId, sensorKey),
            'unique_id': uniqueId,
            'object_id': uniqueId,
            'device': self.getEntityDevice(),
            'availability_mode': 'all',
            'availability': [{'topic': topic} for topic in availability],
        }
        payload.update(fields)
        return {self._topics.discovery(component, self.uniqueId, sensorKey): payload}

    def getDriveDiscovery(self):
        ''' Discovery payloads of the four drive entities: blower output, mode, setpoint and lid paused.

        Each is available while the bridge is online and the cloud reports drive activity.  The setpoint is additionally only available in auto mode.
        '''
        availability = [self._topics.bridgeAvailability(), self._topics.availability(self.uniqueId, self.DRIVE)]
        payloads = {}
        payloads.update(self._driveEntity(self.COMPONENT, self.DRIVE, 'Drive', availability,
                                          icon='mdi:fan', state_class='measurement', unit_of_measurement='%',
                                          json_attributes_topic=self._topics.attributes(self.uniqueId, self.DRIVE)))
        payloads.update(self._driveEntity(self.COMPONENT, self.DRIVE_MODE, 'Drive Mode', availability,
                                          icon='mdi:fan-alert', device_class='enum', options=list(MODES)))
        payloads.update(self._driveEntity(self.COMPONENT, self.DRIVE_SETPOINT, 'Drive Setpoint',
                                          availability + [self._topics.availability(self.uniqueId, self.DRIVE_SETPOINT)],
                                          icon='mdi:thermometer-auto', device_class='temperature', unit_of_measurement=self.unitOfMeasurement))
        payloads.update(self._driveEntity(self.BINARY_COMPONENT, self.DRIVE_LIDPAUSED, 'Drive Lid Paused', availability,
                                          payload_on=ON, payload_off=OFF))
        return payloads
