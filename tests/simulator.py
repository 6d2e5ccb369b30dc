from datetime import datetime, timezone
from threading import Event, Lock
import copy
import time

from fireboard2mqtt.exceptions import CloudApiError

HARDWARE_ID = 'FB2ABC123'
UUID = '8a5c3c2a-6f7b-4d0e-9e1f-0c2b1a2d3e4f'


def isoNow():
    return datetime.now(timezone.utc).isoformat()


def channelSnapshot(number=1, label=None, enabled=True, temp=72.5, created=None, id=None):
    ''' A channel entry as the cloud API returns it.  A temp of None leaves out the current reading. '''
    ch = {
        'id': id if id is not None else 1000 + number,
        'channel': number,
        'channel_label': label if label is not None else 'Probe {0}'.format(number),
        'enabled': enabled,
    }
    if temp is not None:
        ch['current_temp'] = temp
        ch['last_templog'] = {'temp': temp, 'created': created if created is not None else isoNow()}
    return ch


def deviceSnapshot(channels=None, vBattPer=0.85, title='Backyard Smoker', degreetype=2, internalIP='192.168.1.50'):
    return {
        'id': 4242,
        'uuid': UUID,
        'title': title,
        'hardware_id': HARDWARE_ID,
        'version': '1.4.2',
        'degreetype': degreetype,
        'model': 'FBX2',
        'channel_count': 6,
        'channels': channels if channels is not None else [channelSnapshot()],
        'device_log': {
            'macNIC': 'aa:bb:cc:dd:ee:ff',
            'internalIP': internalIP,
            'vBattPer': vBattPer,
            'model': 'FBX2',
        },
    }


def drivelogSnapshot(driveper=0.45, modetype='auto', setpoint=225.0, lidpaused=False, tiedchannel=1):
    return {
        'modetype': modetype,
        'setpoint': setpoint,
        'lidpaused': lidpaused,
        'tiedchannel': tiedchannel,
        'driveper': driveper,
    }


class apiSim(object):
    ''' Simulates the cloud API.  getDevice and getDrivelog return their queued responses in order, repeating the last one.  A queued exception is raised instead of returned.  With nothing queued getDrivelog returns None. '''

    def __init__(self, devices=None):
        self._devices = devices if devices is not None else [deviceSnapshot()]
        self._responses = []
        self._drivelogs = []
        self._lock = Lock()
        self.calls = 0
        self.driveCalls = 0
        self.gate = None # when set, getDevice waits on it before answering

    def queue(self, *responses):
        with self._lock:
            self._responses.extend(responses)

    def queueDrive(self, *responses):
        with self._lock:
            self._drivelogs.extend(responses)

    @staticmethod
    def _next(responses, default):
        if len(responses) > 1:
            return responses.pop(0)
        if responses:
            return responses[0]
        return default

    def getDevices(self):
        return copy.deepcopy(self._devices)

    def getDevice(self, uuid):
        with self._lock:
            self.calls += 1
            response = self._next(self._responses, self._devices[0])
        if self.gate is not None:
            self.gate.wait(5)
        if isinstance(response, Exception):
            raise response
        return copy.deepcopy(response)

    def getDrivelog(self, uuid):
        with self._lock:
            self.driveCalls += 1
            response = self._next(self._drivelogs, None)
        if isinstance(response, Exception):
            raise response
        return copy.deepcopy(response)


class failingApiSim(apiSim):
    def getDevices(self):
        raise CloudApiError('request to https://fireboard.io/api/v1/devices.json returned 503 Service Unavailable', status=503)


class proberSim(object):
    ''' Simulates ping results.  Returns the queued results in order, then keeps returning `default`. '''

    def __init__(self, results=None, default=False):
        self._results = list(results or [])
        self._default = default
        self.probes = []

    def probe(self, address, timeout):
        self.probes.append((address, timeout))
        if self._results:
            return self._results.pop(0)
        return self._default


class publisherSim(object):
    ''' Records every publish '''

    def __init__(self):
        self.messages = []
        self._lock = Lock()

    def publish(self, topic, message, retain=False, qos=0):
        with self._lock:
            self.messages.append((topic, message, retain))

    def topics(self):
        return [m[0] for m in self.messages]


def waitFor(predicate, timeout=2):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()
