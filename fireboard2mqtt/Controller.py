# -*- coding: utf-8 -*-
from threading import Thread
import logging

from fireboard2mqtt.Device import Device
from fireboard2mqtt.Topics import Topics, ONLINE, OFFLINE
from fireboard2mqtt.exceptions import MalformedSnapshotError


class Controller(object):
    ''' Creates a Device for every board on the account and forwards what each one emits to the message bus.

    Args:
        apiClient (:obj:`ApiClient`): cloud API client, must provide `getDevices()`, `getDevice(uuid)` and, with drive support, `getDrivelog(uuid)`
        publisher (:obj:`MqttClient`): anything with a `publish(topic, message, retain=False)` method
        cfg (:obj:`Config`): configuration shared by every device
        prober (:obj:`Prober`, optional): reachability prober handed to every device
    '''
    _logger = logging.getLogger(__name__)

    def __init__(self, apiClient, publisher, cfg, prober=None):
        self._apiClient = apiClient
        self._publisher = publisher
        self._cfg = cfg
        self._prober = prober
        self._topics = Topics.fromConfig(cfg)
        self._devices = dict() # hardware id -> Device
        self._forwarders = list()

    @property
    def devices(self):
        return dict(self._devices)

    @staticmethod
    def retainFor(topic):
        ''' Discovery and availability messages are retained so late subscribers see them; states are not '''
        return topic.endswith('/config') or topic.endswith('/availability')

    def start(self):
        ''' Announce the bridge, discover the account's devices and start each of them

        Raises:
            CloudApiError: if the device list can not be fetched
        '''
        self._publisher.publish(self._topics.bridgeAvailability(), ONLINE, retain=True)

        snapshots = self._apiClient.getDevices()
        self._logger.info('found {0} device(s) on the fireboard account'.format(len(snapshots)))
        if self._cfg.enableDrive:
            self._logger.info('drive support is enabled, every poll also reads the realtime drivelog')

        for snapshot in snapshots:
            try:
                device = Device.fromConfig(snapshot, self._apiClient, self._cfg, prober=self._prober)
            except MalformedSnapshotError as e:
                self._logger.warning('ignoring device that can not be read: {0}'.format(e))
                continue
            if device.uniqueId in self._devices:
                self._logger.warning('ignoring duplicate device {0}'.format(device.uniqueId))
                continue
            self._devices[device.uniqueId] = device

            forwarder = Thread(target=self._forward, args=(device,), name='forward:{0}'.format(device.uniqueId), daemon=True)
            forwarder.start()
            self._forwarders.append(forwarder)
            device.start()

    def _forward(self, device):
        ''' Publish every (topic, payload) pair a device emits until the device stops '''
        for topic, payload in device.events():
            try:
                self._publisher.publish(topic, payload, retain=self.retainFor(topic))
            except (OSError, ValueError, RuntimeError) as e:
                self._logger.warning('unable to publish {0}: {1}'.format(topic, e))

    def stop(self, timeout=5):
        ''' Stop every device, wait for their queued messages to be published and mark the bridge offline '''
        for device in self._devices.values():
            device.stop()
        for forwarder in self._forwarders:
            forwarder.join(timeout)
        self._publisher.publish(self._topics.bridgeAvailability(), OFFLINE, retain=True)
        self._logger.info('stopped')
