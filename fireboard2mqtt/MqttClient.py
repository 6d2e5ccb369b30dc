# -*- coding: utf-8 -*-
from threading import Event
from urllib.parse import urlparse
import json
import logging
import ssl

import paho.mqtt.client as mqtt

from fireboard2mqtt.Topics import OFFLINE


class MqttClient(object):
    ''' Thin wrapper around a paho MQTT client

    The client registers a retained `offline` last will on the bridge availability topic so subscribers notice when the bridge disappears.

    Args:
        url (str): broker url, `mqtt://host[:port]` or `mqtts://host[:port]`
        clientId (str, optional): MQTT client id
        username (str, optional): broker username
        password (str, optional): broker password
        willTopic (str, optional): topic of the last will.  No will is registered if None.
        keepalive (int, optional): seconds between keepalive pings
    '''
    _logger = logging.getLogger(__name__)

    def __init__(self, url, clientId='fireboard2mqtt', username=None, password=None, willTopic=None, keepalive=60):
        parsed = urlparse(url)
        self._url = url
        self._secure = parsed.scheme in ('mqtts', 'ssl', 'tls')
        self._host = parsed.hostname
        self._port = parsed.port or (8883 if self._secure else 1883)
        self._keepalive = keepalive
        self._connected = Event()

        self._client = mqtt.Client(callback_api_version=mqtt.CallbackAPIVersion.VERSION2, client_id=clientId)
        self._client.on_connect = self._onConnect
        self._client.on_disconnect = self._onDisconnect
        if username:
            self._client.username_pw_set(username, password)
        if self._secure:
            self._client.tls_set(cert_reqs=ssl.CERT_REQUIRED)
        if willTopic:
            self._client.will_set(willTopic, OFFLINE, qos=1, retain=True)

    @classmethod
    def fromConfig(cls, cfg, willTopic=None):
        return cls(cfg.mqttUrl, cfg.mqttClientId, cfg.mqttUsername, cfg.mqttPassword, willTopic)

    def _onConnect(self, client, userdata, flags, reasonCode, properties):
        if reasonCode.is_failure:
            self._logger.error('connection to mqtt broker {0} refused: {1}'.format(self._url, reasonCode))
            return
        self._logger.info('connected to mqtt broker {0}'.format(self._url))
        self._connected.set()

    def _onDisconnect(self, client, userdata, flags, reasonCode, properties):
        self._connected.clear()
        self._logger.warning('disconnected from mqtt broker {0}: {1}'.format(self._url, reasonCode))

    @property
    def connected(self):
        return self._connected.is_set()

    def connect(self, timeout=10):
        ''' Connect to the broker and start the network loop thread.  paho reconnects on its own after a disconnect.

        Raises:
            ConnectionError: if the broker did not accept the connection within timeout seconds
        '''
        self._logger.info('connecting to mqtt broker {0}:{1}'.format(self._host, self._port))
        self._client.connect(self._host, self._port, self._keepalive)
        self._client.loop_start()
        if not self._connected.wait(timeout):
            self._client.loop_stop()
            raise ConnectionError('unable to connect to mqtt broker {0}'.format(self._url))

    def publish(self, topic, message, retain=False, qos=0):
        ''' Publish message on topic.  Strings are sent as is, anything else is JSON encoded. '''
        payload = message if isinstance(message, str) else json.dumps(message, ensure_ascii=False)
        self._logger.debug('publish {0}: {1}'.format(topic, payload))
        self._client.publish(topic, payload, qos=qos, retain=retain)

    def disconnect(self):
        self._client.disconnect()
        self._client.loop_stop()
