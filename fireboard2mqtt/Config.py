# -*- coding: utf-8 -*-
from urllib.parse import urlparse
import logging
import os

import yaml

from fireboard2mqtt.exceptions import ConfigError

TRUE = ('true', 'yes', 'on', '1')
FALSE = ('false', 'no', 'off', '0', '')


def boolean(value):
    ''' Accept a bool or one of the usual spellings of one, as found in environment variables '''
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE:
        return True
    if text in FALSE:
        return False
    raise ValueError('{0!r} is not a boolean'.format(value))


# option name: (environment variable, default, type)
OPTIONS = {
    'mqttUrl': ('FB2MQTT_MQTT_URL', 'mqtt://localhost:1883', str),
    'mqttUsername': ('FB2MQTT_MQTT_USERNAME', None, str),
    'mqttPassword': ('FB2MQTT_MQTT_PASSWORD', None, str),
    'mqttClientId': ('FB2MQTT_MQTT_CLIENTID', 'fireboard2mqtt', str),
    'baseTopic': ('FB2MQTT_MQTT_BASE_TOPIC', 'fireboard2mqtt', str),
    'discoveryTopic': ('FB2MQTT_MQTT_DISCOVERY_TOPIC', 'homeassistant', str),
    'uniqueIdPrefix': ('FB2MQTT_UNIQUE_ID_PREFIX', 'fireboard', str),
    'apiToken': ('FB2MQTT_FIREBOARD_API_TOKEN', None, str),
    'apiUrl': ('FB2MQTT_FIREBOARD_API_URL', 'https://fireboard.io/api/', str),
    'apiTimeout': ('FB2MQTT_FIREBOARD_API_TIMEOUT', 10.0, float),
    'enableDrive': ('FB2MQTT_FIREBOARD_ENABLE_DRIVE', False, boolean),
    'pingInterval': ('FB2MQTT_PING_INTERVAL', 10.0, float),
    'reachablePollInterval': ('FB2MQTT_REACHABLE_POLL_INTERVAL', 20.0, float),
    'unreachablePollInterval': ('FB2MQTT_UNREACHABLE_POLL_INTERVAL', 300.0, float),
    'maxFetchFailures': ('FB2MQTT_MAX_FETCH_FAILURES', 3, int),
    'logLevel': ('FB2MQTT_LOG_LEVEL', 'INFO', str),
}

MQTT_SCHEMES = ('mqtt', 'tcp', 'mqtts', 'ssl', 'tls')


class Config(object):
    ''' Every option fireboard2mqtt understands.

    Options are read from a YAML mapping and may be overridden by `FB2MQTT_*` environment variables.  Keys that are not listed in `OPTIONS` are rejected.

    Args:
        apiToken (str): token for the cloud API.  Required.
        mqttUrl (str): broker url, `mqtt://host:port` or `mqtts://host:port`
        mqttUsername (str): broker username
        mqttPassword (str): broker password
        mqttClientId (str): MQTT client id
        baseTopic (str): prefix of every state and availability topic
        discoveryTopic (str): Home Assistant discovery prefix
        uniqueIdPrefix (str): prepended to every entity unique_id.  An empty string disables the prefix.
        apiUrl (str): cloud API root
        apiTimeout (float): seconds to wait for a cloud API response
        enableDrive (bool): also poll the realtime drivelog of every device and publish its drive entities.  Every poll then makes two requests, so consider doubling the poll intervals.
        pingInterval (float): seconds between reachability probes
        reachablePollInterval (float): seconds between cloud polls while the device answers pings
        unreachablePollInterval (float): seconds between cloud polls while the device does not answer pings
        maxFetchFailures (int): consecutive failed polls after which every channel is reported offline
        logLevel (str): name of the logging level

    Raises:
        ConfigError: if an option is unknown, missing or invalid
    '''
    _logger = logging.getLogger(__name__)

    def __init__(self, **options):
        unknown = sorted(k for k in options if k not in OPTIONS)
        if unknown:
            raise ConfigError('unknown configuration option(s): {0}'.format(', '.join(unknown)))

        for key, (env, default, kind) in OPTIONS.items():
            value = options.get(key, default)
            if value is not None:
                try:
                    value = kind(value)
                except (TypeError, ValueError):
                    raise ConfigError('{0} must be a {1}, got {2!r}'.format(key, kind.__name__, value))
            setattr(self, key, value)

        self._validate()

    def _validate(self):
        if not self.apiToken:
            raise ConfigError('missing required option apiToken (env FB2MQTT_FIREBOARD_API_TOKEN)')
        for key in ('apiTimeout', 'pingInterval', 'reachablePollInterval', 'unreachablePollInterval', 'maxFetchFailures'):
            if getattr(self, key) <= 0:
                raise ConfigError('{0} must be greater than zero'.format(key))
        url = urlparse(self.mqttUrl)
        if url.scheme not in MQTT_SCHEMES or not url.hostname:
            raise ConfigError('unsupported mqtt url {0}'.format(self.mqttUrl))
        if not isinstance(logging.getLevelName(self.logLevel.upper()), int):
            raise ConfigError('unknown log level {0}'.format(self.logLevel))
        for key in ('baseTopic', 'discoveryTopic'):
            topic = getattr(self, key)
            if not topic or '+' in topic or '#' in topic:
                raise ConfigError('{0} must be a non-empty topic without wildcards'.format(key))

    @property
    def pingTimeout(self):
        ''' Probe timeout, one second shorter than the probe interval '''
        return max(self.pingInterval - 1, 1)

    @classmethod
    def load(cls, path=None, environ=None):
        ''' Build a Config from a YAML file and the environment

        Args:
            path (str, optional): YAML file holding a mapping of options.  Skipped if None.
            environ (`dict`, optional): environment to read overrides from.  Defaults to `os.environ`.
        '''
        environ = os.environ if environ is None else environ
        options = {}
        if path is not None:
            try:
                with open(path) as f:
                    loaded = yaml.safe_load(f)
            except OSError as e:
                raise ConfigError('unable to read {0}: {1}'.format(path, e))
            except yaml.YAMLError as e:
                raise ConfigError('unable to parse {0}: {1}'.format(path, e))
            if loaded is not None and not isinstance(loaded, dict):
                raise ConfigError('{0} must hold a mapping of options'.format(path))
            options.update(loaded or {})

        for key, (env, default, kind) in OPTIONS.items():
            if environ.get(env):
                options[key] = environ[env]

        return cls(**options)

    def __repr__(self):
        shown = ', '.join('{0}={1!r}'.format(k, '***' if k in ('apiToken', 'mqttPassword') and getattr(self, k) else getattr(self, k)) for k in OPTIONS)
        return 'Config({0})'.format(shown)
