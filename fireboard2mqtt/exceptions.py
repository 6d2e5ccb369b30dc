# -*- coding: utf-8 -*-

class Fireboard2MqttError(Exception):
    ''' Base class for every error raised by fireboard2mqtt '''


class ConfigError(Fireboard2MqttError):
    ''' The configuration is missing a required option or holds an invalid value.  Fatal at startup. '''


class CloudApiError(Fireboard2MqttError):
    ''' A request to the cloud API failed (network error, non-2xx response or malformed body).  Recoverable: polling retries on the next tick. '''

    def __init__(self, message, status=None):
        super(CloudApiError, self).__init__(message)
        self.status = status


class MalformedSnapshotError(Fireboard2MqttError):
    ''' A device snapshot is missing expected fields or holds values of the wrong type '''
