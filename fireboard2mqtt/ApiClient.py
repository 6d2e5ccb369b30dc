# -*- coding: utf-8 -*-
from urllib.parse import urljoin
import logging

import requests

from fireboard2mqtt import __version__
from fireboard2mqtt.exceptions import CloudApiError

USER_AGENT = 'fireboard2mqtt/{0}'.format(__version__)


class ApiClient(object):
    ''' Reads devices from the FireBoard cloud REST API

    The cloud API allows 200 requests per hour per account, so poll intervals should stay at or above 20 seconds for a single device.

    Args:
        apiToken (str): API token of the account
        baseUrl (str, optional): API root.  Default is `https://fireboard.io/api/`
        timeout (float, optional): seconds to wait for a response.  Default is 10.
        session (:obj:`requests.Session`, optional): session to send requests with
    '''
    _logger = logging.getLogger(__name__)

    def __init__(self, apiToken, baseUrl='https://fireboard.io/api/', timeout=10, session=None):
        self._baseUrl = baseUrl if baseUrl.endswith('/') else baseUrl + '/'
        self._timeout = timeout
        self._session = session if session is not None else requests.Session()
        self._session.headers.update({
            'Authorization': 'Token {0}'.format(apiToken),
            'Content-Type': 'application/json',
            'User-Agent': USER_AGENT,
        })

    @classmethod
    def fromConfig(cls, cfg):
        return cls(cfg.apiToken, cfg.apiUrl, cfg.apiTimeout)

    def _get(self, path):
        url = urljoin(self._baseUrl, path)
        self._logger.debug('GET {0}'.format(url))
        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as e:
            raise CloudApiError('request to {0} failed: {1}'.format(url, e))

        if not response.ok:
            raise CloudApiError('request to {0} returned {1} {2}'.format(url, response.status_code, response.reason), status=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise CloudApiError('unable to parse response from {0}: {1}'.format(url, e), status=response.status_code)

    def getDevices(self):
        ''' Return every device of the account as a `list` of snapshots

        Raises:
            CloudApiError: on a network error, a non-2xx response or a body that is not a JSON list
        '''
        devices = self._get('v1/devices.json')
        if not isinstance(devices, list):
            raise CloudApiError('expected a list of devices, got {0}'.format(type(devices).__name__))
        return devices

    def getDevice(self, uuid):
        ''' Return the snapshot of the device identified by uuid

        Raises:
            CloudApiError: on a network error, a non-2xx response or a body that is not a JSON object
        '''
        device = self._get('v1/devices/{0}.json'.format(uuid))
        if not isinstance(device, dict):
            raise CloudApiError('expected a device object, got {0}'.format(type(device).__name__))
        return device

    def getDrivelog(self, uuid):
        ''' Return the realtime drivelog of the device identified by uuid, or None when the cloud has nothing to report

        The API answers with an empty object while no drive is attached or running.

        Raises:
            CloudApiError: on a network error, a non-2xx response or a body that is not a JSON object
        '''
        drivelog = self._get('v1/devices/{0}/drivelog.json'.format(uuid))
        if not isinstance(drivelog, dict):
            raise CloudApiError('expected a drivelog object, got {0}'.format(type(drivelog).__name__))
        return drivelog or None

    def close(self):
        self._session.close()
