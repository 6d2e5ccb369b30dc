# -*- coding: utf-8 -*-
import logging

from icmplib import ping
from icmplib.exceptions import ICMPLibError


class Prober(object):
    ''' Checks whether a device answers ICMP echo requests on the local network

    Args:
        privileged (bool, optional): use raw sockets.  Requires root.  The default uses unprivileged datagram sockets, which on Linux need `net.ipv4.ping_group_range` to include the process group.
    '''
    _logger = logging.getLogger(__name__)

    def __init__(self, privileged=False):
        self._privileged = privileged

    def probe(self, address, timeout):
        ''' Send a single echo request to address

        Args:
            address (str): IP address or hostname to probe
            timeout (float): seconds to wait for the reply

        Returns:
            `True` if a reply arrived in time.  Any failure (timeout, unreachable host, socket error, bad address) returns `False`; this method never raises.
        '''
        if not address:
            return False
        try:
            host = ping(address, count=1, timeout=timeout, privileged=self._privileged)
        except (ICMPLibError, OSError, ValueError) as e:
            self._logger.debug('error trying to ping ({0}): {1}'.format(address, e))
            return False
        return host.is_alive
