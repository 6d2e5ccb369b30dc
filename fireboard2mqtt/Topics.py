# -*- coding: utf-8 -*-

ONLINE = 'online'
OFFLINE = 'offline'
ON = 'on'
OFF = 'off'


class Topics(object):
    ''' Builds every MQTT topic used by fireboard2mqtt

    Args:
        baseTopic (str): prefix of the state, availability and bridge topics
        discoveryTopic (str): Home Assistant discovery prefix
    '''

    def __init__(self, baseTopic='fireboard2mqtt', discoveryTopic='homeassistant'):
        self.baseTopic = baseTopic.rstrip('/')
        self.discoveryTopic = discoveryTopic.rstrip('/')

    @classmethod
    def fromConfig(cls, cfg):
        return cls(cfg.baseTopic, cfg.discoveryTopic)

    @staticmethod
    def channelKey(number):
        return 'channel_{0}'.format(number)

    def bridge(self):
        return '{0}/bridge'.format(self.baseTopic)

    def bridgeAvailability(self):
        return '{0}/availability'.format(self.bridge())

    def entity(self, hardwareId, sensorKey):
        return '{0}/{1}/{2}'.format(self.baseTopic, hardwareId, sensorKey)

    def state(self, hardwareId, sensorKey):
        return '{0}/state'.format(self.entity(hardwareId, sensorKey))

    def availability(self, hardwareId, sensorKey):
        return '{0}/availability'.format(self.entity(hardwareId, sensorKey))

    def discovery(self, component, hardwareId, objectId):
        return '{0}/{1}/{2}/{3}/config'.format(self.discoveryTopic, component, hardwareId, objectId)

    def deviceAvailability(self, hardwareId):
        ''' Whether the board itself answers on the local network '''
        return '{0}/{1}/availability'.format(self.baseTopic, hardwareId)

    def attributes(self, hardwareId, sensorKey):
        return '{0}/attributes'.format(self.entity(hardwareId, sensorKey))
