# -*- coding: utf-8 -*-
from threading import Event
import argparse
import logging
import signal
import sys

from fireboard2mqtt.ApiClient import ApiClient
from fireboard2mqtt.Config import Config
from fireboard2mqtt.Controller import Controller
from fireboard2mqtt.MqttClient import MqttClient
from fireboard2mqtt.Topics import Topics
from fireboard2mqtt.exceptions import CloudApiError, ConfigError

_logger = logging.getLogger('fireboard2mqtt')


def configureLogging(level):
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s'))
    _logger.setLevel(level.upper())
    _logger.addHandler(handler)


def main(argv=None):
    parser = argparse.ArgumentParser(prog='fireboard2mqtt', description='Publish FireBoard thermometers to an MQTT broker for Home Assistant')
    parser.add_argument('-c', '--config', help='YAML configuration file.  FB2MQTT_* environment variables override its values.')
    parser.add_argument('--log-level', help='logging level (overrides logLevel)')
    args = parser.parse_args(argv)

    try:
        cfg = Config.load(args.config)
    except ConfigError as e:
        print('fireboard2mqtt: {0}'.format(e), file=sys.stderr)
        return 1

    level = args.log_level or cfg.logLevel
    if not isinstance(logging.getLevelName(level.upper()), int):
        print('fireboard2mqtt: unknown log level {0}'.format(level), file=sys.stderr)
        return 1
    configureLogging(level)
    _logger.debug('loaded {0}'.format(cfg))

    topics = Topics.fromConfig(cfg)
    mqtt = MqttClient.fromConfig(cfg, willTopic=topics.bridgeAvailability())
    apiClient = ApiClient.fromConfig(cfg)

    try:
        mqtt.connect()
    except (ConnectionError, OSError) as e:
        _logger.error('{0}'.format(e))
        return 3

    controller = Controller(apiClient, mqtt, cfg)
    try:
        controller.start()
    except CloudApiError as e:
        _logger.error('unable to read devices from the fireboard cloud api: {0}'.format(e))
        mqtt.disconnect()
        return 2

    done = Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, lambda signum, frame: done.set())
    while not done.wait(1):
        pass

    _logger.info('shutting down')
    controller.stop()
    apiClient.close()
    mqtt.disconnect()
    return 0


if __name__ == '__main__':
    sys.exit(main())
