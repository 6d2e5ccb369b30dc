"""**Publishing FireBoard thermometers to Home Assistant over MQTT.**

.. module:: fireboard2mqtt

fireboard2mqtt keeps the state of every FireBoard on a cloud account in sync with an MQTT broker.  Each board is modelled as a Device which owns one Channel per temperature probe.  The Device pings the board on the local network to decide how often the cloud API should be polled, compares every snapshot it receives with what it already knows and emits only the topic/payload pairs that changed.  Home Assistant discovery payloads are published so each probe and the battery show up as sensor entities without any manual configuration.

The Controller discovers the boards on the account, starts a Device for each one and forwards what they emit to the broker.

Boards with a FireBoard Drive blower can optionally publish its output, mode, setpoint and lid state as well.

"""

__version__ = '0.1.0'

from fireboard2mqtt.Channel import Channel
from fireboard2mqtt.Device import Device
from fireboard2mqtt.Controller import Controller
from fireboard2mqtt.Config import Config
