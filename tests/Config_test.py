import pytest

from fireboard2mqtt.Config import Config
from fireboard2mqtt.exceptions import ConfigError


def test_defaults():
    cfg = Config(apiToken='token')

    assert(cfg.mqttUrl=='mqtt://localhost:1883')
    assert(cfg.baseTopic=='fireboard2mqtt')
    assert(cfg.discoveryTopic=='homeassistant')
    assert(cfg.uniqueIdPrefix=='fireboard')
    assert(cfg.apiUrl=='https://fireboard.io/api/')
    assert(cfg.pingInterval==10)
    assert(cfg.pingTimeout==9)
    assert(cfg.reachablePollInterval==20)
    assert(cfg.unreachablePollInterval==300)
    assert(cfg.maxFetchFailures==3)
    assert(cfg.mqttUsername is None)
    assert(cfg.enableDrive is False)

def test_ping_timeout_floor():
    assert(Config(apiToken='token', pingInterval=1).pingTimeout==1)

def test_unknown_option_rejected():
    with pytest.raises(ConfigError) as e:
        Config(apiToken='token', refreshInterval=5)
    assert('refreshInterval' in str(e.value))

def test_missing_token():
    with pytest.raises(ConfigError):
        Config()

@pytest.mark.parametrize('options', [
    {'pingInterval': 0},
    {'reachablePollInterval': -5},
    {'maxFetchFailures': 'three'},
    {'mqttUrl': 'http://broker:1883'},
    {'mqttUrl': 'mqtt://'},
    {'logLevel': 'CHATTY'},
    {'baseTopic': 'fireboard/#'},
    {'enableDrive': 'maybe'},
])
def test_invalid_values(options):
    with pytest.raises(ConfigError):
        Config(apiToken='token', **options)

def test_load_yaml_with_environment_override(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text('apiToken: from-file\nbaseTopic: smoker\nreachablePollInterval: 30\n')

    cfg = Config.load(str(path), environ={'FB2MQTT_MQTT_BASE_TOPIC': 'grill', 'FB2MQTT_PING_INTERVAL': '5'})

    assert(cfg.apiToken=='from-file')
    assert(cfg.baseTopic=='grill')
    assert(cfg.reachablePollInterval==30)
    assert(cfg.pingInterval==5)

def test_load_environment_only():
    cfg = Config.load(environ={'FB2MQTT_FIREBOARD_API_TOKEN': 'abc', 'FB2MQTT_MAX_FETCH_FAILURES': '5'})
    assert(cfg.apiToken=='abc')
    assert(cfg.maxFetchFailures==5)

def test_load_rejects_bad_files(tmp_path):
    with pytest.raises(ConfigError):
        Config.load(str(tmp_path / 'missing.yaml'), environ={})

    path = tmp_path / 'list.yaml'
    path.write_text('- apiToken\n')
    with pytest.raises(ConfigError):
        Config.load(str(path), environ={})

    path = tmp_path / 'broken.yaml'
    path.write_text('apiToken: [unclosed\n')
    with pytest.raises(ConfigError):
        Config.load(str(path), environ={})

def test_repr_hides_secrets():
    text = repr(Config(apiToken='secret-token', mqttPassword='hunter2'))
    assert('secret-token' not in text)
    assert('hunter2' not in text)

@pytest.mark.parametrize('text, expected', [('true', True), ('TRUE', True), ('1', True), ('false', False), ('no', False)])
def test_enable_drive_from_environment(text, expected):
    cfg = Config.load(environ={'FB2MQTT_FIREBOARD_API_TOKEN': 'abc', 'FB2MQTT_FIREBOARD_ENABLE_DRIVE': text})
    assert(cfg.enableDrive is expected)

def test_enable_drive_from_yaml(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text('apiToken: abc\nenableDrive: yes\n')
    assert(Config.load(str(path), environ={}).enableDrive is True)
