"""
Tests for loading and validating config.toml
"""

import pytest

from config import load_config
from errors import ConfigError

VALID = '''
interval_seconds = 60
ntfy_endpoint = "https://ntfy.sh/warrior-test"

[[program_ids]]
id = "prog-1"
name = "Badminton"

[[program_ids]]
id = "prog-2"
name = "Climbing"
'''


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv('NTFY_ENDPOINT', raising=False)
    monkeypatch.delenv('WARRIOR_CONFIG', raising=False)


def write(tmp_path, text):
    path = tmp_path / 'config.toml'
    path.write_text(text)
    return str(path)


def test_valid_config(tmp_path):
    config = load_config(write(tmp_path, VALID))
    assert config.interval_seconds == 60
    assert config.ntfy_endpoint == 'https://ntfy.sh/warrior-test'
    assert [(p.id, p.name) for p in config.program_ids] == [('prog-1', 'Badminton'), ('prog-2', 'Climbing')]
    assert config.max_concurrency == 4
    assert config.request_timeout_seconds == 10
    assert config.backoff_threshold == 3
    assert config.max_backoff_ticks == 8
    assert config.notify_on_startup is False


def test_optional_settings(tmp_path):
    text = 'max_concurrency = 2\nrequest_timeout_seconds = 2.5\nmax_backoff_ticks = 0\nnotify_on_startup = true\n' + VALID
    config = load_config(write(tmp_path, text))
    assert config.max_concurrency == 2
    assert config.request_timeout_seconds == 2.5
    assert config.max_backoff_ticks == 0
    assert config.notify_on_startup is True


def test_env_overrides(tmp_path, monkeypatch):
    path = write(tmp_path, VALID)
    monkeypatch.setenv('WARRIOR_CONFIG', path)
    monkeypatch.setenv('NTFY_ENDPOINT', 'https://ntfy.example.org/secret-topic')

    config = load_config()
    assert config.ntfy_endpoint == 'https://ntfy.example.org/secret-topic'


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / 'nope.toml'))


def test_invalid_toml(tmp_path):
    with pytest.raises(ConfigError):
        load_config(write(tmp_path, 'interval_seconds = = 3'))


@pytest.mark.parametrize('replace, with_', [
    ('interval_seconds = 60', 'interval_seconds = 0'),
    ('interval_seconds = 60', 'interval_seconds = "60"'),
    ('interval_seconds = 60', 'interval_seconds = true'),
    ('interval_seconds = 60', ''),
    ('"https://ntfy.sh/warrior-test"', '"ntfy.sh/warrior-test"'),
    ('"https://ntfy.sh/warrior-test"', '"ftp://ntfy.sh/warrior-test"'),
    ('"https://ntfy.sh/warrior-test"', '""'),
    ('id = "prog-2"', 'id = "prog-1"'),
    ('name = "Climbing"', 'name = ""'),
])
def test_invalid_values(tmp_path, replace, with_):
    with pytest.raises(ConfigError):
        load_config(write(tmp_path, VALID.replace(replace, with_)))


def test_empty_program_list(tmp_path):
    text = 'interval_seconds = 60\nntfy_endpoint = "https://ntfy.sh/t"\nprogram_ids = []\n'
    with pytest.raises(ConfigError):
        load_config(write(tmp_path, text))


@pytest.mark.parametrize('line', ['max_concurrency = 0', 'request_timeout_seconds = -1', 'backoff_threshold = 0'])
def test_invalid_optional_settings(tmp_path, line):
    with pytest.raises(ConfigError):
        load_config(write(tmp_path, line + '\n' + VALID))


@pytest.mark.parametrize('replace, with_', [
    ('id = "prog-1"', 'id = 123'),
    ('id = "prog-1"', 'id = { guid = "prog-1" }'),
    ('name = "Badminton"', 'name = 5'),
    ('name = "Badminton"', 'name = ["Badminton"]'),
])
def test_non_string_program_fields(tmp_path, replace, with_):
    with pytest.raises(ConfigError):
        load_config(write(tmp_path, VALID.replace(replace, with_)))
