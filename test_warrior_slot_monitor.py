"""
Tests for the command line entry point
"""

import logging
import os
import signal
from datetime import datetime

import pytest

import warrior_slot_monitor
from models import AvailabilitySnapshot

CONFIG = '''
interval_seconds = 60
ntfy_endpoint = "https://ntfy.sh/warrior-test"
notify_on_startup = true

[[program_ids]]
id = "prog-1"
name = "Badminton"
'''


class FakeClient:
    instances = []

    def __init__(self, timeout, pool_size):
        self.timeout = timeout
        self.pool_size = pool_size
        self.closed = False
        FakeClient.instances.append(self)

    def check(self, program_id):
        return AvailabilitySnapshot(program_id, 5, datetime.now())

    def close(self):
        self.closed = True


class FakeDispatcher:
    instances = []

    def __init__(self, endpoint, timeout):
        self.endpoint = endpoint
        self.sent = []
        self.closed = False
        FakeDispatcher.instances.append(self)

    def notify(self, event):
        self.sent.append(event.display_name)

    def send_text(self, title, message):
        self.sent.append(title)

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def fakes(monkeypatch):
    monkeypatch.delenv('NTFY_ENDPOINT', raising=False)
    monkeypatch.delenv('WARRIOR_CONFIG', raising=False)
    FakeClient.instances = []
    FakeDispatcher.instances = []
    monkeypatch.setattr(warrior_slot_monitor, 'AvailabilityClient', FakeClient)
    monkeypatch.setattr(warrior_slot_monitor, 'NotificationDispatcher', FakeDispatcher)


def test_invalid_config_exits_nonzero(tmp_path):
    assert warrior_slot_monitor.main(['--config', str(tmp_path / 'missing.toml')]) == 1
    assert FakeClient.instances == []


def test_once_runs_single_tick(tmp_path):
    path = tmp_path / 'config.toml'
    path.write_text(CONFIG)

    assert warrior_slot_monitor.main(['--config', str(path), '--once']) == 0

    dispatcher = FakeDispatcher.instances[0]
    assert dispatcher.endpoint == 'https://ntfy.sh/warrior-test'
    assert dispatcher.sent == ['Warrior Slot Monitor Started', 'Badminton']
    assert dispatcher.closed
    assert FakeClient.instances[0].closed
    assert FakeClient.instances[0].pool_size == 4


def test_startup_message_lists_programs(tmp_path):
    path = tmp_path / 'config.toml'
    path.write_text(CONFIG)
    config = warrior_slot_monitor.load_config(str(path))

    message = warrior_slot_monitor.startup_message(config)
    assert 'Badminton (prog-1)' in message
    assert 'every 60 seconds' in message


class TerminatingClient(FakeClient):
    """Sends SIGTERM to this process in the middle of a check"""

    def check(self, program_id):
        os.kill(os.getpid(), signal.SIGTERM)
        return super().check(program_id)


def test_sigterm_finishes_tick_and_exits_cleanly(tmp_path, monkeypatch, caplog):
    monkeypatch.setattr(warrior_slot_monitor, 'AvailabilityClient', TerminatingClient)
    path = tmp_path / 'config.toml'
    path.write_text(CONFIG)
    handler_before = signal.getsignal(signal.SIGTERM)

    with caplog.at_level(logging.INFO):
        assert warrior_slot_monitor.main(['--config', str(path)]) == 0

    # The in-flight tick ran to completion, including its notification
    dispatcher = FakeDispatcher.instances[0]
    assert dispatcher.sent == ['Warrior Slot Monitor Started', 'Badminton']
    assert dispatcher.closed
    assert FakeClient.instances[0].closed
    assert signal.getsignal(signal.SIGTERM) is handler_before
    assert 'Received shutdown signal, finished current check' in caplog.text
