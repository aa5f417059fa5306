"""Pytest configuration and shared fixtures."""

import logging

import pytest
from unittest.mock import patch

from signal_sampler import SignalSampler
from tests.fixtures.mock_helpers import (
    FIXED_TIME,
    RecordingToken,
    SubprocessMockFactory,
)
from tests.fixtures.mock_data import IWCONFIG_OUTPUT_NOT_ASSOCIATED


@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run with smart command handling."""
    side_effect = SubprocessMockFactory.create_mock()
    with patch('subprocess.run', side_effect=side_effect) as mock:
        yield mock


@pytest.fixture
def mock_subprocess_not_associated():
    """Mock subprocess.run with an interface that is not associated."""
    side_effect = SubprocessMockFactory.create_mock(iwconfig_output=IWCONFIG_OUTPUT_NOT_ASSOCIATED)
    with patch('subprocess.run', side_effect=side_effect) as mock:
        yield mock


@pytest.fixture
def mock_subprocess_missing_binary():
    """Mock subprocess.run as if iwconfig were not installed."""
    error = FileNotFoundError(2, 'No such file or directory', 'iwconfig')
    with patch('subprocess.run', side_effect=error) as mock:
        yield mock


@pytest.fixture
def fixed_clock():
    """Clock that always returns the same timestamp."""
    return lambda: FIXED_TIME


@pytest.fixture
def sampler(fixed_clock):
    """SignalSampler for wlan0 that goes through the patched subprocess.run."""
    return SignalSampler('wlan0', clock=fixed_clock)


@pytest.fixture
def recording_token():
    """Token that records pauses instead of sleeping."""
    return RecordingToken()


@pytest.fixture
def sampler_logs(caplog):
    """Capture records from the sampler at DEBUG and above."""
    caplog.set_level(logging.DEBUG)
    return caplog


@pytest.fixture
def clean_env(monkeypatch):
    """Remove signal sampler environment overrides."""
    for name in (
        'SIGNAL_SAMPLER_CONFIG',
        'SIGNAL_SAMPLER_LOG_LEVEL',
        'SIGNAL_SAMPLER_LOG_FILE',
        'SIGNAL_SAMPLER_LOG_FORMAT',
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def mock_time_sleep():
    """Mock time.sleep to speed up tests."""
    with patch('time.sleep') as mock:
        yield mock
