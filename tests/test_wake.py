"""
Unit tests for WakeNotifier.

Redis is mocked; without a Redis URL the notifier only wakes the local process.
"""

import json
import pytest
from unittest.mock import Mock, patch

from helpdesk.services.wake import WakeNotifier, DEFAULT_CHANNEL

pytestmark = pytest.mark.unit


class TestWakeNotifier:
    """Test cases for WakeNotifier class."""

    @pytest.fixture
    def mock_redis(self):
        with patch('helpdesk.services.wake.redis.from_url') as from_url:
            client = Mock()
            from_url.return_value = client
            yield client

    def test_without_redis(self):
        notifier = WakeNotifier()

        assert notifier.enabled is False
        assert notifier.publish('execution-1') is False
        assert notifier.wait(0) is True

    def test_publish_to_channel(self, mock_redis):
        notifier = WakeNotifier(redis_url='redis://localhost:6379/0')

        assert notifier.enabled is True
        assert notifier.publish('execution-1') is True
        mock_redis.publish.assert_called_once_with(DEFAULT_CHANNEL, json.dumps({'execution_id': 'execution-1'}))

    def test_unreachable_redis_is_disabled(self, mock_redis):
        mock_redis.ping.side_effect = ConnectionError('refused')

        notifier = WakeNotifier(redis_url='redis://localhost:6379/0')

        assert notifier.enabled is False

    def test_publish_error_still_wakes_locally(self, mock_redis):
        mock_redis.publish.side_effect = RuntimeError('connection reset')
        notifier = WakeNotifier(redis_url='redis://localhost:6379/0')

        assert notifier.publish('execution-1') is False
        assert notifier.wait(0) is True

    def test_listen_subscribes_once(self, mock_redis):
        pubsub = mock_redis.pubsub.return_value
        notifier = WakeNotifier(redis_url='redis://localhost:6379/0', channel='custom:wake')

        notifier.listen()
        notifier.listen()

        pubsub.subscribe.assert_called_once()
        assert 'custom:wake' in pubsub.subscribe.call_args[1]
        pubsub.run_in_thread.assert_called_once_with(sleep_time=1.0, daemon=True)

        notifier.close()
        pubsub.run_in_thread.return_value.stop.assert_called_once()
        pubsub.close.assert_called_once()

    def test_message_wakes_waiter(self):
        notifier = WakeNotifier()

        notifier._on_message({'data': json.dumps({'execution_id': 'execution-1'})})

        assert notifier.wait(0) is True

    def test_malformed_message_still_wakes(self):
        notifier = WakeNotifier()

        notifier._on_message({'data': 'not json'})

        assert notifier.wait(0) is True

    def test_wait_times_out(self):
        assert WakeNotifier().wait(0.01) is False
