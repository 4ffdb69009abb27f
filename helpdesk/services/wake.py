"""
Wake notifications for the sequence scheduler using Redis pub/sub.

Starting an execution publishes a small message so a waiting scheduler can
act immediately instead of sleeping until its next poll tick. This is only a
latency optimization: without Redis the scheduler still finds due work on its
own, and wake-ups inside the same process always work.
"""

import json
import logging
import threading
from typing import Optional
import redis

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = 'sequence:execute'


class WakeNotifier:
    """Publish/subscribe "execute now" signal for the sequence scheduler."""

    def __init__(self, redis_url: Optional[str] = None, channel: str = DEFAULT_CHANNEL):
        """Initialize the notifier; Redis is optional."""
        self.redis_url = redis_url
        self.channel = channel
        self.redis_client = None
        self._event = threading.Event()
        self._listener = None
        self._pubsub = None
        self._connect()

    def _connect(self):
        """Connect to Redis."""
        if not self.redis_url:
            logger.info("No Redis URL configured - scheduler wake-ups stay in-process")
            return

        try:
            self.redis_client = redis.from_url(self.redis_url, decode_responses=True)
            # Test connection
            self.redis_client.ping()
            logger.info("Successfully connected to Redis for scheduler wake-ups")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {str(e)}")
            self.redis_client = None

    @property
    def enabled(self) -> bool:
        return self.redis_client is not None

    def publish(self, execution_id: str) -> bool:
        """Wake local and remote schedulers for a newly started execution."""
        self._event.set()

        if not self.redis_client:
            return False

        try:
            self.redis_client.publish(self.channel, json.dumps({'execution_id': execution_id}))
            return True
        except Exception as e:
            logger.error(f"Error publishing wake-up for execution {execution_id}: {str(e)}")
            return False

    def listen(self):
        """Subscribe to the wake channel on a daemon thread."""
        if not self.redis_client or self._listener is not None:
            return

        try:
            self._pubsub = self.redis_client.pubsub(ignore_subscribe_messages=True)
            self._pubsub.subscribe(**{self.channel: self._on_message})
            self._listener = self._pubsub.run_in_thread(sleep_time=1.0, daemon=True)
            logger.info(f"Listening for scheduler wake-ups on '{self.channel}'")
        except Exception as e:
            logger.error(f"Failed to subscribe to '{self.channel}': {str(e)}")
            self._listener = None

    def _on_message(self, message):
        try:
            payload = json.loads(message.get('data') or '{}')
            logger.debug(f"Wake-up received for execution {payload.get('execution_id')}")
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed wake-up message: {message!r}")
        self._event.set()

    def wait(self, timeout: float) -> bool:
        """Block until woken or ``timeout`` seconds pass; True when woken."""
        woken = self._event.wait(timeout)
        self._event.clear()
        return woken

    def wake(self):
        """Wake the local scheduler without publishing."""
        self._event.set()

    def close(self):
        if self._listener is not None:
            try:
                self._listener.stop()
            except Exception as e:
                logger.error(f"Error stopping wake-up listener: {str(e)}")
            self._listener = None
        if self._pubsub is not None:
            try:
                self._pubsub.close()
            except Exception as e:
                logger.error(f"Error closing wake-up subscription: {str(e)}")
            self._pubsub = None
