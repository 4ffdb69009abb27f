import os
import logging
import requests
from flask import current_app

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class ChannelSenderError(Exception):
    """Custom exception for messaging gateway errors."""
    def __init__(self, message, status_code=None, response_data=None):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class ChannelSender:
    """Client that delivers sequence steps through the messaging gateway."""

    def __init__(self, base_url=None, api_key=None, timeout=None):
        """Initialize the channel sender."""
        self.base_url = (base_url or self._get_config('CHANNEL_GATEWAY_URL') or '').rstrip('/')
        self.api_key = api_key or self._get_config('CHANNEL_GATEWAY_API_KEY')
        self.timeout = timeout or self._get_config('CHANNEL_GATEWAY_TIMEOUT') or DEFAULT_TIMEOUT

        if not self.base_url:
            logger.warning("No messaging gateway URL configured")

    def _get_config(self, key):
        """Get a setting from the environment or the Flask config."""
        # Try environment variable first
        value = os.environ.get(key)
        if value:
            return value

        # Try Flask config if available
        try:
            if current_app:
                return current_app.config.get(key)
        except RuntimeError:
            # No application context
            pass

        return None

    def _make_request(self, method, endpoint, **kwargs):
        """Make a request to the messaging gateway."""
        if not self.base_url:
            raise ChannelSenderError("No messaging gateway URL available")

        url = f"{self.base_url}{endpoint}"
        headers = {}
        if self.api_key:
            headers['X-API-KEY'] = self.api_key
        if 'json' in kwargs and kwargs['json'] is not None:
            headers['Content-Type'] = 'application/json'
        kwargs['headers'] = {**headers, **(kwargs.get('headers') or {})}
        kwargs.setdefault('timeout', int(self.timeout))

        try:
            response = requests.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.exceptions.RequestException as e:
            logger.error(f"Messaging gateway request failed: {str(e)}")
            if getattr(e, 'response', None) is not None:
                logger.error(f"Response status: {e.response.status_code}")
                logger.error(f"Response body: {e.response.text}")
                raise ChannelSenderError(
                    f"Messaging gateway request failed: {str(e)}",
                    status_code=e.response.status_code,
                    response_data=e.response.text
                )
            raise ChannelSenderError(f"Messaging gateway request failed: {str(e)}")
        except ValueError as e:
            raise ChannelSenderError(f"Messaging gateway returned invalid JSON: {str(e)}")

    def build_payload(self, context, step):
        """Translate a step into the gateway's message payload."""
        content = step.content or {}
        payload = {
            'to': context.contact_identifier,
            'channel_type': context.channel_type,
            'type': step.type.lower(),
        }
        if content.get('text'):
            payload['text'] = content['text']
        if step.type != 'TEXT':
            payload['media_type'] = content.get('media_type') or step.type.lower()
            if content.get('media_url'):
                payload['media_url'] = content['media_url']
            if content.get('media_filename'):
                payload['media_filename'] = content['media_filename']
        return payload

    def send_message(self, channel_id, payload):
        """Send one message on a channel."""
        return self._make_request('POST', f'/channels/{channel_id}/messages', json=payload)

    def send_step(self, context, step):
        """
        Deliver a TEXT/IMAGE/VIDEO/AUDIO/DOCUMENT step to the conversation's contact.

        Returns:
            {'success': True, 'message_id': ...} or {'success': False, 'error': ...}
        """
        if step.type == 'DELAY':
            return {'success': True, 'skipped': True}

        if context is None or not context.channel_id:
            return {'success': False, 'error': 'Conversation has no channel'}

        if not context.contact_identifier:
            return {'success': False, 'error': 'Conversation contact has no identifier'}

        payload = self.build_payload(context, step)
        try:
            result = self.send_message(context.channel_id, payload)
        except ChannelSenderError as e:
            return {'success': False, 'error': str(e)}

        if isinstance(result, dict) and result.get('success') is False:
            return {'success': False, 'error': result.get('error') or 'Gateway rejected the message'}

        message_id = None
        if isinstance(result, dict):
            message_id = result.get('message_id') or result.get('id')

        logger.info(f"Sent {step.type} step to conversation {context.conversation_id} (message {message_id})")
        return {'success': True, 'message_id': message_id}
