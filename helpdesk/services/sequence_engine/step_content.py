"""
Step content payloads.

Each step type carries its own content shape:
- TEXT: text
- IMAGE / VIDEO / AUDIO / DOCUMENT: media URL and/or caption text
- DELAY: a positive duration in minutes (or seconds)

Content is parsed into one of the classes below when a step is written, so
anything stored in ``message_sequence_steps.content`` already matches its type.
"""

import logging
import math
from datetime import timedelta
from typing import Dict, Any, Optional
from urllib.parse import urlparse

from helpdesk.models import STEP_TYPES, MEDIA_STEP_TYPES
from helpdesk.utils.error_handling import ValidationError

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 4096
MAX_DELAY_MINUTES = 10080  # 7 days
MAX_DELAY_SECONDS = MAX_DELAY_MINUTES * 60
DEFAULT_DELAY = timedelta(minutes=1)
MEDIA_TYPES = ('image', 'video', 'audio', 'document')


class StepContent:
    """Base class for typed step payloads."""
    step_type = None

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


class TextContent(StepContent):
    step_type = 'TEXT'

    def __init__(self, text: str):
        self.text = text

    def to_dict(self):
        return {'text': self.text}


class MediaContent(StepContent):
    """Payload for IMAGE, VIDEO, AUDIO and DOCUMENT steps."""

    def __init__(self, step_type: str, media_url: Optional[str] = None, text: Optional[str] = None,
                 media_filename: Optional[str] = None, media_type: Optional[str] = None):
        self.step_type = step_type
        self.media_url = media_url
        self.text = text
        self.media_filename = media_filename
        self.media_type = media_type or step_type.lower()

    def to_dict(self):
        data = {'media_type': self.media_type}
        if self.media_url:
            data['media_url'] = self.media_url
        if self.text:
            data['text'] = self.text
        if self.media_filename:
            data['media_filename'] = self.media_filename
        return data


class DelayContent(StepContent):
    step_type = 'DELAY'

    def __init__(self, delay_minutes: Optional[int] = None, delay_seconds: Optional[int] = None):
        self.delay_minutes = delay_minutes
        self.delay_seconds = delay_seconds

    @property
    def delay(self) -> timedelta:
        if self.delay_seconds:
            return timedelta(seconds=self.delay_seconds)
        return timedelta(minutes=self.delay_minutes)

    def to_dict(self):
        if self.delay_seconds:
            return {'delay_seconds': self.delay_seconds}
        return {'delay_minutes': self.delay_minutes}


def _validate_text(value, field: str, required: bool) -> Optional[str]:
    if value is None or value == '':
        if required:
            raise ValidationError(f"{field} is required", details={'field': field})
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={'field': field})
    if len(value) > MAX_TEXT_LENGTH:
        raise ValidationError(
            f"{field} cannot exceed {MAX_TEXT_LENGTH} characters",
            details={'field': field, 'max_length': MAX_TEXT_LENGTH}
        )
    return value


def _validate_media_url(value) -> Optional[str]:
    if value is None or value == '':
        return None
    if not isinstance(value, str):
        raise ValidationError("media_url must be a string", details={'field': 'media_url'})
    parsed = urlparse(value)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValidationError("media_url must be an http(s) URL", details={'field': 'media_url'})
    return value


def _validate_duration(value, field: str, maximum: int) -> Optional[int]:
    if value is None:
        return None
    # bool is an int subclass; reject it explicitly
    if (isinstance(value, bool) or not isinstance(value, (int, float))
            or (isinstance(value, float) and not math.isfinite(value)) or int(value) != value):
        raise ValidationError(f"{field} must be a whole number", details={'field': field})
    value = int(value)
    if value < 1 or value > maximum:
        raise ValidationError(
            f"{field} must be between 1 and {maximum}",
            details={'field': field, 'min': 1, 'max': maximum}
        )
    return value


def parse_step_content(step_type: str, content: Any) -> StepContent:
    """
    Validate raw step content against its declared type.

    Args:
        step_type: One of STEP_TYPES
        content: Raw content dictionary as received from the dashboard

    Returns:
        The typed content object

    Raises:
        ValidationError: if the type is unknown or the content does not match it
    """
    if step_type not in STEP_TYPES:
        raise ValidationError(
            f"Invalid step type '{step_type}'",
            code='INVALID_STEP',
            details={'allowed_types': list(STEP_TYPES)}
        )
    if not isinstance(content, dict):
        raise ValidationError("Step content must be an object", code='INVALID_STEP')

    if step_type == 'TEXT':
        return TextContent(_validate_text(content.get('text'), 'text', required=True))

    if step_type in MEDIA_STEP_TYPES:
        media_url = _validate_media_url(content.get('media_url'))
        text = _validate_text(content.get('text'), 'text', required=False)
        if not media_url and not text:
            raise ValidationError(
                f"{step_type} step requires a media_url or text",
                code='INVALID_STEP'
            )
        media_type = content.get('media_type')
        if media_type is not None and media_type not in MEDIA_TYPES:
            raise ValidationError(
                f"Invalid media_type '{media_type}'",
                code='INVALID_STEP',
                details={'allowed_media_types': list(MEDIA_TYPES)}
            )
        media_filename = content.get('media_filename')
        if media_filename is not None and not isinstance(media_filename, str):
            raise ValidationError("media_filename must be a string", code='INVALID_STEP')
        return MediaContent(step_type, media_url, text, media_filename or None, media_type)

    # DELAY
    delay_minutes = _validate_duration(content.get('delay_minutes'), 'delay_minutes', MAX_DELAY_MINUTES)
    delay_seconds = _validate_duration(content.get('delay_seconds'), 'delay_seconds', MAX_DELAY_SECONDS)
    if not delay_minutes and not delay_seconds:
        raise ValidationError(
            "DELAY step requires a positive delay_minutes or delay_seconds",
            code='INVALID_STEP'
        )
    return DelayContent(delay_minutes, delay_seconds)


def step_delay(step) -> timedelta:
    """
    Delay a DELAY step pushes the next action out by.

    Stored content was validated on write; anything unreadable falls back to
    one minute rather than leaving the execution stuck.
    """
    content = step.content or {}
    try:
        return parse_step_content('DELAY', content).delay
    except ValidationError as e:
        logger.warning(f"Step {step.id} has unusable delay content ({e.message}); using {DEFAULT_DELAY}")
        return DEFAULT_DELAY


def compute_next_step_at(step, now):
    """When the action for ``step`` becomes due: now, or now plus its delay for DELAY steps."""
    if step is not None and step.type == 'DELAY':
        return now + step_delay(step)
    return now
