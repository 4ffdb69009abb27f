"""
Sequence engine services package.

This package contains the message sequence engine:
- core.py: SequenceEngine class composing the modules below
- definitions.py: sequence and step definition store
- step_content.py: typed step payloads and delay calculation
- lifecycle.py: start/stop executions, restart-on-retrigger
- scanner.py: due-work queries for the scheduler
- advancer.py: claims, scheduled starts and step advancement
"""

from .core import SequenceEngine, get_sequence_engine
from .scanner import DueExecution, ConversationContext
from .step_content import parse_step_content, StepContent, TextContent, MediaContent, DelayContent

__all__ = [
    'SequenceEngine', 'get_sequence_engine', 'DueExecution', 'ConversationContext',
    'parse_step_content', 'StepContent', 'TextContent', 'MediaContent', 'DelayContent'
]
