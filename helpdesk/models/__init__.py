# Import db from extensions to use the same instance
from helpdesk.extensions import db

# Import all models to ensure they are registered with SQLAlchemy
from helpdesk.models.organization import Organization
from helpdesk.models.channel import Channel
from helpdesk.models.contact import Contact
from helpdesk.models.conversation import Conversation
from helpdesk.models.sequence import (
    MessageSequence,
    MessageSequenceStep,
    SEQUENCE_STATUSES,
    STEP_TYPES,
    MEDIA_STEP_TYPES,
)
from helpdesk.models.execution import (
    SequenceExecution,
    EXECUTION_STATUSES,
    ACTIVE_EXECUTION_STATUSES,
    TERMINAL_EXECUTION_STATUSES,
)

__all__ = [
    'db', 'Organization', 'Channel', 'Contact', 'Conversation',
    'MessageSequence', 'MessageSequenceStep', 'SequenceExecution',
    'SEQUENCE_STATUSES', 'STEP_TYPES', 'MEDIA_STEP_TYPES',
    'EXECUTION_STATUSES', 'ACTIVE_EXECUTION_STATUSES', 'TERMINAL_EXECUTION_STATUSES',
]
