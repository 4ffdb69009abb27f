"""
Due-work scanner.

Two read-only, bounded queries used by the scheduler on every cycle:
- scheduled executions whose start time has arrived
- running executions whose next step is due

Neither query changes any row; the scheduler claims a row before acting on it.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import joinedload, selectinload

from helpdesk.models import MessageSequence, SequenceExecution, Conversation

logger = logging.getLogger(__name__)


class ConversationContext:
    """Everything a channel sender needs to reach the conversation's contact."""

    def __init__(self, conversation_id, channel_id=None, channel_type=None, channel_config=None,
                 contact_id=None, contact_identifier=None):
        self.conversation_id = conversation_id
        self.channel_id = channel_id
        self.channel_type = channel_type
        self.channel_config = channel_config or {}
        self.contact_id = contact_id
        self.contact_identifier = contact_identifier

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> 'ConversationContext':
        channel = conversation.channel
        contact = conversation.contact
        return cls(
            conversation_id=conversation.id,
            channel_id=channel.id if channel else conversation.channel_id,
            channel_type=channel.type if channel else None,
            channel_config=channel.config if channel else None,
            contact_id=contact.id if contact else conversation.contact_id,
            contact_identifier=contact.identifier if contact else None
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'conversation_id': self.conversation_id,
            'channel_id': self.channel_id,
            'channel_type': self.channel_type,
            'contact_id': self.contact_id,
            'contact_identifier': self.contact_identifier
        }


class DueExecution:
    """An execution bundled with its ordered steps and conversation context."""

    def __init__(self, execution: SequenceExecution, steps: list, context: Optional[ConversationContext]):
        self.execution = execution
        self.steps = steps
        self.context = context

    @property
    def execution_id(self):
        return self.execution.id

    @property
    def current_step_index(self) -> int:
        return self.execution.current_step

    @property
    def current_step(self):
        index = self.execution.current_step
        if 0 <= index < len(self.steps):
            return self.steps[index]
        return None

    def __repr__(self):
        return f'<DueExecution {self.execution.id} step {self.execution.current_step}/{len(self.steps)}>'


def _bundle(executions) -> List[DueExecution]:
    bundles = []
    for execution in executions:
        sequence = execution.sequence
        steps = list(sequence.steps) if sequence else []
        conversation = execution.conversation
        context = ConversationContext.from_conversation(conversation) if conversation else None
        bundles.append(DueExecution(execution, steps, context))
    return bundles


def _load_options():
    return (
        selectinload(SequenceExecution.sequence).selectinload(MessageSequence.steps),
        joinedload(SequenceExecution.conversation),
    )


def due_scheduled_executions(self, now: Optional[datetime] = None) -> List[DueExecution]:
    """Scheduled executions whose ``scheduled_at`` has arrived, oldest first."""
    now = now or self.now()
    executions = (
        SequenceExecution.query
        .options(*_load_options())
        .filter(
            SequenceExecution.status == 'scheduled',
            SequenceExecution.scheduled_at <= now
        )
        .order_by(SequenceExecution.scheduled_at.asc())
        .limit(self.batch_size)
        .all()
    )
    return _bundle(executions)


def due_pending_executions(self, now: Optional[datetime] = None) -> List[DueExecution]:
    """Running executions whose next step is due and not leased to a live worker."""
    now = now or self.now()
    executions = (
        SequenceExecution.query
        .options(*_load_options())
        .filter(
            SequenceExecution.status == 'running',
            SequenceExecution.next_step_at <= now,
            or_(SequenceExecution.claimed_until.is_(None), SequenceExecution.claimed_until < now)
        )
        .order_by(SequenceExecution.next_step_at.asc())
        .limit(self.batch_size)
        .all()
    )
    return _bundle(executions)
