"""
Execution lifecycle.

This module contains functionality for:
- Starting executions (immediate or deferred) with restart-on-retrigger
- Stopping executions
- Reading a conversation's execution history
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from helpdesk.extensions import db
from helpdesk.models import (
    MessageSequence,
    SequenceExecution,
    Conversation,
    ACTIVE_EXECUTION_STATUSES,
)
from helpdesk.utils.error_handling import NotFoundError, ConflictError
from helpdesk.utils.timezone import to_utc_naive
from .step_content import compute_next_step_at

logger = logging.getLogger(__name__)

# A concurrent start for the same pair can win the race between our stop and
# insert; the partial unique index turns that into an IntegrityError we retry.
START_ATTEMPTS = 2


def _stop_active_executions(self, sequence_id: str, conversation_id: str) -> int:
    """Mark every scheduled/running execution of the pair as stopped (no commit)."""
    return (
        SequenceExecution.query
        .filter(
            SequenceExecution.sequence_id == sequence_id,
            SequenceExecution.conversation_id == conversation_id,
            SequenceExecution.status.in_(ACTIVE_EXECUTION_STATUSES)
        )
        .update({
            SequenceExecution.status: 'stopped',
            SequenceExecution.next_step_at: None,
            SequenceExecution.claimed_by: None,
            SequenceExecution.claimed_until: None,
            SequenceExecution.updated_at: self.now()
        }, synchronize_session=False)
    )


def start_execution(
    self,
    sequence_id: str,
    conversation_id: str,
    organization_id: str,
    scheduled_at: Optional[datetime] = None
) -> SequenceExecution:
    """
    Start a sequence for a conversation.

    Any scheduled/running execution of the same sequence for the same
    conversation is stopped first, so the last trigger wins. When
    ``scheduled_at`` lies in the future the execution waits in ``scheduled``
    state until the scheduler picks it up.

    Raises:
        NotFoundError: sequence missing, not ACTIVE, or outside the organization;
            conversation outside the organization
    """
    sequence = MessageSequence.query.filter_by(
        id=sequence_id,
        organization_id=organization_id,
        status='ACTIVE'
    ).first()
    if not sequence:
        raise NotFoundError(
            'Sequence',
            sequence_id,
            message='Sequence not found or not active',
            code='SEQUENCE_NOT_ACTIVE'
        )

    conversation = Conversation.query.filter_by(id=conversation_id, organization_id=organization_id).first()
    if not conversation:
        raise NotFoundError('Conversation', conversation_id)

    scheduled_at = to_utc_naive(scheduled_at)

    for attempt in range(1, START_ATTEMPTS + 1):
        now = self.now()
        is_scheduled = scheduled_at is not None and scheduled_at > now
        try:
            stopped = self._stop_active_executions(sequence.id, conversation.id)

            if is_scheduled:
                execution = SequenceExecution(
                    sequence_id=sequence.id,
                    conversation_id=conversation.id,
                    current_step=0,
                    status='scheduled',
                    scheduled_at=scheduled_at,
                    next_step_at=None
                )
            else:
                execution = SequenceExecution(
                    sequence_id=sequence.id,
                    conversation_id=conversation.id,
                    current_step=0,
                    status='running',
                    started_at=now,
                    next_step_at=compute_next_step_at(sequence.first_step, now)
                )
            db.session.add(execution)

            MessageSequence.query.filter_by(id=sequence.id).update({
                MessageSequence.usage_count: MessageSequence.usage_count + 1,
                MessageSequence.updated_at: MessageSequence.updated_at
            }, synchronize_session=False)

            db.session.commit()
            break
        except IntegrityError as e:
            db.session.rollback()
            if attempt == START_ATTEMPTS:
                logger.error(f"Could not start sequence {sequence_id} for conversation {conversation_id}: {str(e)}")
                raise ConflictError('Another execution of this sequence was started concurrently')
            logger.warning(f"Concurrent start for sequence {sequence_id} / conversation {conversation_id}, retrying")
        except Exception:
            db.session.rollback()
            raise

    if stopped:
        logger.info(f"Restarted sequence {sequence_id} for conversation {conversation_id} (stopped {stopped} prior executions)")

    if is_scheduled:
        logger.info(f"Scheduled execution {execution.id} of sequence {sequence_id} for {scheduled_at.isoformat()}")
    else:
        logger.info(f"Started execution {execution.id} of sequence {sequence_id}, next step at {execution.next_step_at.isoformat()}")
        if self.wake_notifier is not None:
            self.wake_notifier.publish(execution.id)

    return execution


def stop_execution(self, execution_id: str, organization_id: str) -> SequenceExecution:
    """
    Stop a scheduled or running execution.

    Raises:
        NotFoundError: execution missing or its sequence is outside the organization
        ConflictError: execution already completed or stopped
    """
    execution = db.session.get(SequenceExecution, execution_id)
    if not execution or not execution.sequence or execution.sequence.organization_id != organization_id:
        raise NotFoundError('Execution', execution_id)

    if execution.status not in ACTIVE_EXECUTION_STATUSES:
        raise ConflictError('Execution is not running or scheduled', code='EXECUTION_NOT_ACTIVE')

    # Conditional on the row still being active; a worker may have just completed it
    updated = (
        SequenceExecution.query
        .filter(
            SequenceExecution.id == execution.id,
            SequenceExecution.status.in_(ACTIVE_EXECUTION_STATUSES)
        )
        .update({
            SequenceExecution.status: 'stopped',
            SequenceExecution.next_step_at: None,
            SequenceExecution.claimed_by: None,
            SequenceExecution.claimed_until: None,
            SequenceExecution.updated_at: self.now()
        }, synchronize_session=False)
    )
    db.session.commit()

    if not updated:
        raise ConflictError('Execution is not running or scheduled', code='EXECUTION_NOT_ACTIVE')

    logger.info(f"Stopped execution {execution_id}")
    return db.session.get(SequenceExecution, execution_id)


def get_execution(self, execution_id: str, organization_id: str) -> SequenceExecution:
    execution = (
        SequenceExecution.query
        .join(Conversation, SequenceExecution.conversation_id == Conversation.id)
        .filter(SequenceExecution.id == execution_id, Conversation.organization_id == organization_id)
        .first()
    )
    if not execution:
        raise NotFoundError('Execution', execution_id)
    return execution


def get_conversation_executions(self, conversation_id: str, organization_id: str) -> List[SequenceExecution]:
    """Execution history for a conversation, most recent first."""
    return (
        SequenceExecution.query
        .join(Conversation, SequenceExecution.conversation_id == Conversation.id)
        .filter(
            SequenceExecution.conversation_id == conversation_id,
            Conversation.organization_id == organization_id
        )
        .order_by(SequenceExecution.created_at.desc(), SequenceExecution.id.desc())
        .all()
    )
