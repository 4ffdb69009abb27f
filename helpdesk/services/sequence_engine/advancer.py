"""
Step advancement.

This module contains functionality for:
- Promoting due scheduled executions to running
- Claiming a running execution for one worker
- Advancing an execution after its current step was attempted
- Completing an execution when no step is left

Every transition is a conditional UPDATE whose row count decides whether it
happened, so concurrent workers, stops and restarts cannot double-process a step.
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import or_

from helpdesk.extensions import db
from helpdesk.models import SequenceExecution
from .step_content import compute_next_step_at

logger = logging.getLogger(__name__)


def start_scheduled_execution(self, execution_id: str) -> Optional[SequenceExecution]:
    """
    Move a scheduled execution to running.

    Returns None if the execution is no longer scheduled (stopped, restarted
    or already started by another worker).
    """
    execution = db.session.get(SequenceExecution, execution_id, populate_existing=True)
    if not execution or execution.status != 'scheduled':
        return None

    now = self.now()
    first_step = execution.sequence.first_step if execution.sequence else None
    next_step_at = compute_next_step_at(first_step, now)

    updated = (
        SequenceExecution.query
        .filter(SequenceExecution.id == execution_id, SequenceExecution.status == 'scheduled')
        .update({
            SequenceExecution.status: 'running',
            SequenceExecution.started_at: now,
            SequenceExecution.next_step_at: next_step_at,
            SequenceExecution.updated_at: now
        }, synchronize_session=False)
    )
    db.session.commit()

    if not updated:
        logger.info(f"Scheduled execution {execution_id} was taken over before it could start")
        return None

    logger.info(f"Scheduled execution {execution_id} is now running, next step at {next_step_at.isoformat()}")
    return db.session.get(SequenceExecution, execution_id)


def claim_execution(self, execution_id: str, worker_id: str, expected_step: Optional[int] = None) -> bool:
    """
    Lease a due running execution to ``worker_id``.

    The claim only succeeds while the row is running, due, still at
    ``expected_step`` (when given) and not leased to another live worker.
    """
    now = self.now()
    query = SequenceExecution.query.filter(
        SequenceExecution.id == execution_id,
        SequenceExecution.status == 'running',
        SequenceExecution.next_step_at <= now,
        or_(SequenceExecution.claimed_until.is_(None), SequenceExecution.claimed_until < now)
    )
    if expected_step is not None:
        query = query.filter(SequenceExecution.current_step == expected_step)

    updated = query.update({
        SequenceExecution.claimed_by: worker_id,
        SequenceExecution.claimed_until: now + timedelta(seconds=self.claim_lease_seconds)
    }, synchronize_session=False)
    db.session.commit()

    if updated:
        logger.debug(f"Worker {worker_id} claimed execution {execution_id}")
    return updated == 1


def release_claim(self, execution_id: str, worker_id: str) -> bool:
    """Drop a lease without advancing, so the row is retried on the next cycle."""
    updated = (
        SequenceExecution.query
        .filter(SequenceExecution.id == execution_id, SequenceExecution.claimed_by == worker_id)
        .update({
            SequenceExecution.claimed_by: None,
            SequenceExecution.claimed_until: None
        }, synchronize_session=False)
    )
    db.session.commit()
    return updated == 1


def advance_execution(
    self,
    execution_id: str,
    success: bool,
    error_message: Optional[str] = None,
    worker_id: Optional[str] = None
) -> Optional[SequenceExecution]:
    """
    Move an execution past its current step.

    Delivery failures do not halt the sequence: the error is stored and the
    execution advances regardless of ``success``. With no step left the
    execution completes.

    Returns the updated execution, or None when the row was no longer in the
    expected state (stopped, restarted, or advanced by someone else).
    """
    execution = db.session.get(SequenceExecution, execution_id, populate_existing=True)
    if not execution:
        logger.warning(f"Cannot advance missing execution {execution_id}")
        return None
    if execution.status != 'running':
        logger.info(f"Not advancing execution {execution_id}: status is {execution.status}")
        return None

    now = self.now()
    steps = execution.sequence.steps if execution.sequence else []
    observed_step = execution.current_step
    next_index = observed_step + 1

    if next_index >= len(steps):
        values = {
            SequenceExecution.status: 'completed',
            SequenceExecution.completed_at: now,
            SequenceExecution.next_step_at: None
        }
    else:
        values = {
            SequenceExecution.current_step: next_index,
            SequenceExecution.next_step_at: compute_next_step_at(steps[next_index], now)
        }
    values[SequenceExecution.claimed_by] = None
    values[SequenceExecution.claimed_until] = None
    values[SequenceExecution.updated_at] = now
    if error_message:
        values[SequenceExecution.error_message] = error_message

    query = SequenceExecution.query.filter(
        SequenceExecution.id == execution_id,
        SequenceExecution.status == 'running',
        SequenceExecution.current_step == observed_step
    )
    if worker_id is not None:
        query = query.filter(SequenceExecution.claimed_by == worker_id)

    updated = query.update(values, synchronize_session=False)
    db.session.commit()

    if not updated:
        logger.info(f"Execution {execution_id} changed while step {observed_step} was running; advance skipped")
        return None

    if not success:
        logger.warning(f"Execution {execution_id} step {observed_step} failed ({error_message}); continuing")

    if next_index >= len(steps):
        logger.info(f"Execution {execution_id} completed after {len(steps)} steps")
    else:
        logger.info(f"Execution {execution_id} advanced to step {next_index}")

    return db.session.get(SequenceExecution, execution_id)
