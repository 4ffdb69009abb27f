"""
Due execution processing and step delivery.

This module contains functionality for:
- Starting scheduled executions whose time has come
- Claiming due running executions
- Performing the current step through the channel sender
- Advancing executions with the delivery outcome
- Releasing leases after errors so rows are retried next cycle
"""

import logging
from helpdesk.extensions import db

logger = logging.getLogger(__name__)


def _process_scheduled_executions(self):
    """Promote due scheduled executions to running."""
    try:
        due = self.engine.due_scheduled_executions()
    except Exception as e:
        logger.error(f"Error scanning scheduled executions: {str(e)}")
        db.session.rollback()
        return 0
    
    started = 0
    for item in due:
        try:
            if self.engine.start_scheduled_execution(item.execution_id):
                started += 1
        except Exception as e:
            logger.error(f"Error starting scheduled execution {item.execution_id}: {str(e)}")
            db.session.rollback()
            continue
    
    return started


def _process_pending_executions(self):
    """Run the current step of every due running execution this worker can claim."""
    stats = {'steps_processed': 0, 'steps_failed': 0, 'skipped': 0, 'errors': 0}
    
    try:
        due = self.engine.due_pending_executions()
    except Exception as e:
        logger.error(f"Error scanning pending executions: {str(e)}")
        db.session.rollback()
        stats['errors'] += 1
        return stats
    
    for item in due:
        execution_id = item.execution_id
        try:
            outcome = self._process_due_execution(item)
            stats[outcome] += 1
        except Exception as e:
            logger.error(f"Error processing execution {execution_id}: {str(e)}")
            db.session.rollback()
            stats['errors'] += 1
            self._release_after_error(execution_id)
            continue
    
    return stats


def _process_due_execution(self, item):
    """
    Claim, perform and advance one due execution.
    
    Returns one of 'steps_processed', 'steps_failed' or 'skipped'.
    """
    execution_id = item.execution_id
    step_index = item.current_step_index
    step = item.current_step
    
    if not self.engine.claim_execution(execution_id, self.worker_id, expected_step=step_index):
        logger.debug(f"Execution {execution_id} claimed elsewhere or no longer due")
        return 'skipped'
    
    success, error_message = self._perform_step(item, step)
    
    advanced = self.engine.advance_execution(
        execution_id,
        success,
        error_message=error_message,
        worker_id=self.worker_id
    )
    if advanced is None:
        logger.info(f"Execution {execution_id} was stopped or restarted during step {step_index}")
        return 'skipped'
    
    return 'steps_processed' if success else 'steps_failed'


def _perform_step(self, item, step):
    """Deliver a step; returns (success, error_message)."""
    if step is None:
        # Nothing left at this index; advancing completes the execution
        return True, None
    
    if step.type == 'DELAY':
        return True, None
    
    try:
        result = self.sender.send_step(item.context, step)
    except Exception as e:
        logger.error(f"Channel sender raised for execution {item.execution_id}: {str(e)}")
        return False, str(e)
    
    if result.get('success'):
        return True, None
    
    error_message = result.get('error') or 'Unknown delivery error'
    logger.warning(f"Step {step.order} ({step.type}) of execution {item.execution_id} failed: {error_message}")
    return False, error_message


def _release_after_error(self, execution_id):
    """Drop this worker's lease so the next cycle retries the row."""
    try:
        if self.engine.release_claim(execution_id, self.worker_id):
            logger.info(f"Released lease on execution {execution_id} after error")
    except Exception as e:
        # Lease expiry still frees the row
        logger.error(f"Error releasing lease on execution {execution_id}: {str(e)}")
        db.session.rollback()
