"""
Core sequence engine functionality.

This module contains the main sequence engine class, which composes:
- definitions.py: sequence and step definitions
- lifecycle.py: starting and stopping executions
- scanner.py: due-work queries
- advancer.py: claiming and advancing executions

One engine is built per application in ``create_app`` and handed to the
scheduler and the request handlers.
"""

import logging
from flask import current_app

from helpdesk.utils.timezone import utcnow

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_CLAIM_LEASE_SECONDS = 300


class SequenceEngine:
    """Engine for defining message sequences and driving their executions."""
    
    def __init__(self, app=None, wake_notifier=None, batch_size=DEFAULT_BATCH_SIZE,
                 claim_lease_seconds=DEFAULT_CLAIM_LEASE_SECONDS, clock=None):
        """
        Initialize the sequence engine.
        
        Args:
            wake_notifier: Optional WakeNotifier nudged when an execution starts
            batch_size: Cap on rows returned by each due-work query
            claim_lease_seconds: How long a worker owns a claimed execution
            clock: Optional callable returning naive UTC now (tests pin time with it)
        """
        self.wake_notifier = wake_notifier
        self.batch_size = batch_size
        self.claim_lease_seconds = claim_lease_seconds
        self.clock = clock
        
        if app is not None:
            self.init_app(app)
    
    def init_app(self, app):
        """Read engine settings from the Flask config and register on the app."""
        self.batch_size = app.config.get('SEQUENCE_BATCH_SIZE', self.batch_size)
        self.claim_lease_seconds = app.config.get('SEQUENCE_CLAIM_LEASE_SECONDS', self.claim_lease_seconds)
        app.extensions['sequence_engine'] = self
        logger.info(f"Sequence engine initialized (batch size {self.batch_size}, lease {self.claim_lease_seconds}s)")
    
    def now(self):
        return self.clock() if self.clock else utcnow()
    
    # Import functionality from other modules
    from .definitions import (
        _get_owned_sequence, _get_owned_step, list_sequences, get_sequence, search_by_shortcut,
        create_sequence, update_sequence, delete_sequence, add_step, update_step, delete_step, reorder_steps
    )
    from .lifecycle import (
        _stop_active_executions, start_execution, stop_execution, get_execution, get_conversation_executions
    )
    from .scanner import due_scheduled_executions, due_pending_executions
    from .advancer import start_scheduled_execution, claim_execution, release_claim, advance_execution


def get_sequence_engine():
    """Engine registered on the current application."""
    return current_app.extensions['sequence_engine']
