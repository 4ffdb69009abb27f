"""
Core scheduler functionality.

This module contains the main scheduler class and core functionality:
- SequenceScheduler class
- Thread management
- Main processing loop (poll tick or wake-up)
- Scheduler lifecycle management
"""

import os
import logging
import socket
import threading
import uuid
from flask import has_app_context

from helpdesk.services.channel_sender import ChannelSender
from helpdesk.services.wake import WakeNotifier

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10  # seconds
STOP_TIMEOUT = 30  # seconds


class SequenceScheduler:
    """Background scheduler that runs due message sequence steps."""
    
    def __init__(self, app=None, engine=None, sender=None, notifier=None, poll_interval=DEFAULT_POLL_INTERVAL):
        self.app = app
        self.engine = engine
        self.sender = sender
        self.notifier = notifier
        self.poll_interval = poll_interval
        self.running = False
        self.thread = None
        
        # Identifies this worker in execution leases
        self.worker_id = f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"
        
        if app is not None:
            self.init_app(app)
    
    def init_app(self, app):
        """Initialize the scheduler with the Flask app."""
        self.app = app
        
        # Load configuration from app config
        self.poll_interval = app.config.get('SEQUENCE_POLL_INTERVAL', self.poll_interval)
        
        if self.engine is None:
            self.engine = app.extensions['sequence_engine']
        if self.notifier is None:
            self.notifier = self.engine.wake_notifier or WakeNotifier()
        if self.sender is None:
            self.sender = ChannelSender(
                base_url=app.config.get('CHANNEL_GATEWAY_URL'),
                api_key=app.config.get('CHANNEL_GATEWAY_API_KEY'),
                timeout=app.config.get('CHANNEL_GATEWAY_TIMEOUT')
            )
        
        app.extensions['sequence_scheduler'] = self
        logger.info(f"Sequence scheduler initialized as worker {self.worker_id} (poll every {self.poll_interval}s)")
    
    def start(self):
        """Start the background processing thread."""
        if self.running:
            logger.warning("Scheduler is already running")
            return
        
        self.running = True
        self.notifier.listen()
        self.thread = threading.Thread(target=self._process_loop, name='sequence-scheduler', daemon=True)
        self.thread.start()
        logger.info("Sequence scheduler started successfully")
    
    def stop(self):
        """Stop the background processing thread."""
        if not self.running:
            logger.info("Scheduler is already stopped")
            return
        
        logger.info("Stopping scheduler...")
        self.running = False
        self.notifier.wake()
        
        if self.thread and self.thread.is_alive():
            logger.info("Waiting for scheduler thread to terminate...")
            self.thread.join(timeout=STOP_TIMEOUT)
            
            if self.thread.is_alive():
                logger.warning(f"Scheduler thread did not terminate gracefully within {STOP_TIMEOUT} seconds")
        
        self.notifier.close()
        logger.info("Scheduler stopped")
    
    def _process_loop(self):
        """Main processing loop for the scheduler."""
        logger.info("Starting scheduler processing loop")
        
        while self.running:
            try:
                stats = self.run_once()
                if any(stats.values()):
                    logger.info(f"Sequence cycle complete: {stats}")
            except Exception as e:
                logger.error(f"Error in scheduler processing loop: {str(e)}")
            
            if self.running:
                self.notifier.wait(self.poll_interval)
        
        logger.info("Scheduler processing loop ended")
    
    def run_once(self):
        """Run one scheduler cycle: start due scheduled executions, then run due steps."""
        if has_app_context():
            return self._run_cycle()
        with self.app.app_context():
            return self._run_cycle()
    
    def _run_cycle(self):
        stats = {
            'scheduled_started': self._process_scheduled_executions(),
        }
        stats.update(self._process_pending_executions())
        return stats
    
    # Import other modules for functionality
    from .step_runner import (
        _process_scheduled_executions,
        _process_pending_executions,
        _process_due_execution,
        _perform_step,
        _release_after_error
    )
