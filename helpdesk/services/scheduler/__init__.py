"""
Scheduler services package.

This package contains the background sequence scheduler:
- core.py: SequenceScheduler class, thread management and main loop
- step_runner.py: claiming due executions, performing and advancing steps
"""

from .core import SequenceScheduler

# Export the main scheduler class
__all__ = ['SequenceScheduler']
