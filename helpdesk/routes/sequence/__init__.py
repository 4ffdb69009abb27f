"""
Sequence routes package.

This package contains the message sequence API:
- crud.py: Sequence definitions (list, search, create, update, delete)
- steps.py: Step editing and reordering
- executions.py: Starting, stopping and listing executions
"""

from flask import Blueprint, request

from helpdesk.utils.error_handling import ValidationError

# Create the main sequence blueprint
sequence_bp = Blueprint('sequence', __name__)


def json_body():
    """The request's JSON object, or an empty dict when there is no body."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


# Import all route modules to register them
from . import crud
from . import steps
from . import executions

# Export the blueprint
__all__ = ['sequence_bp']
