"""
Execution control for sequences.

This module contains functionality for:
- Starting a sequence for a conversation, now or at a later time
- Stopping an execution
- Listing a conversation's executions
"""

import logging
from flask import jsonify
from flask_jwt_extended import jwt_required

from helpdesk.services.sequence_engine import get_sequence_engine
from helpdesk.utils.auth import current_organization_id
from helpdesk.utils.error_handling import ValidationError, validate_required_fields
from helpdesk.utils.timezone import parse_timestamp

logger = logging.getLogger(__name__)

# Import the blueprint from the package
from . import sequence_bp, json_body


@sequence_bp.route('/sequences/<sequence_id>/execute', methods=['POST'])
@jwt_required()
def execute_sequence(sequence_id):
    """
    Start a sequence for a conversation.

    Body: ``{"conversation_id": ..., "scheduled_at": "<ISO-8601>"}``; a
    future ``scheduled_at`` defers the start.
    """
    organization_id = current_organization_id()
    data = json_body()

    error_response = validate_required_fields(data, ['conversation_id'])
    if error_response:
        return error_response

    scheduled_at = None
    if data.get('scheduled_at'):
        try:
            scheduled_at = parse_timestamp(data['scheduled_at'])
        except ValueError as e:
            raise ValidationError(f"Invalid scheduled_at: {str(e)}", details={'field': 'scheduled_at'})

    execution = get_sequence_engine().start_execution(
        sequence_id,
        data['conversation_id'],
        organization_id,
        scheduled_at=scheduled_at
    )

    return jsonify({
        'success': True,
        'data': execution.to_dict()
    }), 201


@sequence_bp.route('/sequences/executions/<execution_id>/stop', methods=['POST'])
@jwt_required()
def stop_execution(execution_id):
    execution = get_sequence_engine().stop_execution(execution_id, current_organization_id())

    return jsonify({
        'success': True,
        'data': execution.to_dict()
    }), 200


@sequence_bp.route('/conversations/<conversation_id>/sequences', methods=['GET'])
@jwt_required()
def get_conversation_executions(conversation_id):
    """Execution history for a conversation, most recent first."""
    executions = get_sequence_engine().get_conversation_executions(conversation_id, current_organization_id())

    return jsonify({
        'success': True,
        'data': [execution.to_dict(include_sequence=True) for execution in executions]
    }), 200
