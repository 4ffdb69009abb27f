"""
Step editing for sequences.

This module contains functionality for:
- Adding a step at a position
- Updating and deleting steps
- Reordering a sequence's steps
"""

import logging
from flask import jsonify
from flask_jwt_extended import jwt_required

from helpdesk.services.sequence_engine import get_sequence_engine
from helpdesk.utils.auth import current_organization_id
from helpdesk.utils.error_handling import ValidationError, validate_required_fields

logger = logging.getLogger(__name__)

# Import the blueprint from the package
from . import sequence_bp, json_body


@sequence_bp.route('/sequences/<sequence_id>/steps', methods=['POST'])
@jwt_required()
def add_step(sequence_id):
    """Add a step; without ``order`` it is appended."""
    organization_id = current_organization_id()
    data = json_body()

    error_response = validate_required_fields(data, ['type', 'content'])
    if error_response:
        return error_response

    step = get_sequence_engine().add_step(
        sequence_id,
        organization_id,
        type=data['type'],
        content=data['content'],
        order=data.get('order')
    )

    return jsonify({
        'success': True,
        'data': step.to_dict()
    }), 201


@sequence_bp.route('/sequences/steps/<step_id>', methods=['PATCH'])
@jwt_required()
def update_step(step_id):
    organization_id = current_organization_id()
    data = json_body()

    step = get_sequence_engine().update_step(
        step_id,
        organization_id,
        type=data.get('type'),
        content=data.get('content'),
        order=data.get('order')
    )

    return jsonify({
        'success': True,
        'data': step.to_dict()
    }), 200


@sequence_bp.route('/sequences/steps/<step_id>', methods=['DELETE'])
@jwt_required()
def delete_step(step_id):
    get_sequence_engine().delete_step(step_id, current_organization_id())

    return jsonify({
        'success': True,
        'data': {'id': step_id}
    }), 200


@sequence_bp.route('/sequences/<sequence_id>/reorder', methods=['PUT'])
@jwt_required()
def reorder_steps(sequence_id):
    """Reorder steps; ``step_ids`` must list every step exactly once."""
    organization_id = current_organization_id()
    data = json_body()

    step_ids = data.get('step_ids')
    if not isinstance(step_ids, list):
        raise ValidationError('step_ids must be a list of step IDs', details={'field': 'step_ids'})

    sequence = get_sequence_engine().reorder_steps(sequence_id, organization_id, step_ids)

    return jsonify({
        'success': True,
        'data': sequence.to_dict()
    }), 200
