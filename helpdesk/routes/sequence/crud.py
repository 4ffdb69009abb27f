"""
Basic CRUD operations for sequences.

This module contains functionality for:
- Listing and searching an organization's sequences
- Creating sequences (optionally with their steps)
- Updating and deleting sequences
"""

import logging
from flask import request, jsonify
from flask_jwt_extended import jwt_required

from helpdesk.services.sequence_engine import get_sequence_engine
from helpdesk.services.sequence_engine.definitions import UPDATABLE_SEQUENCE_FIELDS
from helpdesk.utils.auth import current_organization_id
from helpdesk.utils.error_handling import ValidationError, validate_required_fields

logger = logging.getLogger(__name__)

# Import the blueprint from the package
from . import sequence_bp, json_body


@sequence_bp.route('/sequences', methods=['GET'])
@jwt_required()
def list_sequences():
    """List the organization's sequences, optionally filtered by ``status``."""
    organization_id = current_organization_id()
    status = request.args.get('status')

    sequences = get_sequence_engine().list_sequences(organization_id, status=status)

    return jsonify({
        'success': True,
        'data': [sequence.to_dict() for sequence in sequences]
    }), 200


@sequence_bp.route('/sequences/search', methods=['GET'])
@jwt_required()
def search_sequences():
    """Shortcut autocomplete for the agent composer."""
    organization_id = current_organization_id()
    prefix = request.args.get('prefix', '')

    try:
        limit = int(request.args.get('limit', 5))
    except ValueError:
        raise ValidationError('limit must be an integer', details={'field': 'limit'})

    sequences = get_sequence_engine().search_by_shortcut(organization_id, prefix, limit=limit)

    return jsonify({
        'success': True,
        'data': [sequence.to_dict(include_steps=False) for sequence in sequences]
    }), 200


@sequence_bp.route('/sequences', methods=['POST'])
@jwt_required()
def create_sequence():
    """Create a sequence; steps may be supplied inline."""
    organization_id = current_organization_id()
    data = json_body()

    error_response = validate_required_fields(data, ['name'])
    if error_response:
        return error_response

    sequence = get_sequence_engine().create_sequence(
        organization_id,
        name=data['name'],
        shortcut=data.get('shortcut'),
        description=data.get('description'),
        trigger_type=data.get('trigger_type'),
        trigger_config=data.get('trigger_config'),
        steps=data.get('steps'),
        status=data.get('status', 'DRAFT')
    )

    return jsonify({
        'success': True,
        'data': sequence.to_dict()
    }), 201


@sequence_bp.route('/sequences/<sequence_id>', methods=['GET'])
@jwt_required()
def get_sequence(sequence_id):
    """Get one sequence with its ordered steps."""
    sequence = get_sequence_engine().get_sequence(sequence_id, current_organization_id())

    return jsonify({
        'success': True,
        'data': sequence.to_dict()
    }), 200


@sequence_bp.route('/sequences/<sequence_id>', methods=['PATCH'])
@jwt_required()
def update_sequence(sequence_id):
    """Update sequence metadata or status."""
    organization_id = current_organization_id()
    data = json_body()

    unknown = sorted(set(data) - set(UPDATABLE_SEQUENCE_FIELDS))
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}", details={'fields': unknown})

    sequence = get_sequence_engine().update_sequence(sequence_id, organization_id, **data)

    return jsonify({
        'success': True,
        'data': sequence.to_dict()
    }), 200


@sequence_bp.route('/sequences/<sequence_id>', methods=['DELETE'])
@jwt_required()
def delete_sequence(sequence_id):
    """Delete a sequence; its active executions are stopped."""
    get_sequence_engine().delete_sequence(sequence_id, current_organization_id())

    return jsonify({
        'success': True,
        'data': {'id': sequence_id}
    }), 200
