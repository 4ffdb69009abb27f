"""
Sequence definition store.

This module contains functionality for:
- Sequence CRUD scoped to an organization
- Case-insensitive shortcut uniqueness and prefix search
- Step add/update/delete/reorder with dense zero-based orders
"""

import logging
import re
from typing import Dict, List, Optional, Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from helpdesk.extensions import db
from helpdesk.models import (
    MessageSequence,
    MessageSequenceStep,
    SequenceExecution,
    SEQUENCE_STATUSES,
    ACTIVE_EXECUTION_STATUSES,
)
from helpdesk.utils.error_handling import ValidationError, NotFoundError, ConflictError
from helpdesk.utils.timezone import utcnow
from .step_content import parse_step_content

logger = logging.getLogger(__name__)

SHORTCUT_PATTERN = re.compile(r'^[a-zA-Z0-9_-]+$')
MAX_SHORTCUT_LENGTH = 50
MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
DEFAULT_SEARCH_LIMIT = 5
MAX_SEARCH_LIMIT = 50
UPDATABLE_SEQUENCE_FIELDS = ('name', 'shortcut', 'description', 'status', 'trigger_type', 'trigger_config')


def _validate_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Sequence name is required", details={'field': 'name'})
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Sequence name cannot exceed {MAX_NAME_LENGTH} characters",
            details={'field': 'name', 'max_length': MAX_NAME_LENGTH}
        )
    return name


def _normalize_shortcut(shortcut) -> Optional[str]:
    """Validate a shortcut and return it lowercased."""
    if shortcut is None:
        return None
    if not isinstance(shortcut, str) or not shortcut:
        raise ValidationError("Shortcut must be a non-empty string", details={'field': 'shortcut'})
    if len(shortcut) > MAX_SHORTCUT_LENGTH:
        raise ValidationError(
            f"Shortcut cannot exceed {MAX_SHORTCUT_LENGTH} characters",
            details={'field': 'shortcut', 'max_length': MAX_SHORTCUT_LENGTH}
        )
    if not SHORTCUT_PATTERN.match(shortcut):
        raise ValidationError(
            "Shortcut may only contain letters, digits, '_' and '-'",
            details={'field': 'shortcut'}
        )
    return shortcut.lower()


def _validate_description(description) -> Optional[str]:
    if description is None:
        return None
    if not isinstance(description, str):
        raise ValidationError("Description must be a string", details={'field': 'description'})
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters",
            details={'field': 'description', 'max_length': MAX_DESCRIPTION_LENGTH}
        )
    return description


def _validate_status(status) -> str:
    if status not in SEQUENCE_STATUSES:
        raise ValidationError(
            f"Invalid sequence status '{status}'",
            details={'allowed_statuses': list(SEQUENCE_STATUSES)}
        )
    return status


def _validate_order(order) -> Optional[int]:
    if order is None:
        return None
    if isinstance(order, bool) or not isinstance(order, int) or order < 0:
        raise ValidationError("Step order must be a non-negative integer", details={'field': 'order'})
    return order


def _ensure_shortcut_available(organization_id: str, shortcut: str, exclude_id: Optional[str] = None):
    query = MessageSequence.query.filter(
        MessageSequence.organization_id == organization_id,
        func.lower(MessageSequence.shortcut) == shortcut
    )
    if exclude_id:
        query = query.filter(MessageSequence.id != exclude_id)
    if query.first():
        raise ConflictError(f'Shortcut "{shortcut}" already exists', code='DUPLICATE_SHORTCUT')


def _assign_orders(assignments):
    """
    Rewrite step orders without tripping the (sequence_id, order) unique constraint.

    Orders are first parked on distinct negative values, then set to their
    final positions.
    """
    for index, (step, _) in enumerate(assignments):
        step.order = -(index + 1)
    db.session.flush()
    for step, order in assignments:
        step.order = order
    db.session.flush()


def _commit(operation: str):
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.warning(f"Constraint violation during {operation}: {str(e)}")
        raise ConflictError(f"Conflicting update during {operation}")
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Database error during {operation}: {str(e)}")
        raise


def _get_owned_sequence(self, sequence_id: str, organization_id: str) -> MessageSequence:
    sequence = MessageSequence.query.filter_by(id=sequence_id, organization_id=organization_id).first()
    if not sequence:
        raise NotFoundError('Sequence', sequence_id)
    return sequence


def _get_owned_step(self, step_id: str, organization_id: str) -> MessageSequenceStep:
    step = (
        MessageSequenceStep.query
        .join(MessageSequence, MessageSequenceStep.sequence_id == MessageSequence.id)
        .filter(MessageSequenceStep.id == step_id, MessageSequence.organization_id == organization_id)
        .first()
    )
    if not step:
        raise NotFoundError('Step', step_id)
    return step


def list_sequences(self, organization_id: str, status: Optional[str] = None) -> List[MessageSequence]:
    """List an organization's sequences, most recently updated first."""
    query = MessageSequence.query.filter_by(organization_id=organization_id)
    if status:
        query = query.filter_by(status=_validate_status(status))
    return query.order_by(MessageSequence.updated_at.desc()).all()


def get_sequence(self, sequence_id: str, organization_id: str) -> MessageSequence:
    return self._get_owned_sequence(sequence_id, organization_id)


def search_by_shortcut(
    self,
    organization_id: str,
    prefix: str,
    limit: int = DEFAULT_SEARCH_LIMIT
) -> List[MessageSequence]:
    """
    Autocomplete sequences for the slash-command picker.

    Matches shortcuts starting with ``prefix`` (case-insensitive) among ACTIVE
    and DRAFT sequences, most used first.
    """
    prefix = (prefix or '').lower()
    if limit is None:
        limit = DEFAULT_SEARCH_LIMIT
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError("limit must be a positive integer", details={'field': 'limit'})
    limit = min(limit, MAX_SEARCH_LIMIT)
    return (
        MessageSequence.query
        .filter(
            MessageSequence.organization_id == organization_id,
            MessageSequence.shortcut.isnot(None),
            func.lower(MessageSequence.shortcut).startswith(prefix, autoescape=True),
            MessageSequence.status.in_(('ACTIVE', 'DRAFT'))
        )
        .order_by(MessageSequence.usage_count.desc(), MessageSequence.shortcut.asc())
        .limit(limit)
        .all()
    )


def create_sequence(
    self,
    organization_id: str,
    name: str,
    shortcut: Optional[str] = None,
    description: Optional[str] = None,
    trigger_type: Optional[str] = None,
    trigger_config: Any = None,
    steps: Optional[List[Dict[str, Any]]] = None,
    status: str = 'DRAFT'
) -> MessageSequence:
    """Create a sequence together with its steps."""
    name = _validate_name(name)
    shortcut = _normalize_shortcut(shortcut)
    description = _validate_description(description)
    status = _validate_status(status)

    if steps is None:
        steps = []
    if not isinstance(steps, list):
        raise ValidationError("Steps must be a list", details={'field': 'steps'})

    parsed_steps = []
    for index, raw in enumerate(steps):
        if not isinstance(raw, dict):
            raise ValidationError(f"Step {index + 1}: must be an object", code='INVALID_STEP')
        try:
            content = parse_step_content(raw.get('type'), raw.get('content'))
            order = _validate_order(raw.get('order'))
        except ValidationError as e:
            raise ValidationError(f"Step {index + 1}: {e.message}", code=e.code, details=e.details)
        parsed_steps.append((order if order is not None else index, index, content))

    if shortcut:
        _ensure_shortcut_available(organization_id, shortcut)

    sequence = MessageSequence(
        organization_id=organization_id,
        name=name,
        shortcut=shortcut,
        description=description,
        status=status,
        trigger_type=trigger_type or 'manual',
        trigger_config=trigger_config
    )
    # Supplied orders only decide the relative position; stored orders are dense
    for position, (_, _, content) in enumerate(sorted(parsed_steps, key=lambda item: (item[0], item[1]))):
        sequence.steps.append(MessageSequenceStep(
            order=position,
            type=content.step_type,
            content=content.to_dict()
        ))

    db.session.add(sequence)
    _commit('sequence creation')
    logger.info(f"Created sequence {sequence.id} ('{sequence.name}') with {len(parsed_steps)} steps")
    return sequence


def update_sequence(self, sequence_id: str, organization_id: str, **changes) -> MessageSequence:
    """
    Update sequence attributes.

    Only the keys present in ``changes`` are touched; ``shortcut=None`` clears
    the shortcut.
    """
    unknown = [key for key in changes if key not in UPDATABLE_SEQUENCE_FIELDS]
    if unknown:
        raise ValidationError(
            f"Unknown sequence fields: {', '.join(sorted(unknown))}",
            details={'allowed_fields': list(UPDATABLE_SEQUENCE_FIELDS)}
        )

    sequence = self._get_owned_sequence(sequence_id, organization_id)

    values = {}
    if 'name' in changes:
        values['name'] = _validate_name(changes['name'])
    if 'shortcut' in changes:
        shortcut = _normalize_shortcut(changes['shortcut'])
        if shortcut and shortcut != sequence.shortcut:
            _ensure_shortcut_available(organization_id, shortcut, exclude_id=sequence.id)
        values['shortcut'] = shortcut
    if 'description' in changes:
        values['description'] = _validate_description(changes['description'])
    if 'status' in changes:
        values['status'] = _validate_status(changes['status'])
    if 'trigger_type' in changes:
        values['trigger_type'] = changes['trigger_type'] or 'manual'
    if 'trigger_config' in changes:
        values['trigger_config'] = changes['trigger_config']

    for field, value in values.items():
        setattr(sequence, field, value)

    _commit('sequence update')
    logger.info(f"Updated sequence {sequence.id}: {sorted(values)}")
    return sequence


def delete_sequence(self, sequence_id: str, organization_id: str):
    """Stop the sequence's active executions, then delete it and its steps."""
    sequence = self._get_owned_sequence(sequence_id, organization_id)

    stopped = (
        SequenceExecution.query
        .filter(
            SequenceExecution.sequence_id == sequence.id,
            SequenceExecution.status.in_(ACTIVE_EXECUTION_STATUSES)
        )
        .update({
            SequenceExecution.status: 'stopped',
            SequenceExecution.next_step_at: None,
            SequenceExecution.claimed_by: None,
            SequenceExecution.claimed_until: None,
            SequenceExecution.updated_at: utcnow()
        }, synchronize_session=False)
    )

    db.session.delete(sequence)
    _commit('sequence deletion')
    logger.info(f"Deleted sequence {sequence_id} (stopped {stopped} active executions)")


def add_step(
    self,
    sequence_id: str,
    organization_id: str,
    type: str,
    content: Dict[str, Any],
    order: Optional[int] = None
) -> MessageSequenceStep:
    """Insert a step at ``order`` (or append), shifting later steps down."""
    sequence = self._get_owned_sequence(sequence_id, organization_id)
    parsed = parse_step_content(type, content)
    order = _validate_order(order)

    existing = list(sequence.steps)
    position = len(existing) if order is None else min(order, len(existing))
    _assign_orders([
        (step, index if index < position else index + 1)
        for index, step in enumerate(existing)
    ])

    step = MessageSequenceStep(
        sequence_id=sequence.id,
        order=position,
        type=parsed.step_type,
        content=parsed.to_dict()
    )
    db.session.add(step)
    sequence.updated_at = utcnow()
    _commit('step creation')
    logger.info(f"Added {step.type} step at position {position} to sequence {sequence.id}")
    return step


def update_step(
    self,
    step_id: str,
    organization_id: str,
    type: Optional[str] = None,
    content: Optional[Dict[str, Any]] = None,
    order: Optional[int] = None
) -> MessageSequenceStep:
    """Change a step's type/content and/or move it to a new position."""
    step = self._get_owned_step(step_id, organization_id)
    order = _validate_order(order)

    parsed = None
    if type is not None or content is not None:
        new_type = type if type is not None else step.type
        new_content = content if content is not None else step.content
        parsed = parse_step_content(new_type, new_content)

    if parsed is not None:
        step.type = parsed.step_type
        step.content = parsed.to_dict()

    if order is not None and order != step.order:
        siblings = [s for s in step.sequence.steps if s.id != step.id]
        siblings.insert(min(order, len(siblings)), step)
        _assign_orders([(s, index) for index, s in enumerate(siblings)])

    step.sequence.updated_at = utcnow()
    _commit('step update')
    return step


def delete_step(self, step_id: str, organization_id: str):
    """Delete a step and close the gap it leaves in the ordering."""
    step = self._get_owned_step(step_id, organization_id)
    sequence = step.sequence
    remaining = [s for s in sequence.steps if s.id != step.id]

    sequence.steps.remove(step)
    db.session.flush()
    _assign_orders([(s, index) for index, s in enumerate(remaining)])

    sequence.updated_at = utcnow()
    _commit('step deletion')
    logger.info(f"Deleted step {step_id} from sequence {sequence.id}")


def reorder_steps(self, sequence_id: str, organization_id: str, step_ids: List[str]) -> MessageSequence:
    """Rewrite every step's order to its position in ``step_ids``."""
    sequence = self._get_owned_sequence(sequence_id, organization_id)

    if not isinstance(step_ids, list):
        raise ValidationError("step_ids must be a list", details={'field': 'step_ids'})

    by_id = {step.id: step for step in sequence.steps}
    if len(step_ids) != len(by_id) or set(step_ids) != set(by_id):
        raise ValidationError(
            "step_ids must list every step of the sequence exactly once",
            details={'expected_count': len(by_id), 'received_count': len(step_ids)}
        )

    _assign_orders([(by_id[step_id], index) for index, step_id in enumerate(step_ids)])
    sequence.updated_at = utcnow()
    _commit('step reorder')
    return sequence
