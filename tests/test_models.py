"""
Integration tests for the database models.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from helpdesk.models import SequenceExecution, MessageSequenceStep

pytestmark = pytest.mark.integration


class TestMessageSequence:
    """Test cases for MessageSequence model."""

    def test_to_dict(self, sample_sequence):
        data = sample_sequence.to_dict()

        assert data['name'] == 'Welcome'
        assert data['shortcut'] == 'welcome'
        assert data['status'] == 'ACTIVE'
        assert data['usage_count'] == 0
        assert data['execution_count'] == 0
        assert [step['order'] for step in data['steps']] == [0, 1, 2]
        assert [step['type'] for step in data['steps']] == ['TEXT', 'DELAY', 'TEXT']

    def test_to_dict_without_steps(self, sample_sequence):
        assert 'steps' not in sample_sequence.to_dict(include_steps=False)

    def test_first_step(self, sample_sequence, delayed_sequence):
        assert sample_sequence.first_step.type == 'TEXT'
        assert delayed_sequence.first_step.is_delay

    def test_step_order_is_unique_per_sequence(self, db_session, sample_sequence):
        db_session.add(MessageSequenceStep(
            sequence_id=sample_sequence.id,
            order=1,
            type='TEXT',
            content={'text': 'clash'}
        ))

        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


class TestSequenceExecution:
    """Test cases for SequenceExecution model."""

    def test_one_active_execution_per_pair(self, db_session, sample_sequence, sample_conversation):
        db_session.add(SequenceExecution(
            sequence_id=sample_sequence.id,
            conversation_id=sample_conversation.id,
            status='running'
        ))
        db_session.commit()

        db_session.add(SequenceExecution(
            sequence_id=sample_sequence.id,
            conversation_id=sample_conversation.id,
            status='scheduled'
        ))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_terminal_executions_do_not_count(self, db_session, sample_sequence, sample_conversation):
        for status in ('stopped', 'completed', 'running'):
            db_session.add(SequenceExecution(
                sequence_id=sample_sequence.id,
                conversation_id=sample_conversation.id,
                status=status
            ))
        db_session.commit()

        assert SequenceExecution.query.count() == 3

    def test_to_dict(self, engine, sample_sequence, sample_conversation, sample_organization):
        execution = engine.start_execution(sample_sequence.id, sample_conversation.id, sample_organization.id)

        data = execution.to_dict(include_sequence=True)

        assert data['status'] == 'running'
        assert data['current_step'] == 0
        assert data['conversation_id'] == sample_conversation.id
        assert data['sequence'] == {'id': sample_sequence.id, 'name': 'Welcome'}
        assert data['completed_at'] is None
        assert 'claimed_by' not in data
        assert execution.is_active
