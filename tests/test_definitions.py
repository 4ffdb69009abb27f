"""
Integration tests for the sequence definition store.

Covers sequence CRUD, shortcut normalisation and uniqueness, prefix search
and step editing with dense ordering.
"""

import pytest

from helpdesk.models import MessageSequence, MessageSequenceStep, SequenceExecution
from helpdesk.utils.error_handling import ValidationError, NotFoundError, ConflictError

pytestmark = pytest.mark.integration


def _orders(sequence):
    return [(step.order, step.content.get('text')) for step in sequence.steps]


class TestCreateSequence:
    """Test cases for creating sequences."""

    def test_create_with_steps(self, engine, sample_organization):
        sequence = engine.create_sequence(
            sample_organization.id,
            name="Onboarding",
            shortcut="Onboard",
            description="First contact",
            steps=[
                {"type": "TEXT", "content": {"text": "one"}},
                {"type": "TEXT", "content": {"text": "two"}}
            ]
        )

        assert sequence.id is not None
        assert sequence.status == 'DRAFT'
        assert sequence.shortcut == 'onboard'
        assert sequence.trigger_type == 'manual'
        assert sequence.usage_count == 0
        assert _orders(sequence) == [(0, 'one'), (1, 'two')]

    def test_supplied_orders_are_made_dense(self, engine, sample_organization):
        sequence = engine.create_sequence(
            sample_organization.id,
            name="Out of order",
            steps=[
                {"type": "TEXT", "content": {"text": "last"}, "order": 9},
                {"type": "TEXT", "content": {"text": "first"}, "order": 2}
            ]
        )

        assert _orders(sequence) == [(0, 'first'), (1, 'last')]

    def test_shortcut_uniqueness_is_case_insensitive(self, engine, sample_organization):
        engine.create_sequence(sample_organization.id, name="A", shortcut="Welcome")

        with pytest.raises(ConflictError) as exc_info:
            engine.create_sequence(sample_organization.id, name="B", shortcut="welcome")

        assert exc_info.value.code == 'DUPLICATE_SHORTCUT'
        assert exc_info.value.status_code == 409
        assert MessageSequence.query.count() == 1

    def test_same_shortcut_in_other_organization(self, engine, sample_organization, other_organization):
        engine.create_sequence(sample_organization.id, name="A", shortcut="welcome")
        other = engine.create_sequence(other_organization.id, name="B", shortcut="WELCOME")

        assert other.shortcut == 'welcome'

    @pytest.mark.parametrize('shortcut', ['has space', 'slash/cmd', 'x' * 51, ''])
    def test_invalid_shortcut(self, engine, sample_organization, shortcut):
        with pytest.raises(ValidationError):
            engine.create_sequence(sample_organization.id, name="Bad", shortcut=shortcut)

    def test_name_is_required(self, engine, sample_organization):
        with pytest.raises(ValidationError):
            engine.create_sequence(sample_organization.id, name="   ")

    def test_invalid_step_is_rejected_with_position(self, engine, sample_organization):
        with pytest.raises(ValidationError) as exc_info:
            engine.create_sequence(
                sample_organization.id,
                name="Broken",
                steps=[
                    {"type": "TEXT", "content": {"text": "ok"}},
                    {"type": "DELAY", "content": {}}
                ]
            )

        assert exc_info.value.message.startswith('Step 2:')
        assert exc_info.value.code == 'INVALID_STEP'
        assert MessageSequence.query.count() == 0

    def test_invalid_status(self, engine, sample_organization):
        with pytest.raises(ValidationError):
            engine.create_sequence(sample_organization.id, name="X", status="LIVE")


class TestReadSequences:
    """Test cases for listing, getting and searching sequences."""

    def test_list_is_scoped_to_organization(self, engine, sample_organization, other_organization):
        engine.create_sequence(sample_organization.id, name="Mine")
        engine.create_sequence(other_organization.id, name="Theirs")

        sequences = engine.list_sequences(sample_organization.id)

        assert [s.name for s in sequences] == ["Mine"]

    def test_list_filters_by_status(self, engine, sample_organization):
        engine.create_sequence(sample_organization.id, name="Draft")
        engine.create_sequence(sample_organization.id, name="Live", status="ACTIVE")

        sequences = engine.list_sequences(sample_organization.id, status="ACTIVE")

        assert [s.name for s in sequences] == ["Live"]

    def test_get_other_organizations_sequence(self, engine, sample_sequence, other_organization):
        with pytest.raises(NotFoundError):
            engine.get_sequence(sample_sequence.id, other_organization.id)

    def test_search_by_prefix(self, engine, sample_organization, db_session):
        hello = engine.create_sequence(sample_organization.id, name="Hello", shortcut="hello", status="ACTIVE")
        engine.create_sequence(sample_organization.id, name="Help", shortcut="help")
        engine.create_sequence(sample_organization.id, name="Helm", shortcut="helm", status="ARCHIVED")
        engine.create_sequence(sample_organization.id, name="Bye", shortcut="bye", status="ACTIVE")
        hello.usage_count = 7
        db_session.commit()

        results = engine.search_by_shortcut(sample_organization.id, "HEL")

        assert [s.shortcut for s in results] == ["hello", "help"]

    def test_search_ties_break_on_shortcut(self, engine, sample_organization):
        engine.create_sequence(sample_organization.id, name="B", shortcut="promo-b")
        engine.create_sequence(sample_organization.id, name="A", shortcut="promo-a")

        results = engine.search_by_shortcut(sample_organization.id, "promo", limit=1)

        assert [s.shortcut for s in results] == ["promo-a"]

    def test_search_treats_wildcards_literally(self, engine, sample_organization):
        engine.create_sequence(sample_organization.id, name="Under", shortcut="a_b")
        engine.create_sequence(sample_organization.id, name="Other", shortcut="axb")

        results = engine.search_by_shortcut(sample_organization.id, "a_")

        assert [s.shortcut for s in results] == ["a_b"]

    @pytest.mark.parametrize('limit', [0, -1, '5', True])
    def test_search_rejects_invalid_limit(self, engine, sample_organization, limit):
        engine.create_sequence(sample_organization.id, name="A", shortcut="alpha")

        with pytest.raises(ValidationError):
            engine.search_by_shortcut(sample_organization.id, "", limit=limit)

    def test_search_accepts_large_and_default_limit(self, engine, sample_organization):
        for index in range(3):
            engine.create_sequence(sample_organization.id, name=f"S{index}", shortcut=f"s{index}")

        assert len(engine.search_by_shortcut(sample_organization.id, "s", limit=500)) == 3
        assert len(engine.search_by_shortcut(sample_organization.id, "s", limit=None)) == 3


class TestUpdateAndDeleteSequence:
    """Test cases for updating and deleting sequences."""

    def test_update_fields(self, engine, sample_sequence, sample_organization):
        updated = engine.update_sequence(
            sample_sequence.id,
            sample_organization.id,
            name="Welcome v2",
            status="PAUSED",
            description=None
        )

        assert updated.name == "Welcome v2"
        assert updated.status == "PAUSED"
        assert updated.description is None
        assert updated.shortcut == "welcome"

    def test_update_to_taken_shortcut(self, engine, sample_sequence, sample_organization):
        engine.create_sequence(sample_organization.id, name="Other", shortcut="other")

        with pytest.raises(ConflictError):
            engine.update_sequence(sample_sequence.id, sample_organization.id, shortcut="OTHER")

    def test_update_keeps_own_shortcut(self, engine, sample_sequence, sample_organization):
        updated = engine.update_sequence(sample_sequence.id, sample_organization.id, shortcut="Welcome")
        assert updated.shortcut == "welcome"

    def test_update_unknown_field(self, engine, sample_sequence, sample_organization):
        with pytest.raises(ValidationError):
            engine.update_sequence(sample_sequence.id, sample_organization.id, usage_count=100)

    def test_delete_stops_active_executions(self, engine, sample_sequence, sample_conversation, sample_organization,
                                            db_session):
        execution = engine.start_execution(sample_sequence.id, sample_conversation.id, sample_organization.id)
        execution_id = execution.id

        engine.delete_sequence(sample_sequence.id, sample_organization.id)

        assert MessageSequence.query.count() == 0
        assert MessageSequenceStep.query.count() == 0
        remaining = db_session.get(SequenceExecution, execution_id)
        assert remaining is not None
        assert remaining.status == 'stopped'
        assert remaining.sequence_id is None
        assert remaining.next_step_at is None

    def test_delete_from_other_organization(self, engine, sample_sequence, other_organization):
        with pytest.raises(NotFoundError):
            engine.delete_sequence(sample_sequence.id, other_organization.id)
        assert MessageSequence.query.count() == 1


class TestSteps:
    """Test cases for step editing."""

    def test_append_step(self, engine, sample_sequence, sample_organization):
        step = engine.add_step(sample_sequence.id, sample_organization.id, "TEXT", {"text": "P.S."})

        assert step.order == 3
        assert [s.order for s in sample_sequence.steps] == [0, 1, 2, 3]

    def test_insert_step_shifts_later_steps(self, engine, sample_sequence, sample_organization):
        engine.add_step(sample_sequence.id, sample_organization.id, "TEXT", {"text": "inserted"}, order=1)

        assert _orders(sample_sequence) == [
            (0, 'Hi there!'),
            (1, 'inserted'),
            (2, None),
            (3, 'Anything else we can help with?')
        ]

    def test_add_invalid_step(self, engine, sample_sequence, sample_organization):
        with pytest.raises(ValidationError):
            engine.add_step(sample_sequence.id, sample_organization.id, "IMAGE", {})
        assert len(sample_sequence.steps) == 3

    def test_update_step_content(self, engine, sample_sequence, sample_organization):
        step = sample_sequence.steps[0]

        updated = engine.update_step(step.id, sample_organization.id, content={"text": "Hello!"})

        assert updated.type == "TEXT"
        assert updated.content == {"text": "Hello!"}

    def test_update_step_type_revalidates(self, engine, sample_sequence, sample_organization):
        step = sample_sequence.steps[0]

        with pytest.raises(ValidationError):
            engine.update_step(step.id, sample_organization.id, type="DELAY")

    def test_move_step(self, engine, sample_sequence, sample_organization):
        last = sample_sequence.steps[2]

        engine.update_step(last.id, sample_organization.id, order=0)

        assert _orders(sample_sequence) == [
            (0, 'Anything else we can help with?'),
            (1, 'Hi there!'),
            (2, None)
        ]

    def test_delete_step_closes_gap(self, engine, sample_sequence, sample_organization):
        middle = sample_sequence.steps[1]

        engine.delete_step(middle.id, sample_organization.id)

        assert _orders(sample_sequence) == [(0, 'Hi there!'), (1, 'Anything else we can help with?')]

    def test_step_of_other_organization(self, engine, sample_sequence, other_organization):
        with pytest.raises(NotFoundError):
            engine.delete_step(sample_sequence.steps[0].id, other_organization.id)

    def test_reorder_steps(self, engine, sample_sequence, sample_organization):
        first, delay, last = [step.id for step in sample_sequence.steps]

        reordered = engine.reorder_steps(sample_sequence.id, sample_organization.id, [last, first, delay])

        assert [s.id for s in reordered.steps] == [last, first, delay]
        assert [s.order for s in reordered.steps] == [0, 1, 2]

    @pytest.mark.parametrize('pick', [
        lambda ids: ids[:2],
        lambda ids: ids + [ids[0]],
        lambda ids: ids[:2] + ['missing-step'],
    ])
    def test_reorder_requires_every_step_once(self, engine, sample_sequence, sample_organization, pick):
        ids = [step.id for step in sample_sequence.steps]

        with pytest.raises(ValidationError):
            engine.reorder_steps(sample_sequence.id, sample_organization.id, pick(ids))

        assert [s.id for s in sample_sequence.steps] == ids
