import uuid
from helpdesk.models import db
from helpdesk.utils.timezone import utcnow, isoformat
from sqlalchemy import JSON, UniqueConstraint

# Sequence statuses; only ACTIVE sequences can be started
SEQUENCE_STATUSES = ('DRAFT', 'ACTIVE', 'PAUSED', 'ARCHIVED')

# Closed set of step types; DELAY performs no send
STEP_TYPES = ('TEXT', 'IMAGE', 'VIDEO', 'AUDIO', 'DOCUMENT', 'DELAY')
MEDIA_STEP_TYPES = ('IMAGE', 'VIDEO', 'AUDIO', 'DOCUMENT')


class MessageSequence(db.Model):
    __tablename__ = 'message_sequences'
    
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = db.Column(db.String(36), db.ForeignKey('organizations.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    shortcut = db.Column(db.String(50), nullable=True)  # Stored lowercase, used for slash-command autocomplete
    description = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='DRAFT', index=True)
    trigger_type = db.Column(db.String(50), nullable=False, default='manual')
    trigger_config = db.Column(JSON, nullable=True)
    usage_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    
    # Relationships
    steps = db.relationship(
        'MessageSequenceStep',
        backref='sequence',
        lazy=True,
        cascade='all, delete-orphan',
        order_by='MessageSequenceStep.order'
    )
    # Executions outlive their sequence (sequence_id is nulled on delete)
    executions = db.relationship('SequenceExecution', backref='sequence', lazy=True)
    
    __table_args__ = (
        UniqueConstraint('organization_id', 'shortcut', name='uq_message_sequences_organization_shortcut'),
    )
    
    @property
    def first_step(self):
        return self.steps[0] if self.steps else None
    
    def to_dict(self, include_steps=True):
        data = {
            'id': str(self.id),
            'organization_id': str(self.organization_id),
            'name': self.name,
            'shortcut': self.shortcut,
            'description': self.description,
            'status': self.status,
            'trigger_type': self.trigger_type,
            'trigger_config': self.trigger_config,
            'usage_count': self.usage_count,
            'execution_count': len(self.executions),
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }
        if include_steps:
            data['steps'] = [step.to_dict() for step in self.steps]
        return data
    
    def __repr__(self):
        return f'<MessageSequence {self.name}>'


class MessageSequenceStep(db.Model):
    __tablename__ = 'message_sequence_steps'
    
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    sequence_id = db.Column(
        db.String(36),
        db.ForeignKey('message_sequences.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    order = db.Column(db.Integer, nullable=False)  # Zero-based and dense within a sequence
    type = db.Column(db.String(20), nullable=False)
    content = db.Column(JSON, nullable=False)  # Shape depends on type, see step_content
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    
    __table_args__ = (
        UniqueConstraint('sequence_id', 'order', name='uq_message_sequence_steps_sequence_order'),
    )
    
    @property
    def is_delay(self):
        return self.type == 'DELAY'
    
    def to_dict(self):
        return {
            'id': str(self.id),
            'sequence_id': str(self.sequence_id),
            'order': self.order,
            'type': self.type,
            'content': self.content,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }
    
    def __repr__(self):
        return f'<MessageSequenceStep {self.order}:{self.type}>'
