import uuid
from helpdesk.models import db
from helpdesk.utils.timezone import utcnow, isoformat

# scheduled/running are active; completed/stopped are terminal and never reused
EXECUTION_STATUSES = ('scheduled', 'running', 'completed', 'stopped')
ACTIVE_EXECUTION_STATUSES = ('scheduled', 'running')
TERMINAL_EXECUTION_STATUSES = ('completed', 'stopped')


class SequenceExecution(db.Model):
    __tablename__ = 'sequence_executions'
    
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    sequence_id = db.Column(
        db.String(36),
        db.ForeignKey('message_sequences.id', ondelete='SET NULL'),
        nullable=True,
        index=True
    )
    conversation_id = db.Column(db.String(36), db.ForeignKey('conversations.id'), nullable=False, index=True)
    current_step = db.Column(db.Integer, nullable=False, default=0)  # Step most recently completed or about to run
    status = db.Column(db.String(20), nullable=False, default='running', index=True)
    scheduled_at = db.Column(db.DateTime, nullable=True, index=True)  # Only set for deferred starts
    started_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    next_step_at = db.Column(db.DateTime, nullable=True, index=True)  # Null once completed/stopped
    error_message = db.Column(db.Text, nullable=True)  # Last delivery failure, non-fatal
    
    # Worker lease; a row is owned by claimed_by until claimed_until passes
    claimed_by = db.Column(db.String(100), nullable=True)
    claimed_until = db.Column(db.DateTime, nullable=True)
    
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    
    # Relationships
    conversation = db.relationship('Conversation', lazy=True)
    
    # At most one active execution per (sequence, conversation)
    __table_args__ = (
        db.Index(
            'uq_sequence_executions_active_pair',
            'sequence_id',
            'conversation_id',
            unique=True,
            postgresql_where=db.text("status IN ('scheduled', 'running')"),
            sqlite_where=db.text("status IN ('scheduled', 'running')")
        ),
    )
    
    @property
    def is_active(self):
        return self.status in ACTIVE_EXECUTION_STATUSES
    
    def to_dict(self, include_sequence=False):
        data = {
            'id': str(self.id),
            'sequence_id': str(self.sequence_id) if self.sequence_id else None,
            'conversation_id': str(self.conversation_id),
            'current_step': self.current_step,
            'status': self.status,
            'scheduled_at': isoformat(self.scheduled_at),
            'started_at': isoformat(self.started_at),
            'completed_at': isoformat(self.completed_at),
            'next_step_at': isoformat(self.next_step_at),
            'error_message': self.error_message,
            'created_at': isoformat(self.created_at)
        }
        if include_sequence:
            sequence = self.sequence
            data['sequence'] = {'id': str(sequence.id), 'name': sequence.name} if sequence else None
        return data
    
    def __repr__(self):
        return f'<SequenceExecution {self.id} ({self.status} @ step {self.current_step})>'
