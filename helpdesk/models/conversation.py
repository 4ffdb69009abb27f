import uuid
from helpdesk.models import db
from helpdesk.utils.timezone import utcnow, isoformat


class Conversation(db.Model):
    __tablename__ = 'conversations'
    
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = db.Column(db.String(36), db.ForeignKey('organizations.id'), nullable=False, index=True)
    channel_id = db.Column(db.String(36), db.ForeignKey('channels.id'), nullable=False)
    contact_id = db.Column(db.String(36), db.ForeignKey('contacts.id'), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    
    # Relationships
    channel = db.relationship('Channel', lazy='joined')
    contact = db.relationship('Contact', lazy='joined')
    
    def to_dict(self):
        return {
            'id': str(self.id),
            'organization_id': str(self.organization_id),
            'channel_id': str(self.channel_id),
            'contact_id': str(self.contact_id),
            'created_at': isoformat(self.created_at)
        }
    
    def __repr__(self):
        return f'<Conversation {self.id}>'
