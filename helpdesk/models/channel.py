import uuid
from helpdesk.models import db
from helpdesk.utils.timezone import utcnow, isoformat
from sqlalchemy import JSON


class Channel(db.Model):
    __tablename__ = 'channels'
    
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = db.Column(db.String(36), db.ForeignKey('organizations.id'), nullable=False, index=True)
    type = db.Column(db.String(50), nullable=False, default='whatsapp')  # whatsapp, telegram, instagram, ...
    name = db.Column(db.String(255), nullable=False)
    config = db.Column(JSON, nullable=True)  # Transport-specific settings, passed through to the gateway
    status = db.Column(db.String(50), nullable=False, default='connected')  # connected, disconnected
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    
    def to_dict(self):
        return {
            'id': str(self.id),
            'organization_id': str(self.organization_id),
            'type': self.type,
            'name': self.name,
            'status': self.status,
            'created_at': isoformat(self.created_at)
        }
    
    def __repr__(self):
        return f'<Channel {self.type}:{self.name}>'
