import uuid
from helpdesk.models import db
from helpdesk.utils.timezone import utcnow, isoformat


class Contact(db.Model):
    __tablename__ = 'contacts'
    
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = db.Column(db.String(36), db.ForeignKey('organizations.id'), nullable=False, index=True)
    identifier = db.Column(db.String(255), nullable=False)  # Phone number or chat id on the channel
    name = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    
    def to_dict(self):
        return {
            'id': str(self.id),
            'organization_id': str(self.organization_id),
            'identifier': self.identifier,
            'name': self.name,
            'created_at': isoformat(self.created_at)
        }
    
    def __repr__(self):
        return f'<Contact {self.identifier}>'
