import uuid
from helpdesk.models import db
from helpdesk.utils.timezone import utcnow, isoformat


class Organization(db.Model):
    __tablename__ = 'organizations'
    
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    
    # Relationships
    channels = db.relationship('Channel', backref='organization', lazy=True, cascade='all, delete-orphan')
    contacts = db.relationship('Contact', backref='organization', lazy=True, cascade='all, delete-orphan')
    sequences = db.relationship('MessageSequence', backref='organization', lazy=True, cascade='all, delete-orphan')
    
    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'created_at': isoformat(self.created_at)
        }
    
    def __repr__(self):
        return f'<Organization {self.name}>'
