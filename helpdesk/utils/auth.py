"""
Request identity helpers.

Access tokens carry the caller's organization in an ``organization_id``
claim; every sequence endpoint is scoped by it.
"""

from flask_jwt_extended import get_jwt

from helpdesk.utils.error_handling import SequenceError


def current_organization_id():
    """Organization of the authenticated caller."""
    organization_id = get_jwt().get('organization_id')
    if not organization_id:
        raise SequenceError('Access token has no organization', code='FORBIDDEN')
    return organization_id
