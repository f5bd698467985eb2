"""
Routes package for the BuildTrack API.

One Flask blueprint per resource; ``buildtrack.app`` registers them under
``/api``. Handlers authenticate with Flask-Login, check ownership through
``services.authorization`` and do all database work through
``services.storage``.
"""
from flask import request

from ..errors import ValidationError


def get_json_body():
    """Decoded JSON object from the current request, or a ValidationError."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data
