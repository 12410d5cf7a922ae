"""Request helpers shared by the API blueprints."""

from typing import Any, Dict

from flask import current_app, request

from grantha_library.exceptions import ValidationError
from grantha_library.services import LibraryServices

EXTENSION_KEY = 'grantha_library'


def get_services() -> LibraryServices:
    """Returns the services of the current application."""
    return current_app.extensions[EXTENSION_KEY]


def json_body() -> Dict[str, Any]:
    """Returns the request body as a JSON object.

    Raises:
        ValidationError: If the body is missing or not a JSON object.
    """
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError('Request body must be a JSON object')
    return body
