from flask import request

from utils.errors import ValidationError


def json_object() -> dict:
    """The request's JSON body as a dict; no body (or unparseable JSON) reads as empty."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
