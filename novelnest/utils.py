import re

from flask import request

from .errors import ValidationError

_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')


def json_body():
    """Return the request's JSON object, or raise ``ValidationError``."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def to_snake_case(name):
    """hasChapters -> has_chapters"""
    return _CAMEL_BOUNDARY.sub('_', name).lower()


def novel_patch(data, allowed=('title', 'synopsis', 'genres', 'hasChapters', 'content', 'chapters')):
    """Pick the editable novel fields out of a request body, keyed in snake_case.

    Keys that are absent stay absent so the service can tell "not sent" from
    "sent empty".
    """
    return {to_snake_case(key): data[key] for key in allowed if key in data}


def genre_filter(args):
    """Collect ``genre`` query params; both ``?genre=a&genre=b`` and ``?genre=a,b`` work."""
    genres = []
    for raw in args.getlist('genre') + args.getlist('genres'):
        genres.extend(part.strip() for part in raw.split(',') if part.strip())
    return genres
