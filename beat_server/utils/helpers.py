from bson import ObjectId
from flask import jsonify

from beat_server.exception.MessagingError import InvalidInput


def respond_error(message, status=400, code=None):
    """Return a standardized error response."""
    body = {'success': False, 'message': message}
    if code:
        body['error'] = code
    return jsonify(body), status


def respond_success(payload=None, status=200):
    if payload is None:
        payload = {}
    body = {'success': True}
    if isinstance(payload, dict):
        body.update(payload)
    else:
        body['data'] = payload
    return jsonify(body), status


def id_values(value):
    """Return the _id values a user-supplied id may be stored as.

    Users created by the account service carry ObjectId keys while documents
    written here use string ids, so a 24-hex id matches either form.
    """
    if isinstance(value, ObjectId):
        return [value, str(value)]
    if isinstance(value, str) and ObjectId.is_valid(value):
        return [ObjectId(value), value]
    return [value]


def id_query(value):
    """Build an _id filter that matches both ObjectId and plain string ids."""
    return {'_id': {'$in': id_values(value)}}


def parse_page(args, default_limit=50, max_limit=100):
    """Parse page/limit query args into (page, limit).

    Missing or non-numeric values fall back to the defaults; out-of-range
    values raise InvalidInput.
    """
    errors = {}
    try:
        page = int(args.get('page', 1))
        if page < 1:
            errors['page'] = 'page must be >= 1'
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(args.get('limit', default_limit))
        if limit < 1 or limit > max_limit:
            errors['limit'] = f'limit must be between 1 and {max_limit}'
    except (TypeError, ValueError):
        limit = default_limit
    if errors:
        raise InvalidInput('; '.join(errors.values()))
    return page, limit
