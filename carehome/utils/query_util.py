# /carehome/utils/query_util.py
from flask import request
from carehome.utils.errors import ValidationError


def get_limit(default, maximum):
    """``?limit=`` as a positive int, capped at ``maximum``."""
    limit = request.args.get('limit', default, type=int)
    if limit < 1:
        raise ValidationError('limit must be a positive whole number')
    return min(limit, maximum)
