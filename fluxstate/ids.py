"""Identifier helpers for state keys, generated names and fresh ids."""

import itertools
import re
import time

from .config import FLUX_CONFIG

_id_counter = itertools.count(1)

_BASE36 = '0123456789abcdefghijklmnopqrstuvwxyz'


def _to_base36(value: int) -> str:
    if value == 0:
        return '0'
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return ''.join(reversed(digits))


def create_id(prefix: str) -> str:
    """Fresh id of the form prefix_<millis>_<counter>, both base36"""
    millis = int(time.time() * 1000)
    return f"{prefix}_{_to_base36(millis)}_{_to_base36(next(_id_counter))}"


def slugify(value: str) -> str:
    """
    Lower-case slug with non-alphanumeric runs collapsed to '_'

    Examples:
        "Logged Out" → "logged_out"
        "Review (Parallel)" → "review_parallel"
        "!!!" → "state"
    """
    slug = re.sub(r'[^a-z0-9]+', '_', (value or '').strip().lower()).strip('_')
    return slug or FLUX_CONFIG['identifiers']['default_slug']


def to_identifier(value: str) -> str:
    """lowerCamelCase identifier derived from the slug of value"""
    normalized = re.sub(r'_+([a-z])', lambda m: m.group(1).upper(), slugify(value))
    if re.match(r'^[a-zA-Z_]', normalized):
        return normalized
    return FLUX_CONFIG['identifiers']['leading_digit_prefix'] + normalized


def enum_name(value: str) -> str:
    """UPPER_SNAKE enum member name ("Logged Out" → "LOGGED_OUT")"""
    return re.sub(r'([a-z])([A-Z])', r'\1_\2', to_identifier(value)).upper()
