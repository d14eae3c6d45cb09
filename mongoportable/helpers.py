import numbers
import re

from mongoportable import ValidationError
from mongoportable.object_id import ObjectId


ASCENDING = 1
DESCENDING = -1

_INDEX_RE = re.compile('^[0-9]+$')


def is_number(value):
    """True for ints and floats, False for booleans."""
    return isinstance(value, numbers.Number) and not isinstance(value, bool)


def is_index(key_part):
    """Whether a key-path segment addresses an array position."""
    return isinstance(key_part, str) and bool(_INDEX_RE.match(key_part))


def normalize_id(doc_id):
    """Numbers are stored as their string form when used as `_id`."""
    if is_number(doc_id):
        return str(doc_id)
    return doc_id


def normalize_selection(selection):
    """Turn the accepted selection shapes into a filter document.

    None selects everything, an ObjectId or a string selects by `_id`. A
    numeric `_id` condition is matched against its stored string form.
    """
    if selection is None:
        return {}
    if isinstance(selection, (ObjectId, str)):
        return {'_id': selection}
    if not isinstance(selection, dict):
        raise ValidationError('selection must be a dict, an ObjectId or a string, not %r'
                              % type(selection).__name__)
    if is_number(selection.get('_id')):
        selection = dict(selection, _id=normalize_id(selection['_id']))
    return selection


def create_sort_list(key_or_list, direction=None):
    """Helper to generate a list of (key, direction) pairs.

       It takes such a list, or a single key, or a single key and direction.
    """
    if isinstance(key_or_list, str):
        return [(key_or_list, direction or ASCENDING)]
    if isinstance(key_or_list, dict):
        return list(key_or_list.items())
    if not isinstance(key_or_list, (list, tuple)):
        raise ValidationError('if no direction is specified, '
                              'key_or_list must be an instance of list')
    return list(key_or_list)


def fields_list_to_dict(fields):
    """Takes a list of field names and returns a matching dictionary.

    ['a', 'b'] becomes {'a': 1, 'b': 1}

    and

    ['a.b.c', 'd', 'a.c'] becomes {'a.b.c': 1, 'd': 1, 'a.c': 1}
    """
    as_dict = {}
    for field in fields:
        if not isinstance(field, str):
            raise ValidationError('fields must be a list of key names, each an instance of str')
        as_dict[field] = 1
    return as_dict


def get_value_by_dot(doc, key):
    """Get dictionary value using dotted key"""
    result = doc
    for key_item in key.split('.'):
        if isinstance(result, dict):
            result = result[key_item]

        elif isinstance(result, list):
            try:
                result = result[int(key_item)]
            except (ValueError, IndexError):
                raise KeyError(key)

        else:
            raise KeyError(key)

    return result


def set_value_by_dot(doc, key, value):
    """Set dictionary value using dotted key"""
    try:
        parent_key, child_key = key.rsplit('.', 1)
        parent = get_value_by_dot(doc, parent_key)
    except ValueError:
        child_key = key
        parent = doc

    if isinstance(parent, dict):
        parent[child_key] = value
    elif isinstance(parent, list):
        try:
            parent[int(child_key)] = value
        except (ValueError, IndexError):
            raise KeyError(key)
    else:
        raise KeyError(key)

    return doc
