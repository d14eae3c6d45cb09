"""Update operators and the key-path walker that applies them."""

import copy
import enum

from sentinels import NOTHING

from mongoportable import InvalidModifierError
from mongoportable import InvalidPathError
from mongoportable import MissingFieldError
from mongoportable import UnsupportedModifierError
from mongoportable import helpers
from mongoportable.filtering import Selector


class Modifier(enum.Enum):
    SET = '$set'
    UNSET = '$unset'
    INC = '$inc'
    PUSH = '$push'
    PUSH_ALL = '$pushAll'
    ADD_TO_SET = '$addToSet'
    POP = '$pop'
    PULL = '$pull'
    PULL_ALL = '$pullAll'
    RENAME = '$rename'
    BIT = '$bit'

    @classmethod
    def from_name(cls, name):
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            raise InvalidModifierError('Invalid modifier specified: %s' % (name,), name)


# These never create a missing path.
NO_CREATE_MODIFIERS = frozenset([
    Modifier.UNSET,
    Modifier.POP,
    Modifier.RENAME,
    Modifier.PULL,
    Modifier.PULL_ALL,
])

# Among the above, the ones for which a missing last field is a no-op.
_ABSENT_FIELD_NOOP = frozenset([Modifier.UNSET, Modifier.POP])


def modify(document, key_parts, value, modifier, level=0):
    """Walk `key_parts` from `level` and apply `modifier` at the last one.

    Lists are indexed with numeric segments and padded with None up to the
    index; missing containers are created unless the modifier forbids it.
    Returns `document`, mutated in place.
    """
    modifier = Modifier.from_name(modifier)
    key = key_parts[level]

    if isinstance(document, list):
        if modifier is Modifier.RENAME:
            raise InvalidPathError(
                'The field "%s" is inside an array, $rename can not be applied' % key)
        if not helpers.is_index(key):
            raise InvalidPathError('The field "%s" can not be appended to an array' % key)
        key = int(key)
    elif not isinstance(document, dict):
        raise InvalidPathError(
            'Cannot apply %s to "%s" inside the non-container value %r'
            % (modifier.value, key, document))

    target = _get(document, key)
    is_last = level == len(key_parts) - 1

    if modifier in NO_CREATE_MODIFIERS and (target is NOTHING or (target is None and not is_last)):
        if is_last and modifier in _ABSENT_FIELD_NOOP:
            return document
        raise MissingFieldError('The element "%s" must exist in %r' % (key, document))

    if isinstance(document, list):
        while len(document) < key:
            document.append(None)

    if is_last:
        MODIFIERS[modifier](document, key, value)
        return document

    if target is NOTHING or target is None:
        target = [] if helpers.is_index(key_parts[level + 1]) else {}
        _put(document, key, target)

    modify(target, key_parts, value, modifier, level + 1)
    return document


def _get(container, field):
    if isinstance(container, list):
        return container[field] if field < len(container) else NOTHING
    return container.get(field, NOTHING)


def _put(container, field, value):
    if isinstance(container, list):
        while len(container) <= field:
            container.append(None)
    container[field] = value


def _is_absent(value):
    return value is NOTHING or value is None


def _set_modifier(container, field, value):
    _put(container, field, copy.deepcopy(value))


def _unset_modifier(container, field, unused_value):
    if isinstance(container, list):
        # Arrays keep their length, the element is only nulled.
        if field < len(container):
            container[field] = None
    else:
        container.pop(field, None)


def _inc_modifier(container, field, value):
    if not helpers.is_number(value):
        raise InvalidModifierError('Modifier $inc allowed for numbers only', '$inc')
    current = _get(container, field)
    if current is NOTHING:
        _put(container, field, value)
    elif not helpers.is_number(current):
        raise InvalidModifierError('Cannot apply $inc modifier to non-number', '$inc')
    else:
        _put(container, field, current + value)


def _push_modifier(container, field, value):
    current = _get(container, field)
    if _is_absent(current):
        _put(container, field, [copy.deepcopy(value)])
    elif not isinstance(current, list):
        raise InvalidModifierError('Cannot apply $push modifier to non-array', '$push')
    else:
        current.append(copy.deepcopy(value))


def _push_all_modifier(container, field, value):
    if not isinstance(value, list):
        raise InvalidModifierError('Modifier $pushAll allowed for arrays only', '$pushAll')
    current = _get(container, field)
    if _is_absent(current):
        _put(container, field, list(value))
    elif not isinstance(current, list):
        raise InvalidModifierError('Cannot apply $pushAll modifier to non-array', '$pushAll')
    else:
        current.extend(value)


def _add_to_set_modifier(container, field, value):
    if isinstance(value, dict) and '$each' in value:
        candidates = value['$each']
        if not isinstance(candidates, list):
            raise InvalidModifierError('The argument to $each in $addToSet must be an array',
                                       '$addToSet')
    else:
        candidates = [value]

    current = _get(container, field)
    if _is_absent(current):
        current = []
        _put(container, field, current)
    elif not isinstance(current, list):
        raise InvalidModifierError('Cannot apply $addToSet modifier to non-array', '$addToSet')

    for candidate in candidates:
        if not any(Selector.equal(candidate, item) for item in current):
            current.append(copy.deepcopy(candidate))


def _pop_modifier(container, field, value):
    current = _get(container, field)
    if _is_absent(current):
        return
    if not isinstance(current, list):
        raise InvalidModifierError('Cannot apply $pop modifier to non-array', '$pop')
    if not current:
        return
    if helpers.is_number(value) and value < 0:
        del current[0]
    else:
        current.pop()


def _pull_modifier(container, field, value):
    current = _get(container, field)
    if _is_absent(current):
        return
    if not isinstance(current, list):
        raise InvalidModifierError('Cannot apply $pull modifier to non-array', '$pull')

    if isinstance(value, dict):
        # The criterion is a query fragment such as {'$gt': 4}: wrap both
        # sides so that it can be run through a regular selector.
        match = Selector({'__matching__': value})
        survivors = [item for item in current if not match.test({'__matching__': item})]
    else:
        survivors = [item for item in current if not Selector.equal(item, value)]
    _put(container, field, survivors)


def _pull_all_modifier(container, field, value):
    if not isinstance(value, list):
        raise InvalidModifierError('Modifier $pullAll allowed for arrays only', '$pullAll')
    current = _get(container, field)
    if _is_absent(current):
        return
    if not isinstance(current, list):
        raise InvalidModifierError('Cannot apply $pullAll modifier to non-array', '$pullAll')
    _put(container, field, [
        item for item in current
        if not any(Selector.equal(item, excluded) for excluded in value)])


def _rename_modifier(container, field, value):
    if not isinstance(value, str) or not value.strip():
        raise InvalidModifierError('The new name must be a non-empty string', '$rename')
    if value == field:
        raise InvalidModifierError('The new field name must be different', '$rename')
    container[value] = container.pop(field)


def _bit_modifier(unused_container, unused_field, unused_value):
    raise UnsupportedModifierError('$bit is not supported', '$bit')


MODIFIERS = {
    Modifier.SET: _set_modifier,
    Modifier.UNSET: _unset_modifier,
    Modifier.INC: _inc_modifier,
    Modifier.PUSH: _push_modifier,
    Modifier.PUSH_ALL: _push_all_modifier,
    Modifier.ADD_TO_SET: _add_to_set_modifier,
    Modifier.POP: _pop_modifier,
    Modifier.PULL: _pull_modifier,
    Modifier.PULL_ALL: _pull_all_modifier,
    Modifier.RENAME: _rename_modifier,
    Modifier.BIT: _bit_modifier,
}
