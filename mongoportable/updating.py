"""Build the new version of a document from an update specification.

An update is either a replacement (only plain field names) or a set of
operator invocations (only `$`-prefixed keys). Nothing here mutates the
document it is given: a new document is always returned.
"""

import copy
import logging

from mongoportable import InvalidModifierError
from mongoportable import MixedUpdateError
from mongoportable import ValidationError
from mongoportable.modifiers import Modifier
from mongoportable.modifiers import modify

logger = logging.getLogger(__name__)


def is_operator(key):
    return isinstance(key, str) and key.startswith('$')


def classify_update(update, update_as_mongo=True, override=False, multi=False):
    """Tell whether `update` replaces the whole document.

    Returns True for a replacement, False for an operator update. With
    `update_as_mongo` disabled the shape of the update is not looked at and
    only `override` decides.
    """
    if not isinstance(update, dict):
        raise ValidationError('update must be an instance of dict')

    if not update_as_mongo:
        return bool(override)

    has_operator = has_field = False
    for key in update:
        if is_operator(key):
            has_operator = True
        else:
            has_field = True

    if has_operator and has_field:
        raise MixedUpdateError(
            'Update operators and plain fields can not be mixed in the same update')
    if has_field and multi:
        raise InvalidModifierError('All update fields must be an update operator')
    if not update and multi:
        raise InvalidModifierError('All update fields must be an update operator')
    return not has_operator


def apply_update(document, update, update_as_mongo=True, override=False):
    if classify_update(update, update_as_mongo, override):
        new_document = _replace_document(document, update)
    else:
        new_document = _modify_document(document, update)

    if '_id' in document and (
            '_id' not in new_document or new_document['_id'] != document['_id']):
        raise InvalidModifierError(
            "After applying the update, the (immutable) field '_id' was found to have "
            'been altered to _id: {}'.format(new_document.get('_id')))
    return new_document


def _replace_document(document, update):
    new_document = {}
    if '_id' in document:
        new_document['_id'] = document['_id']

    for key, value in update.items():
        if not isinstance(key, str):
            raise ValidationError('Document keys must be strings')
        if key.startswith('$') or '.' in key:
            logger.warning("The field %s can not begin with '$' or contain '.'", key)
            continue
        if key == '_id':
            if '_id' in document and value != document['_id']:
                raise InvalidModifierError(
                    'The _id field cannot be changed from {0} to {1}'
                    .format(document['_id'], value))
            new_document['_id'] = copy.deepcopy(value)
            continue
        new_document[key] = copy.deepcopy(value)

    return new_document


def _modify_document(document, update):
    new_document = copy.deepcopy(document)

    for key, value in update.items():
        if not is_operator(key):
            # Only reachable when the update is not checked against the
            # MongoDB rules: plain keys only overwrite fields holding a value.
            if key == '_id':
                logger.warning("The field '_id' can not be updated")
            elif new_document.get(key) is not None:
                new_document[key] = copy.deepcopy(value)
            else:
                logger.warning('The document has no value for the field %s', key)
            continue

        modifier = Modifier.from_name(key)
        if not isinstance(value, dict):
            raise InvalidModifierError(
                "Modifier %s's operand must be an object, not %r" % (key, value), key)
        for key_path, argument in value.items():
            modify(new_document, key_path.split('.'), argument, modifier)

    return new_document
