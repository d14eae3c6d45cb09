from datetime import datetime
import numbers
import operator
import re

from sentinels import NOTHING

from mongoportable import ValidationError
from mongoportable import helpers
from mongoportable.object_id import ObjectId

RE_TYPE = type(re.compile(''))
NoneType = type(None)


def equal(a, b):
    """Deep structural equality between two document values.

    Booleans never equal numbers, lists and tuples compare element-wise and
    mappings compare key by key regardless of insertion order.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, dict):
        if not isinstance(b, dict) or len(a) != len(b):
            return False
        return all(k in b and equal(v, b[k]) for k, v in a.items())
    if isinstance(a, (list, tuple)):
        if not isinstance(b, (list, tuple)) or len(a) != len(b):
            return False
        return all(equal(x, y) for x, y in zip(a, b))
    return a == b


class Selector(object):
    """A compiled query specification.

    The selection is validated once against an empty document so that
    malformed queries fail even when no document is ever tested.
    """

    def __init__(self, selection):
        self._selection = helpers.normalize_selection(selection)
        filter_applies(self._selection, {})

    @property
    def selection(self):
        return self._selection

    def test(self, document):
        return filter_applies(self._selection, document)

    equal = staticmethod(equal)


def filter_applies(search_filter, document):
    """Applies given filter

    This function implements MongoDB's matching strategy over documents in the find() method
    and other related scenarios (like $elemMatch and $pull)
    """
    if not isinstance(search_filter, dict):
        raise ValidationError('the match filter must be an expression in an object')

    for key, search in search_filter.items():
        if key == '$comment':
            continue
        if key in LOGICAL_OPERATOR_MAP:
            if not isinstance(search, (list, tuple)) or not search:
                raise ValidationError('%s must be a nonempty array' % key)
            if not LOGICAL_OPERATOR_MAP[key](document, search):
                return False
            continue
        if key.startswith('$'):
            raise ValidationError('unknown top level operator: ' + key)
        if not _key_matches(key, search, document):
            return False

    return True


def _key_matches(key, search, document):
    candidates = iter_key_candidates(key, document) or [NOTHING]
    if _is_operator_expression(search):
        return _operators_match(key, search, candidates, document)
    return any(_value_matches(doc_val, search) for doc_val in candidates)


def _is_operator_expression(search):
    return isinstance(search, dict) and bool(search) and \
        all(isinstance(k, str) and k.startswith('$') for k in search)


def _operators_match(key, search, candidates, document):
    if '$regex' in search:
        search = _combine_regex_options(search)
    elif '$options' in search:
        raise ValidationError('$options needs a $regex')

    for operator_string, search_val in search.items():
        if operator_string == '$not':
            if not isinstance(search_val, (dict, RE_TYPE)):
                raise ValidationError('$not needs a regex or a document')
            if _key_matches(key, search_val, document):
                return False
            continue
        try:
            op = OPERATOR_MAP[operator_string]
        except KeyError:
            raise ValidationError('unknown operator: %s' % operator_string)
        # Negative operators must hold for every candidate.
        if operator_string in NEGATIVE_OPERATORS:
            if not all(op(doc_val, search_val) for doc_val in candidates):
                return False
        elif not any(op(doc_val, search_val) for doc_val in candidates):
            return False
    return True


def _value_matches(doc_val, search):
    if isinstance(search, RE_TYPE):
        return _regex(doc_val, search)
    if search is None and doc_val is NOTHING:
        return True
    if isinstance(doc_val, list) and not isinstance(search, list):
        return any(equal(item, search) for item in doc_val)
    if isinstance(doc_val, list):
        return equal(doc_val, search) or any(equal(item, search) for item in doc_val)
    return equal(doc_val, search)


def iter_key_candidates(key, doc):
    """Get possible subdocuments or lists that are referred to by the key in question

    Returns the appropriate nested value if the key includes dot notation.
    """
    if doc is None or doc is NOTHING:
        return []

    if not key:
        return [doc]

    if isinstance(doc, list):
        return _iter_key_candidates_sublist(key, doc)

    if not isinstance(doc, dict):
        return []

    head, _, rest = key.partition('.')
    if not rest:
        return [doc.get(key, NOTHING)]
    return iter_key_candidates(rest, doc.get(head, NOTHING))


def _iter_key_candidates_sublist(key, doc):
    head, _, rest = key.partition('.')

    if not helpers.is_index(head):
        return [x
                for sub_doc in doc
                if isinstance(sub_doc, dict) and head in sub_doc
                for x in iter_key_candidates(rest, sub_doc[head])]

    index = int(head)
    if index >= len(doc):
        return []
    if rest:
        return iter_key_candidates(rest, doc[index])
    return [doc[index]]


def _force_list(v):
    return v if isinstance(v, (list, tuple)) else [v]


def _eq_op(doc_val, search_val):
    if doc_val is NOTHING:
        return search_val is None
    return _value_matches(doc_val, search_val)


def _in_op(doc_val, search_val):
    if not isinstance(search_val, (list, tuple)):
        raise ValidationError('$in needs an array')
    if doc_val is NOTHING:
        return None in search_val
    for item in _force_list(doc_val):
        for candidate in search_val:
            if isinstance(candidate, RE_TYPE):
                if _regex(item, candidate):
                    return True
            elif equal(item, candidate):
                return True
    return False


def _all_op(doc_val, search_val):
    if not isinstance(search_val, (list, tuple)):
        raise ValidationError('$all needs an array')
    if doc_val is NOTHING or not search_val:
        return False
    values = _force_list(doc_val)
    for candidate in search_val:
        if isinstance(candidate, dict) and '$elemMatch' in candidate:
            if not _elem_match_op(doc_val, candidate['$elemMatch']):
                return False
        elif not any(equal(item, candidate) for item in values):
            return False
    return True


def _size_op(doc_val, search_val):
    return isinstance(doc_val, list) and len(doc_val) == search_val


def _exists_op(doc_val, search_val):
    return bool(search_val) == (doc_val is not NOTHING)


def _elem_match_op(doc_val, query):
    if not isinstance(query, dict):
        raise ValidationError('$elemMatch needs an Object')
    if not isinstance(doc_val, list):
        return False
    if _is_operator_expression(query) and not set(query) & set(LOGICAL_OPERATOR_MAP):
        return any(_operators_match('', query, [item], item) for item in doc_val)
    return any(isinstance(item, dict) and filter_applies(query, item) for item in doc_val)


def _regex(doc_val, regex):
    if isinstance(doc_val, RE_TYPE):
        return doc_val.pattern == regex.pattern
    return any(
        regex.search(item) for item in _force_list(doc_val)
        if isinstance(item, str))


def _regex_op(doc_val, search_val):
    if doc_val is NOTHING:
        return False
    if not isinstance(search_val, RE_TYPE):
        search_val = re.compile(search_val)
    return _regex(doc_val, search_val)


def _type_op(doc_val, search_val):
    if search_val not in TYPE_MAP:
        raise ValidationError('%r is not a valid $type' % (search_val,))
    if doc_val is NOTHING:
        return False
    if search_val in ('int', 'long', 'number') and isinstance(doc_val, bool):
        return False
    if search_val == 'array':
        return isinstance(doc_val, list)
    return any(isinstance(item, TYPE_MAP[search_val]) for item in _force_list(doc_val))


def _combine_regex_options(search):
    options = search.get('$options', '')
    if not isinstance(options, str):
        raise ValidationError('$options has to be a string')

    flags = 0
    for option in options:
        if option in 'imxs':
            flags |= getattr(re, option.upper())

    search_copy = dict(search)
    search_copy.pop('$options', None)
    pattern = search['$regex']
    if isinstance(pattern, RE_TYPE):
        search_copy['$regex'] = re.compile(pattern.pattern, pattern.flags | flags)
    else:
        search_copy['$regex'] = re.compile(pattern, flags)
    return search_copy


def _compare_objects(op):
    """Wrap an operator so that it only compares values of the same BSON type.

    Arrays in the document are expanded: one matching element is enough.
    """
    def _wrapped(doc_val, search_val):
        if doc_val is NOTHING:
            return False
        if isinstance(doc_val, list) and not isinstance(search_val, list):
            return any(_wrapped(item, search_val) for item in doc_val)
        return bson_compare(op, doc_val, search_val, can_compare_types=False)
    return _wrapped


def bson_compare(op, a, b, can_compare_types=True):
    """Compare two elements using BSON comparison.

    Args:
        op: the basic operation to compare (e.g. operator.lt, operator.ge).
        a: the first operand
        b: the second operand
        can_compare_types: if True, according to BSON's definition order
            between types is used, otherwise always return False when types are
            different.
    """
    a_type = _get_compare_type(a)
    b_type = _get_compare_type(b)
    if a_type != b_type:
        return can_compare_types and op(a_type, b_type)

    if isinstance(a, dict):
        a = [(_get_compare_type(v), k, v) for k, v in a.items()]
        b = [(_get_compare_type(v), k, v) for k, v in b.items()]

    if isinstance(a, (tuple, list)):
        for item_a, item_b in zip(a, b):
            if not equal(item_a, item_b):
                return bson_compare(op, item_a, item_b)
        return bson_compare(op, len(a), len(b))

    if a is None or a is NOTHING:
        return op(0, 0)

    return op(a, b)


def _get_compare_type(val):
    """Get a number representing the base type of the value used for comparison.

    See https://docs.mongodb.com/manual/reference/bson-type-comparison-order/
    """
    if val is None or val is NOTHING:
        return 5
    if isinstance(val, bool):
        return 40
    if isinstance(val, numbers.Number):
        return 10
    if isinstance(val, str):
        return 15
    if isinstance(val, dict):
        return 20
    if isinstance(val, (tuple, list)):
        return 25
    if isinstance(val, bytes):
        return 30
    if isinstance(val, ObjectId):
        return 35
    if isinstance(val, datetime):
        return 45
    if isinstance(val, RE_TYPE):
        return 50
    raise NotImplementedError(
        "mongoportable does not know how to compare '%s' of type '%s'" % (val, type(val)))


SORTING_OPERATOR_MAP = {
    '$gt': operator.gt,
    '$gte': operator.ge,
    '$lt': operator.lt,
    '$lte': operator.le,
}

NEGATIVE_OPERATORS = frozenset(['$ne', '$nin'])

OPERATOR_MAP = dict({
    '$eq': _eq_op,
    '$ne': lambda dv, sv: not _eq_op(dv, sv),
    '$in': _in_op,
    '$nin': lambda dv, sv: not _in_op(dv, sv),
    '$all': _all_op,
    '$exists': _exists_op,
    '$size': _size_op,
    '$elemMatch': _elem_match_op,
    '$regex': _regex_op,
    '$type': _type_op,
}, **{
    key: _compare_objects(op)
    for key, op in SORTING_OPERATOR_MAP.items()
})


LOGICAL_OPERATOR_MAP = {
    '$or': lambda d, subq: any(filter_applies(q, d) for q in subq),
    '$and': lambda d, subq: all(filter_applies(q, d) for q in subq),
    '$nor': lambda d, subq: all(not filter_applies(q, d) for q in subq),
}

TYPE_MAP = {
    'double': (float,),
    'string': (str,),
    'object': (dict,),
    'array': (list,),
    'binData': (bytes,),
    'objectId': (ObjectId,),
    'bool': (bool,),
    'date': (datetime,),
    'null': (NoneType,),
    'regex': (RE_TYPE,),
    'int': (int,),
    'long': (int,),
    'number': (int, float),
}


def resolve_key(key, doc):
    return next(iter(iter_key_candidates(key, doc)), NOTHING)


def resolve_sort_key(key, doc):
    return BsonComparable(resolve_key(key, doc))


class BsonComparable(object):
    """Wraps a value in an BSON like object that can be compared one to another."""

    def __init__(self, obj):
        self.obj = obj

    def __lt__(self, other):
        return bson_compare(operator.lt, self.obj, other.obj)

    def __eq__(self, other):
        return bson_compare(operator.eq, self.obj, other.obj)
