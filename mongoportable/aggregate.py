"""Module to handle the operations within the aggregate pipeline."""

import copy
import functools
import itertools
import numbers

from mongoportable import filtering
from mongoportable import helpers
from mongoportable import ValidationError
from mongoportable.cursor import project


arithmetic_operators = [
    '$add',
    '$divide',
    '$multiply',
    '$subtract',
]
string_operators = [
    '$concat',
    '$toLower',
    '$toUpper',
]


def _avg_operation(values):
    values_list = list(v for v in values if helpers.is_number(v))
    if not values_list:
        return None
    return sum(values_list) / float(len(values_list))


def _group_operation(values, operator):
    values_list = list(v for v in values if v is not None)
    if not values_list:
        return None
    return operator(values_list, key=filtering.BsonComparable)


_GROUPING_OPERATOR_MAP = {
    '$sum': lambda values: sum(v for v in values if helpers.is_number(v)),
    '$avg': _avg_operation,
    '$min': lambda values: _group_operation(values, min),
    '$max': lambda values: _group_operation(values, max),
}


class _Parser(object):
    """Evaluate aggregation expressions against one document."""

    def __init__(self, doc_dict):
        self._doc_dict = doc_dict

    def parse(self, expression):
        if isinstance(expression, str) and expression.startswith('$'):
            return helpers.get_value_by_dot(self._doc_dict, expression[1:])
        if isinstance(expression, dict):
            return self._parse_dict(expression)
        if isinstance(expression, list):
            return [self.parse(item) for item in expression]
        return expression

    def _parse_dict(self, expression):
        operators = [k for k in expression if k.startswith('$')]
        if not operators:
            return {key: self.parse(value) for key, value in expression.items()}
        if len(expression) > 1:
            raise ValidationError(
                'An expression specification must contain exactly one operator: %s' % expression)

        operator, values = next(iter(expression.items()))
        if operator == '$literal':
            return values
        if operator in arithmetic_operators:
            return self._handle_arithmetic_operator(operator, values)
        if operator in string_operators:
            return self._handle_string_operator(operator, values)
        raise NotImplementedError(
            "Although '%s' may be a valid expression operator for the aggregation "
            'pipeline, it is currently not implemented in mongoportable.' % operator)

    def _handle_arithmetic_operator(self, operator, values):
        if not isinstance(values, list):
            values = [values]
        parsed = [self.parse(value) for value in values]
        if not all(helpers.is_number(value) for value in parsed):
            raise ValidationError('%s only supports numeric types: %r' % (operator, parsed))
        if operator == '$add':
            return sum(parsed)
        if operator == '$multiply':
            return functools.reduce(lambda x, y: x * y, parsed, 1)
        if len(parsed) != 2:
            raise ValidationError('%s takes exactly 2 arguments' % operator)
        if operator == '$subtract':
            return parsed[0] - parsed[1]
        if parsed[1] == 0:
            raise ValidationError("can't %s by zero" % operator[1:])
        return parsed[0] / parsed[1]

    def _handle_string_operator(self, operator, values):
        if operator == '$concat':
            parsed = [self.parse(value) for value in values]
            if any(value is None for value in parsed):
                return None
            return ''.join(parsed)
        parsed = self.parse(values[0] if isinstance(values, list) else values)
        if parsed is None:
            return ''
        if operator == '$toLower':
            return str(parsed).lower()
        return str(parsed).upper()


def _parse_expression(expression, doc_dict):
    """Parse an expression."""
    return _Parser(doc_dict).parse(expression)


def _accumulate_group(output_fields, group_list):
    doc_dict = {}
    for field, value in output_fields.items():
        if field == '_id':
            continue
        for operator, key in value.items():
            values = []
            for doc in group_list:
                try:
                    values.append(_parse_expression(key, doc))
                except KeyError:
                    values.append(None)
            if operator in _GROUPING_OPERATOR_MAP:
                doc_dict[field] = _GROUPING_OPERATOR_MAP[operator](values)
            elif operator == '$first':
                doc_dict[field] = values[0]
            elif operator == '$last':
                doc_dict[field] = values[-1]
            elif operator == '$addToSet':
                unique = []
                # Don't use set in case elt in not hashable (like dicts).
                for elt in values:
                    if not any(filtering.equal(elt, seen) for seen in unique):
                        unique.append(elt)
                doc_dict[field] = unique
            elif operator == '$push':
                doc_dict.setdefault(field, []).extend(values)
            else:
                raise NotImplementedError(
                    '%s is not a valid group operator for the aggregation '
                    'pipeline.' % operator)
    return doc_dict


def _handle_group_stage(in_collection, unused_database, options):
    if '_id' not in options:
        raise ValidationError('a group specification must include an _id')
    grouped_collection = []
    _id = options['_id']
    if _id:

        def _key_getter(doc):
            try:
                return _parse_expression(_id, doc)
            except KeyError:
                return None

        def _sort_key_getter(doc):
            return filtering.BsonComparable(_key_getter(doc))

        # Sort the collection only for the itertools.groupby.
        # $group does not order its output document.
        sorted_collection = sorted(in_collection, key=_sort_key_getter)
        grouped = itertools.groupby(sorted_collection, _key_getter)
    else:
        grouped = [(None, in_collection)]

    for doc_id, group in grouped:
        group_list = list(group)
        doc_dict = _accumulate_group(options, group_list)
        doc_dict['_id'] = doc_id
        grouped_collection.append(doc_dict)

    return grouped_collection


def _handle_lookup_stage(in_collection, database, options):
    for operator in ('from', 'localField', 'foreignField', 'as'):
        if operator not in options:
            raise ValidationError("Must specify '%s' field for a $lookup" % operator)
        if not isinstance(options[operator], str):
            raise ValidationError('Arguments to $lookup must be strings')

    foreign_collection = database.get_collection(options['from'])
    for doc in in_collection:
        query = doc.get(options['localField'])
        if isinstance(query, list):
            query = {'$in': query}
        doc[options['as']] = foreign_collection.find({options['foreignField']: query})

    return in_collection


def _handle_sort_stage(in_collection, unused_database, options):
    sorted_collection = in_collection
    for sort_key, sort_direction in reversed(list(options.items())):
        sorted_collection = sorted(
            sorted_collection,
            key=lambda x, key=sort_key: filtering.resolve_sort_key(key, x),
            reverse=sort_direction < 0)
    return sorted_collection


def _handle_unwind_stage(in_collection, unused_database, options):
    if not isinstance(options, dict):
        options = {'path': options}
    path = options['path']
    if not isinstance(path, str) or path[0] != '$':
        raise ValidationError(
            '$unwind failed: exception: field path references must be prefixed '
            "with a '$' '%s'" % path)
    path = path[1:]
    should_preserve_null_and_empty = options.get('preserveNullAndEmptyArrays')
    unwound_collection = []
    for doc in in_collection:
        try:
            array_value = helpers.get_value_by_dot(doc, path)
        except KeyError:
            if should_preserve_null_and_empty:
                unwound_collection.append(doc)
            continue
        if array_value is None or array_value == []:
            if should_preserve_null_and_empty:
                unwound_collection.append(doc)
            continue
        if not isinstance(array_value, list):
            array_value = [array_value]
        for field_item in array_value:
            new_doc = copy.deepcopy(doc)
            unwound_collection.append(helpers.set_value_by_dot(new_doc, path, field_item))

    return unwound_collection


def _handle_project_stage(in_collection, unused_database, options):
    plain = {}
    computed = {}
    for field, value in options.items():
        if isinstance(value, bool) or value in (0, 1):
            plain[field] = value
        else:
            computed[field] = value

    includes_fields = any(value for field, value in plain.items() if field != '_id')
    out_collection = []
    for doc in in_collection:
        if includes_fields or not computed:
            out_doc = project(doc, plain)
        else:
            # Only computed fields: start from an empty document.
            out_doc = {}
            if plain.get('_id', 1) and '_id' in doc:
                out_doc['_id'] = doc['_id']
        for field, expression in computed.items():
            try:
                out_doc[field] = _parse_expression(expression, doc)
            except KeyError:
                pass
        out_collection.append(out_doc)
    return out_collection


def _handle_count_stage(in_collection, unused_database, options):
    if not isinstance(options, str) or options == '':
        raise ValidationError('the count field must be a non-empty string')
    elif options.startswith('$'):
        raise ValidationError('the count field cannot be a $-prefixed path')
    elif '.' in options:
        raise ValidationError("the count field cannot contain '.'")
    return [{options: len(in_collection)}]


def _handle_match_stage(in_collection, unused_database, options):
    selector = filtering.Selector(options)
    return [doc for doc in in_collection if selector.test(doc)]


def _check_positive_integer(stage, value):
    if not isinstance(value, numbers.Integral) or isinstance(value, bool) or value < 0:
        raise ValidationError('the %s stage must be given a non-negative integer' % stage)


def _handle_limit_stage(in_collection, unused_database, options):
    _check_positive_integer('$limit', options)
    return in_collection[:options]


def _handle_skip_stage(in_collection, unused_database, options):
    _check_positive_integer('$skip', options)
    return in_collection[options:]


_PIPELINE_HANDLERS = {
    '$count': _handle_count_stage,
    '$group': _handle_group_stage,
    '$limit': _handle_limit_stage,
    '$lookup': _handle_lookup_stage,
    '$match': _handle_match_stage,
    '$project': _handle_project_stage,
    '$skip': _handle_skip_stage,
    '$sort': _handle_sort_stage,
    '$unwind': _handle_unwind_stage,
}


def process_pipeline(collection, database, pipeline):
    """Run each stage of `pipeline` over the `collection` documents in turn."""
    for stage in pipeline:
        if not isinstance(stage, dict) or len(stage) != 1:
            raise ValidationError(
                'A pipeline stage specification object must contain exactly one field.')
        for operator, options in stage.items():
            if not isinstance(operator, str) or not operator.startswith('$'):
                raise ValidationError("The pipeline stages must begin with '$'")
            try:
                handler = _PIPELINE_HANDLERS[operator]
            except KeyError:
                raise ValidationError('Invalid stage "%s"' % operator)
            collection = handler(collection, database, options)

    return collection
