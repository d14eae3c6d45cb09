from collections import OrderedDict
import copy

from sentinels import NOTHING

from mongoportable import ValidationError
from mongoportable import helpers
from mongoportable.filtering import Selector
from mongoportable.filtering import iter_key_candidates
from mongoportable.filtering import resolve_sort_key


def _combine_projection_spec(projection_fields_spec):
    """Re-format a projection fields spec into a nested dictionary.

    e.g: {'a': 1, 'b.c': 1, 'b.d': 1} => {'a': 1, 'b': {'c': 1, 'd': 1}}
    """

    tmp_spec = OrderedDict()
    for f, v in projection_fields_spec.items():
        if '.' not in f:
            if isinstance(tmp_spec.get(f), dict) and not v:
                raise NotImplementedError(
                    'mongoportable does not support overriding excluding projection: %s' %
                    projection_fields_spec)
            tmp_spec[f] = v
        else:
            base_field, new_field = f.split('.', 1)
            if not isinstance(tmp_spec.get(base_field), dict):
                tmp_spec[base_field] = OrderedDict()
            tmp_spec[base_field][new_field] = v

    combined_spec = OrderedDict()
    for f, v in tmp_spec.items():
        if isinstance(v, dict):
            combined_spec[f] = _combine_projection_spec(v)
        else:
            combined_spec[f] = v

    return combined_spec


def _project_by_spec(doc, combined_projection_spec, is_include):
    if is_include:
        doc_copy = {}
    else:
        doc_copy = copy.deepcopy(doc)

    for key, spec in combined_projection_spec.items():
        if key not in doc:
            continue

        if isinstance(spec, dict):
            sub = doc[key]
            if isinstance(sub, list):
                doc_copy[key] = [_project_by_spec(sub_doc, spec, is_include)
                                 for sub_doc in sub if isinstance(sub_doc, dict)]
            elif isinstance(sub, dict):
                doc_copy[key] = _project_by_spec(sub, spec, is_include)
        elif is_include:
            doc_copy[key] = copy.deepcopy(doc[key])
        else:
            doc_copy.pop(key, None)

    return doc_copy


def project(doc, fields):
    """Copy `doc`, keeping only what the `fields` projection asks for.

    An empty projection keeps the whole document. `_id` is kept unless it is
    explicitly excluded.
    """
    if not fields:
        return copy.deepcopy(doc)
    if not isinstance(fields, dict):
        fields = helpers.fields_list_to_dict(fields)

    fields = dict(fields)
    id_value = fields.pop('_id', 1)
    for value in fields.values():
        if isinstance(value, dict):
            raise NotImplementedError('Projection operators are not supported: %r' % value)

    if len(set(bool(v) for v in fields.values())) > 1:
        raise ValidationError('You cannot currently mix including and excluding fields.')

    if not fields:
        doc_copy = {} if id_value else copy.deepcopy(doc)
    else:
        doc_copy = _project_by_spec(
            doc, _combine_projection_spec(fields), is_include=bool(list(fields.values())[0]))

    if not id_value:
        doc_copy.pop('_id', None)
    elif '_id' in doc:
        doc_copy['_id'] = copy.deepcopy(doc['_id'])

    return doc_copy


class Cursor(object):
    """Iterates over the documents of a collection matching a selection.

    Results are computed on first access from the document list given at
    construction; each returned document is a copy.
    """

    def __init__(self, documents, selection=None, fields=None, skip=0, limit=0, sort=None):
        super(Cursor, self).__init__()
        self._documents = documents
        if isinstance(selection, Selector):
            self._selector = selection
        else:
            self._selector = Selector(selection)
        self._fields = fields
        self._skip = skip or 0
        self._limit = None
        self._sort = None
        self._results = None
        self.limit(limit)
        if sort:
            self.sort(sort)
        self.rewind()

    @property
    def selector(self):
        return self._selector

    def _compute_results(self, with_limit_and_skip=True):
        if self._results is None:
            dataset = [doc for doc in self._documents if self._selector.test(doc)]
            for sort_key, sort_direction in reversed(self._sort or []):
                if sort_key == '$natural':
                    if sort_direction < 0:
                        dataset.reverse()
                    continue
                dataset = sorted(
                    dataset, key=lambda doc, key=sort_key: resolve_sort_key(key, doc),
                    reverse=sort_direction < 0)
            self._results = dataset
        if not with_limit_and_skip:
            return self._results
        results = self._results[self._skip:]
        if self._limit is not None:
            results = results[:self._limit]
        return results

    def __iter__(self):
        return self

    def __next__(self):
        results = self._compute_results()
        if self._emitted >= len(results):
            raise StopIteration()
        doc = results[self._emitted]
        self._emitted += 1
        return project(doc, self._fields)

    def next(self):
        return self.__next__()

    def has_next(self):
        return self._emitted < len(self._compute_results())

    def fetch(self):
        """Return every document not emitted yet."""
        return list(self)

    def for_each(self, callback):
        for doc in self:
            callback(doc)

    def rewind(self):
        self._emitted = 0
        return self

    def clone(self):
        return Cursor(self._documents, self._selector, self._fields,
                      self._skip, self._limit, self._sort)

    def sort(self, key_or_list, direction=None):
        self._sort = helpers.create_sort_list(key_or_list, direction)
        self._results = None
        return self

    def skip(self, count):
        self._skip = count
        return self

    def limit(self, count):
        # 0, None and negative values all mean no limit.
        self._limit = count if count and count > 0 else None
        return self

    def count(self, with_limit_and_skip=False):
        return len(self._compute_results(with_limit_and_skip))

    def distinct(self, key):
        if not isinstance(key, str):
            raise ValidationError('cursor.distinct key must be a string')
        unique = []
        for doc in self._compute_results():
            for value in iter_key_candidates(key, doc):
                if value is NOTHING:
                    continue
                for item in value if isinstance(value, list) else [value]:
                    if item not in unique:
                        unique.append(item)
        return unique

    def __getitem__(self, index):
        if not isinstance(index, int):
            raise TypeError("index '%s' cannot be applied to Cursor instances" % index)
        if index < 0:
            raise IndexError('Cursor instances do not support negative indices')
        return project(self._compute_results()[index], self._fields)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        pass

    @property
    def alive(self):
        return self.has_next()
