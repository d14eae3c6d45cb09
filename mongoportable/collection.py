import copy
import logging
import re
import warnings

from mongoportable import aggregate
from mongoportable import AmbiguousRestoreError
from mongoportable import DuplicateKeyError
from mongoportable import helpers
from mongoportable import InvalidName
from mongoportable import ObjectId
from mongoportable import UnknownBackupError
from mongoportable import updating
from mongoportable import ValidationError
from mongoportable.cursor import Cursor
from mongoportable.filtering import Selector
from mongoportable.modifiers import Modifier
from mongoportable.modifiers import modify

logger = logging.getLogger(__name__)

_SPECIAL_NAME_RE = re.compile(r'^\$cmd|oplog\.\$main')


def check_collection_name(name):
    """Raise InvalidName unless `name` can be used for a collection."""
    if not isinstance(name, str):
        raise InvalidName('collection name must be an instance of str')
    if not name or '..' in name:
        raise InvalidName('collection names cannot be empty')
    if '$' in name and not _SPECIAL_NAME_RE.search(name):
        raise InvalidName("collection names must not contain '$'")
    if name.startswith('system.'):
        raise InvalidName("collection names must not start with 'system.'")
    if name[0] == '.' or name[-1] == '.':
        raise InvalidName("collection names must not start or end with '.'")


def _normalize_id(doc_id):
    doc_id = helpers.normalize_id(doc_id)
    if isinstance(doc_id, ObjectId) or (isinstance(doc_id, str) and doc_id):
        return doc_id
    return ObjectId()


def _upsert_seed(selection):
    """Build the document an upserting operator update starts from.

    Only plain equality conditions of the selection are kept, dotted ones
    are expanded into nested documents.
    """
    seed = {}
    for key, value in selection.items():
        if updating.is_operator(key):
            continue
        if isinstance(value, dict) and any(updating.is_operator(k) for k in value):
            continue
        modify(seed, key.split('.'), value, Modifier.SET)
    return seed


def _update_result(updated=None, inserted=None):
    return {
        'updated': {
            'documents': updated,
            'count': len(updated) if updated else 0,
        },
        'inserted': {
            'documents': inserted,
            'count': len(inserted) if inserted else 0,
        },
    }


class Collection(object):

    def __init__(self, database, name, _db_store):
        self.database = database
        self._name = name
        self._db_store = _db_store

    def __repr__(self):
        return "Collection({0}, '{1}')".format(self.database, self.name)

    @property
    def full_name(self):
        return '{0}.{1}'.format(self.database.name, self._name)

    @property
    def name(self):
        return self._name

    @property
    def _store(self):
        return self._db_store[self._name]

    def _emit(self, event, **payload):
        payload['collection'] = self
        self.database.emit(event, payload)

    def insert(self, doc):
        """Store a copy of `doc` and return the stored version.

        The stored document always has an `_id` and a `timestamp`.
        """
        if doc is None or not isinstance(doc, dict):
            raise ValidationError('doc must be an instance of dict')
        if not all(isinstance(k, str) for k in doc):
            raise ValidationError('Document keys must be strings')

        doc = copy.deepcopy(doc)
        doc['_id'] = _normalize_id(doc.get('_id'))

        store = self._store
        with store.lock:
            if doc['_id'] in store:
                raise DuplicateKeyError('E11000 Duplicate Key Error: %s' % (doc['_id'],))
            doc['timestamp'] = ObjectId().generation_time
            store.append(doc)

        self._emit('insert', doc=copy.deepcopy(doc))
        return copy.deepcopy(doc)

    def bulk_insert(self, docs):
        if not isinstance(docs, list):
            raise ValidationError('docs must be an instance of list')
        return [self.insert(doc) for doc in docs]

    def find(self, selection=None, fields=None, skip=0, limit=0, sort=None,
             do_not_fetch=False):
        selection = helpers.normalize_selection(selection)
        fields = fields or {}
        cursor = Cursor(self._store.documents, selection, fields,
                        skip=skip, limit=limit, sort=sort)
        self._emit('find', selector=selection, fields=fields)
        if do_not_fetch:
            return cursor
        return cursor.fetch()

    def find_one(self, selection=None, fields=None, skip=0, sort=None):
        selection = helpers.normalize_selection(selection)
        fields = fields or {}
        cursor = Cursor(self._store.documents, selection, fields,
                        skip=skip, limit=1, sort=sort)
        self._emit('findOne', selector=selection, fields=fields)
        if not cursor.has_next():
            return None
        return cursor.next()

    def update(self, selection, update, upsert=False, multi=False,
               update_as_mongo=None, override=False):
        """Update the documents matching `selection`.

        Only the first match is updated unless `multi` is set. With `upsert`
        and no match, a new document is inserted instead. Returns a dict
        with the `updated` and `inserted` documents and counts.
        """
        if update is None or not isinstance(update, dict):
            raise ValidationError('update must be an instance of dict')
        selection = helpers.normalize_selection(selection)
        if update_as_mongo is None:
            update_as_mongo = self.database.update_as_mongo

        is_replacement = updating.classify_update(
            update, update_as_mongo=update_as_mongo, override=override, multi=multi)
        selector = Selector(selection)

        store = self._store
        updated = []
        with store.lock:
            targets = [doc for doc in store.documents if selector.test(doc)]
            if not multi:
                targets = targets[:1]
            for target in targets:
                new_doc = updating.apply_update(
                    target, update, update_as_mongo=update_as_mongo, override=override)
                store.replace(new_doc)
                updated.append(copy.deepcopy(new_doc))

        if updated:
            self._emit('update', selector=selection, modifier=update, docs=updated)
            return _update_result(updated=updated)

        if not upsert:
            return _update_result()
        if is_replacement:
            new_doc = update
        else:
            new_doc = updating.apply_update(
                _upsert_seed(selection), update,
                update_as_mongo=update_as_mongo, override=override)
        return _update_result(inserted=[self.insert(new_doc)])

    def save(self, doc):
        if doc is None or not isinstance(doc, dict):
            raise ValidationError('doc must be an instance of dict')
        if '_id' not in doc:
            return self.insert(doc)
        doc = dict(doc, _id=helpers.normalize_id(doc['_id']))
        return self.update({'_id': doc['_id']}, doc, upsert=True)

    def remove(self, selection=None, just_one=False):
        """Remove the matching documents and return them.

        An empty selection without `just_one` drops every document.
        """
        selection = helpers.normalize_selection(selection)
        if not selection and not just_one:
            return self.drop()

        selector = Selector(selection)
        store = self._store
        with store.lock:
            doomed = [doc['_id'] for doc in store.documents if selector.test(doc)]
            if just_one:
                doomed = doomed[:1]
            removed = store.remove(doomed)

        self._emit('remove', selector=selection, docs=removed)
        return removed

    def delete(self, selection=None, just_one=False):
        warnings.warn('delete is deprecated. Use remove instead.',
                      DeprecationWarning, stacklevel=2)
        return self.remove(selection, just_one=just_one)

    def destroy(self, selection=None, just_one=False):
        warnings.warn('destroy is deprecated. Use remove instead.',
                      DeprecationWarning, stacklevel=2)
        return self.remove(selection, just_one=just_one)

    def drop(self, drop_indexes=False):
        store = self._store
        with store.lock:
            documents = store.drop()
        logger.debug('Dropped %d document(s) from %s', len(documents), self.full_name)
        self._emit('dropCollection', indexes=bool(drop_indexes))
        return documents

    def count(self, selection=None):
        selector = Selector(helpers.normalize_selection(selection))
        return sum(1 for doc in self._store.documents if selector.test(doc))

    def backup(self, backup_id=None):
        """Snapshot the documents of the collection under `backup_id`."""
        if backup_id is None:
            backup_id = str(ObjectId())
        snapshot = self._store.snapshot(backup_id)
        self._emit('snapshot', backup_id=backup_id, documents=copy.deepcopy(snapshot))
        return {'backup_id': backup_id, 'documents': copy.deepcopy(snapshot)}

    def backups(self):
        return [
            {'id': backup_id, 'documents': copy.deepcopy(documents)}
            for backup_id, documents in self._store.snapshots.items()
        ]

    def remove_backup(self, backup_id):
        if backup_id is None:
            raise ValidationError('backup_id required')
        if backup_id not in self._store.snapshots:
            raise UnknownBackupError('Unknown backup %s' % (backup_id,))
        del self._store.snapshots[backup_id]
        return backup_id

    def clear_backups(self):
        self._store.snapshots.clear()

    def restore(self, backup_id=None):
        """Bring the documents back to the state of a snapshot.

        The snapshot is kept, so it can be restored again later.
        """
        store = self._store
        with store.lock:
            if not store.snapshots:
                raise UnknownBackupError('There is no backup to restore')
            if backup_id is None:
                if len(store.snapshots) > 1:
                    raise AmbiguousRestoreError(
                        'No backup_id given and the collection has several backups')
                backup_id = next(iter(store.snapshots))
                logger.info('No backup_id given, restoring the only backup %s', backup_id)
            elif backup_id not in store.snapshots:
                raise UnknownBackupError('Unknown backup %s' % (backup_id,))
            store.restore(backup_id)

        self._emit('restore', backup_id=backup_id)
        return backup_id

    def aggregate(self, pipeline):
        if not isinstance(pipeline, list):
            raise ValidationError('pipeline must be an instance of list')
        in_collection = copy.deepcopy(self._store.documents)
        return aggregate.process_pipeline(in_collection, self.database, pipeline)

    def rename(self, new_name):
        if new_name != self._name:
            self.database.rename_collection(self._name, new_name)
        return self

    def ensure_index(self, *unused_args, **unused_kwargs):
        raise NotImplementedError('Indexes are not supported by mongoportable')
