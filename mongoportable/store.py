import copy
import threading


class DatabaseStore(object):
    """Object holding the data for a database (many collections)."""

    def __init__(self):
        self._collections = {}

    def __getitem__(self, col_name):
        try:
            return self._collections[col_name]
        except KeyError:
            col = self._collections[col_name] = CollectionStore(col_name)
            return col

    def __contains__(self, col_name):
        return col_name in self._collections

    def list_collection_names(self):
        return list(self._collections)

    def rename(self, name, new_name):
        col = self._collections.pop(name, None) or CollectionStore(new_name)
        col.name = new_name
        self._collections[new_name] = col

    def drop(self, name):
        col = self._collections.pop(name, None)
        if col is not None:
            col.drop()


class CollectionStore(object):
    """Object holding the data for a collection.

    Documents are kept in insertion order. `indexes` maps the string form of
    each `_id` to its position in `documents`; every mutation below keeps it
    in step with the list. All mutations are expected to run while holding
    `lock`.
    """

    def __init__(self, name):
        self.name = name
        self.lock = threading.RLock()
        self._documents = []
        self._indexes = {}
        self.snapshots = {}

    @property
    def documents(self):
        return self._documents

    @property
    def indexes(self):
        return dict(self._indexes)

    def __len__(self):
        return len(self._documents)

    def __contains__(self, doc_id):
        return str(doc_id) in self._indexes

    def __getitem__(self, doc_id):
        return self._documents[self._indexes[str(doc_id)]]

    def index_of(self, doc_id):
        return self._indexes[str(doc_id)]

    @property
    def is_empty(self):
        return not self._documents

    def append(self, document):
        with self.lock:
            self._indexes[str(document['_id'])] = len(self._documents)
            self._documents.append(document)

    def replace(self, document):
        """Swap the stored document sharing the `_id` of `document`."""
        with self.lock:
            self._documents[self._indexes[str(document['_id'])]] = document

    def remove(self, doc_ids):
        """Remove the documents with the given ids and return them in store order."""
        with self.lock:
            doomed = set(str(doc_id) for doc_id in doc_ids)
            removed = [doc for doc in self._documents if str(doc['_id']) in doomed]
            self._documents = [doc for doc in self._documents if str(doc['_id']) not in doomed]
            self._reindex()
            return removed

    def drop(self):
        with self.lock:
            documents = self._documents
            self._documents = []
            self._indexes = {}
            return documents

    def snapshot(self, backup_id):
        with self.lock:
            self.snapshots[backup_id] = copy.deepcopy(self._documents)
            return self.snapshots[backup_id]

    def restore(self, backup_id):
        with self.lock:
            self._documents = copy.deepcopy(self.snapshots[backup_id])
            self._reindex()

    def _reindex(self):
        self._indexes = {
            str(doc['_id']): position for position, doc in enumerate(self._documents)
        }
