import logging

from mongoportable import CollectionInvalid
from mongoportable import store
from mongoportable.collection import check_collection_name
from mongoportable.collection import Collection
from mongoportable.events import EventEmitter

logger = logging.getLogger(__name__)


class Database(object):
    """A named set of collections sharing one event emitter.

    `update_as_mongo` is the default for `Collection.update`: when it is
    disabled, updates are not checked against the MongoDB rules and plain
    keys only overwrite existing fields.
    """

    def __init__(self, name, update_as_mongo=True, _store=None):
        self.name = name
        self.update_as_mongo = update_as_mongo
        self._collection_accesses = {}
        self._store = _store or store.DatabaseStore()
        self._emitter = EventEmitter()

    def __getitem__(self, coll_name):
        return self.get_collection(coll_name)

    def __getattr__(self, attr):
        if attr.startswith('_'):
            raise AttributeError(
                "%s has no attribute '%s'. To access the %s collection, use database['%s']." %
                (self.__class__.__name__, attr, attr, attr))
        return self[attr]

    def __repr__(self):
        return "Database('{0}')".format(self.name)

    def on(self, event, callback):
        return self._emitter.on(event, callback)

    def off(self, event, callback=None):
        self._emitter.off(event, callback)

    def emit(self, event, payload):
        self._emitter.emit(event, payload)

    def list_collection_names(self):
        return self._store.list_collection_names()

    def get_collection(self, name):
        try:
            return self._collection_accesses[name]
        except KeyError:
            check_collection_name(name)
            logger.debug('Creating collection %s.%s', self.name, name)
            collection = self._collection_accesses[name] = Collection(
                self, name=name, _db_store=self._store)
            # Touch the store so that the collection is listed.
            self._store[name]
            return collection

    def create_collection(self, name):
        check_collection_name(name)
        if name in self._store:
            raise CollectionInvalid('collection %s already exists' % name)
        return self.get_collection(name)

    def drop_collection(self, name_or_collection):
        if isinstance(name_or_collection, Collection):
            name = name_or_collection.name
        else:
            name = name_or_collection
        if name not in self._store:
            return False
        self.get_collection(name).drop()
        self._store.drop(name)
        self._collection_accesses.pop(name, None)
        logger.debug('Dropped collection %s.%s', self.name, name)
        return True

    def rename_collection(self, name, new_name):
        """Changes the name of an existing collection."""
        check_collection_name(new_name)
        if name not in self._store:
            raise CollectionInvalid('The collection "{0}" does not exist.'.format(name))
        if new_name in self._store:
            raise CollectionInvalid('The target collection "{0}" already exists'.format(new_name))

        self._store.rename(name, new_name)
        collection = self._collection_accesses.pop(name, None)
        if collection is None:
            collection = Collection(self, name=new_name, _db_store=self._store)
        else:
            collection._name = new_name
        self._collection_accesses[new_name] = collection
        return collection
