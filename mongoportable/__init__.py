class PortableMongoError(Exception):
    pass


class ValidationError(PortableMongoError, ValueError):
    pass


class InvalidPathError(PortableMongoError):
    pass


class MissingFieldError(PortableMongoError):
    pass


class InvalidModifierError(PortableMongoError):

    def __init__(self, message, modifier=None):
        super(InvalidModifierError, self).__init__(message)
        self._message = message
        self._modifier = modifier

    modifier = property(lambda self: self._modifier)

    def __str__(self):
        return self._message


class MixedUpdateError(InvalidModifierError):
    pass


class UnsupportedModifierError(InvalidModifierError):
    pass


class AmbiguousRestoreError(PortableMongoError):
    pass


class UnknownBackupError(PortableMongoError):
    pass


class DuplicateKeyError(PortableMongoError):
    pass


class CollectionInvalid(PortableMongoError):
    pass


class InvalidName(PortableMongoError):
    pass


from .object_id import ObjectId  # noqa
from mongoportable.__version__ import __version__


__all__ = [
    '__version__',
    'AmbiguousRestoreError',
    'Collection',
    'CollectionInvalid',
    'Cursor',
    'Database',
    'DuplicateKeyError',
    'EventEmitter',
    'InvalidModifierError',
    'InvalidName',
    'InvalidPathError',
    'MissingFieldError',
    'MixedUpdateError',
    'ObjectId',
    'PortableMongoError',
    'Selector',
    'UnknownBackupError',
    'UnsupportedModifierError',
    'ValidationError',
]


from .collection import Collection
from .cursor import Cursor
from .database import Database
from .events import EventEmitter
from .filtering import Selector
