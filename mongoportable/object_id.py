import binascii
from datetime import datetime, timezone
import numbers
import os
import random
import re
import struct
import threading
import time

from mongoportable import ValidationError

_HEX_RE = re.compile('^[0-9a-fA-F]{24}$')
_COUNTER_MODULO = 0xFFFFFF


class IdentifierConfig(object):
    """Process-wide settings used to build new identifiers.

    The machine id fills bytes 4-6 and the process id bytes 7-8 of every
    generated ObjectId. Both are chosen once, when the module is imported, and
    can be replaced with `configure` to get reproducible identifiers.
    """

    def __init__(self, machine_id=None, process_id=None, counter=0):
        if machine_id is None:
            machine_id = random.randint(0, 0xFFFFFF)
        if process_id is None:
            process_id = os.getpid()
        self.machine_id = machine_id & 0xFFFFFF
        self.process_id = process_id & 0xFFFF
        self._counter = counter % _COUNTER_MODULO
        self._lock = threading.Lock()

    def next_counter(self):
        with self._lock:
            self._counter = (self._counter + 1) % _COUNTER_MODULO
            return self._counter


_config = IdentifierConfig()


def configure(machine_id=None, process_id=None, counter=0):
    """Replace the identifier settings for the whole process."""
    global _config
    _config = IdentifierConfig(machine_id=machine_id, process_id=process_id, counter=counter)
    return _config


def get_config():
    return _config


class ObjectId(object):
    """A 12-byte identifier: 4-byte timestamp, machine, process and counter."""

    def __init__(self, oid=None):
        if oid is None:
            self._id = self._generate()
        elif isinstance(oid, ObjectId):
            self._id = oid.binary
        elif isinstance(oid, bool):
            raise ValidationError('ObjectId can not be built from a boolean')
        elif isinstance(oid, numbers.Real):
            self._id = self._generate(oid)
        elif isinstance(oid, bytes) and len(oid) == 12:
            self._id = oid
        elif isinstance(oid, str) and len(oid) == 24:
            if not _HEX_RE.match(oid):
                raise ValidationError('%r is not a valid 24 character hex string' % oid)
            self._id = binascii.unhexlify(oid)
        else:
            raise ValidationError(
                'Argument passed in must be 12 bytes or a string of 24 hex characters, '
                'not %r' % (oid,))

    @staticmethod
    def _generate(seconds=None):
        if seconds is None:
            seconds = time.time()
        config = _config
        return (struct.pack('>I', int(seconds) & 0xFFFFFFFF) +
                config.machine_id.to_bytes(3, 'big') +
                struct.pack('>H', config.process_id) +
                config.next_counter().to_bytes(3, 'big'))

    @classmethod
    def from_time(cls, seconds):
        """An ObjectId for the given time with every other byte zeroed.

        Only useful for comparisons and range queries on `_id`.
        """
        return cls(struct.pack('>I', int(seconds) & 0xFFFFFFFF) + b'\x00' * 8)

    @classmethod
    def is_valid(cls, oid):
        if not isinstance(oid, (ObjectId, bytes, str)):
            return False
        try:
            cls(oid)
        except ValidationError:
            return False
        return True

    @property
    def binary(self):
        return self._id

    @property
    def generation_time(self):
        return struct.unpack('>I', self._id[:4])[0]

    @generation_time.setter
    def generation_time(self, seconds):
        self._id = struct.pack('>I', int(seconds) & 0xFFFFFFFF) + self._id[4:]

    @property
    def generation_datetime(self):
        return datetime.fromtimestamp(self.generation_time, tz=timezone.utc)

    def equals(self, other):
        """Compare against another ObjectId or its hex representation."""
        if isinstance(other, ObjectId):
            return other.binary == self._id
        if isinstance(other, str) and _HEX_RE.match(other):
            return other.lower() == str(self)
        return False

    def __eq__(self, other):
        return isinstance(other, ObjectId) and other.binary == self._id

    def __ne__(self, other):
        return not self == other

    def __lt__(self, other):
        if not isinstance(other, ObjectId):
            return NotImplemented
        return self._id < other.binary

    def __le__(self, other):
        if not isinstance(other, ObjectId):
            return NotImplemented
        return self._id <= other.binary

    def __gt__(self, other):
        if not isinstance(other, ObjectId):
            return NotImplemented
        return self._id > other.binary

    def __ge__(self, other):
        if not isinstance(other, ObjectId):
            return NotImplemented
        return self._id >= other.binary

    def __hash__(self):
        return hash(self._id)

    def __copy__(self):
        return ObjectId(self._id)

    def __deepcopy__(self, memo):
        return ObjectId(self._id)

    def __repr__(self):
        return "ObjectId('{0}')".format(self)

    def __str__(self):
        return binascii.hexlify(self._id).decode('ascii')
