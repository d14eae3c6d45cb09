import copy
from datetime import datetime, timezone
import struct
from unittest import TestCase

from mongoportable import object_id
from mongoportable import ObjectId
from mongoportable import ValidationError


class ObjectIdTest(TestCase):

    def tearDown(self):
        super(ObjectIdTest, self).tearDown()
        object_id.configure()

    def test__hex_round_trip(self):
        hex_id = '5f1d7a2b3c4d5e6f70819203'
        self.assertEqual(hex_id, str(ObjectId(hex_id)))
        self.assertEqual(hex_id, str(ObjectId(hex_id.upper())))

    def test__binary_round_trip(self):
        oid = ObjectId()
        self.assertEqual(12, len(oid.binary))
        self.assertEqual(oid, ObjectId(oid.binary))
        self.assertEqual(oid, ObjectId(str(oid)))
        self.assertEqual(oid, ObjectId(oid))

    def test__generation_time_from_seconds(self):
        self.assertEqual(1500000000, ObjectId(1500000000).generation_time)
        self.assertEqual(1500000000, ObjectId(1500000000.7).generation_time)

    def test__generation_datetime(self):
        self.assertEqual(
            datetime(1970, 1, 1, 0, 0, 10, tzinfo=timezone.utc),
            ObjectId(10).generation_datetime)

    def test__set_generation_time(self):
        oid = ObjectId(10)
        tail = oid.binary[4:]
        oid.generation_time = 20
        self.assertEqual(20, oid.generation_time)
        self.assertEqual(tail, oid.binary[4:])

    def test__configured_layout(self):
        object_id.configure(machine_id=0xABCDEF, process_id=0x1234, counter=0)
        oid = ObjectId(1)
        self.assertEqual(
            struct.pack('>I', 1) + b'\xab\xcd\xef' + b'\x12\x34' + b'\x00\x00\x01',
            oid.binary)
        self.assertEqual(b'\x00\x00\x02', ObjectId(1).binary[9:])

    def test__counter_wraps(self):
        object_id.configure(machine_id=1, process_id=1, counter=0xFFFFFE)
        self.assertEqual(b'\x00\x00\x00', ObjectId().binary[9:])
        self.assertEqual(b'\x00\x00\x01', ObjectId().binary[9:])

    def test__from_time(self):
        oid = ObjectId.from_time(5)
        self.assertEqual(struct.pack('>I', 5) + b'\x00' * 8, oid.binary)
        self.assertEqual(5, oid.generation_time)

    def test__invalid_values(self):
        for value in ('xyz', 'g' * 24, b'short', True, [], {}):
            with self.assertRaises(ValidationError):
                ObjectId(value)

    def test__is_valid(self):
        self.assertTrue(ObjectId.is_valid('5f1d7a2b3c4d5e6f70819203'))
        self.assertTrue(ObjectId.is_valid(ObjectId()))
        self.assertTrue(ObjectId.is_valid(b'a' * 12))
        self.assertFalse(ObjectId.is_valid('nope'))
        self.assertFalse(ObjectId.is_valid(None))
        self.assertFalse(ObjectId.is_valid(12345))

    def test__equals(self):
        oid = ObjectId()
        self.assertTrue(oid.equals(str(oid)))
        self.assertTrue(oid.equals(str(oid).upper()))
        self.assertTrue(oid.equals(ObjectId(str(oid))))
        self.assertFalse(oid.equals('zz'))
        self.assertNotEqual(oid, str(oid))

    def test__hash_and_copy(self):
        oid = ObjectId()
        self.assertEqual(1, {oid: 1}[ObjectId(str(oid))])
        copied = copy.deepcopy(oid)
        self.assertEqual(oid, copied)
        self.assertIsNot(oid, copied)

    def test__ordering(self):
        self.assertLess(ObjectId(1), ObjectId(2))
        self.assertGreater(ObjectId(3), ObjectId.from_time(3))

    def test__repr(self):
        hex_id = '5f1d7a2b3c4d5e6f70819203'
        self.assertEqual("ObjectId('%s')" % hex_id, repr(ObjectId(hex_id)))
