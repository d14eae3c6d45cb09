from unittest import TestCase

from mongoportable import ObjectId
from mongoportable import ValidationError
from mongoportable.helpers import create_sort_list
from mongoportable.helpers import fields_list_to_dict
from mongoportable.helpers import get_value_by_dot
from mongoportable.helpers import is_index
from mongoportable.helpers import is_number
from mongoportable.helpers import normalize_id
from mongoportable.helpers import normalize_selection
from mongoportable.helpers import set_value_by_dot


class DotAccessTest(TestCase):

    def test__get_value_by_dot_missing_key(self):
        """Test get_value_by_dot raises KeyError when looking for a missing key"""
        for doc, key in (
                ({}, 'a'),
                ({'a': 1}, 'b'),
                ({'a': 1}, 'a.b'),
                ({'a': {'b': 1}}, 'a.b.c'),
                ({'a': {'b': 1}}, 'a.c'),
                ({'a': [{'b': 1}]}, 'a.b'),
                ({'a': [{'b': 1}]}, 'a.1.b')):
            self.assertRaises(KeyError, get_value_by_dot, doc, key)

    def test__get_value_by_dot_find_key(self):
        """Test get_value_by_dot when key can be found"""
        for doc, key, expected in (
                ({'a': 1}, 'a', 1),
                ({'a': {'b': 1}}, 'a', {'b': 1}),
                ({'a': {'b': 1}}, 'a.b', 1),
                ({'a': [{'b': 1}]}, 'a.0.b', 1)):
            found = get_value_by_dot(doc, key)
            self.assertEqual(found, expected)

    def test__set_value_by_dot(self):
        """Test set_value_by_dot"""
        for doc, key, expected in (
                ({}, 'a', {'a': 42}),
                ({'a': 1}, 'a', {'a': 42}),
                ({'a': {'b': 1}}, 'a', {'a': 42}),
                ({'a': {'b': 1}}, 'a.b', {'a': {'b': 42}}),
                ({'a': [{'b': 1}]}, 'a.0', {'a': [42]}),
                ({'a': [{'b': 1}]}, 'a.0.b', {'a': [{'b': 42}]})):
            ret = set_value_by_dot(doc, key, 42)
            assert ret is doc
            self.assertEqual(ret, expected)

    def test__set_value_by_dot_bad_key(self):
        """Test set_value_by_dot when key has an invalid parent"""
        for doc, key in (
                ({}, 'a.b'),
                ({'a': 1}, 'a.b'),
                ({'a': ['b']}, 'a.b')):
            self.assertRaises(KeyError, set_value_by_dot, doc, key, 42)


class HelpersTest(TestCase):

    def test__is_number(self):
        self.assertTrue(is_number(3))
        self.assertTrue(is_number(2.5))
        self.assertFalse(is_number(True))
        self.assertFalse(is_number('3'))
        self.assertFalse(is_number(None))

    def test__is_index(self):
        self.assertTrue(is_index('0'))
        self.assertTrue(is_index('12'))
        self.assertFalse(is_index('-1'))
        self.assertFalse(is_index('1a'))
        self.assertFalse(is_index(''))
        self.assertFalse(is_index(1))

    def test__normalize_selection(self):
        oid = ObjectId()
        self.assertEqual({}, normalize_selection(None))
        self.assertEqual({'_id': oid}, normalize_selection(oid))
        self.assertEqual({'_id': 'abc'}, normalize_selection('abc'))
        selection = {'a': 1}
        self.assertIs(selection, normalize_selection(selection))
        with self.assertRaises(ValidationError):
            normalize_selection(5)

    def test__normalize_selection_numeric_id(self):
        selection = {'_id': 5, 'a': 1}
        self.assertEqual({'_id': '5', 'a': 1}, normalize_selection(selection))
        self.assertEqual(5, selection['_id'])
        self.assertEqual({'_id': True}, normalize_selection({'_id': True}))
        self.assertEqual('2.5', normalize_id(2.5))
        self.assertEqual('abc', normalize_id('abc'))

    def test__create_sort_list(self):
        self.assertEqual([('a', 1)], create_sort_list('a'))
        self.assertEqual([('a', -1)], create_sort_list('a', -1))
        self.assertEqual([('a', 1), ('b', -1)], create_sort_list([('a', 1), ('b', -1)]))
        self.assertEqual([('a', -1)], create_sort_list({'a': -1}))
        with self.assertRaises(ValidationError):
            create_sort_list(5)

    def test__fields_list_to_dict(self):
        self.assertEqual({'a': 1, 'b.c': 1}, fields_list_to_dict(['a', 'b.c']))
        with self.assertRaises(ValidationError):
            fields_list_to_dict(['a', 1])
