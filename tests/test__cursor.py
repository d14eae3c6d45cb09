from unittest import TestCase

from mongoportable import Cursor
from mongoportable import ValidationError
from mongoportable.cursor import project


class ProjectTest(TestCase):

    def setUp(self):
        super(ProjectTest, self).setUp()
        self.doc = {'_id': 1, 'a': 1, 'b': {'c': 2, 'd': 3}, 'e': [{'f': 1, 'g': 2}]}

    def test__empty_projection(self):
        projected = project(self.doc, {})
        self.assertEqual(self.doc, projected)
        self.assertIsNot(self.doc['b'], projected['b'])

    def test__include(self):
        self.assertEqual({'_id': 1, 'a': 1}, project(self.doc, {'a': 1}))
        self.assertEqual({'_id': 1, 'a': 1}, project(self.doc, ['a']))
        self.assertEqual({'_id': 1, 'b': {'c': 2}}, project(self.doc, {'b.c': 1}))
        self.assertEqual({'_id': 1, 'e': [{'g': 2}]}, project(self.doc, {'e.g': 1}))

    def test__exclude(self):
        self.assertEqual(
            {'_id': 1, 'b': {'c': 2, 'd': 3}, 'e': [{'f': 1, 'g': 2}]},
            project(self.doc, {'a': 0}))
        self.assertEqual(
            {'_id': 1, 'a': 1, 'b': {'d': 3}, 'e': [{'f': 1, 'g': 2}]},
            project(self.doc, {'b.c': 0}))

    def test__id(self):
        self.assertEqual({'a': 1}, project(self.doc, {'a': 1, '_id': 0}))
        self.assertEqual({'_id': 1}, project(self.doc, {'_id': 1}))
        projected = project(self.doc, {'_id': 0})
        self.assertNotIn('_id', projected)
        self.assertEqual(1, projected['a'])

    def test__invalid(self):
        with self.assertRaises(ValidationError):
            project(self.doc, {'a': 1, 'b': 0})
        with self.assertRaises(NotImplementedError):
            project(self.doc, {'e': {'$slice': 1}})


class CursorTest(TestCase):

    def setUp(self):
        super(CursorTest, self).setUp()
        self.documents = [
            {'_id': 1, 'name': 'b', 'age': 30, 'tags': ['x', 'y']},
            {'_id': 2, 'name': 'a', 'age': 20, 'tags': ['y']},
            {'_id': 3, 'name': 'c', 'age': 30},
            {'_id': 4, 'name': 'd', 'age': 10, 'tags': ['z']},
        ]

    def _ids(self, docs):
        return [doc['_id'] for doc in docs]

    def test__fetch(self):
        cursor = Cursor(self.documents, {'age': 30})
        self.assertEqual([1, 3], self._ids(cursor.fetch()))
        self.assertEqual([], cursor.fetch())

    def test__iteration_returns_copies(self):
        cursor = Cursor(self.documents)
        doc = next(cursor)
        doc['name'] = 'changed'
        self.assertEqual('b', self.documents[0]['name'])

    def test__next_and_rewind(self):
        cursor = Cursor(self.documents, {'age': {'$lt': 25}})
        self.assertTrue(cursor.has_next())
        self.assertEqual(2, cursor.next()['_id'])
        self.assertEqual(4, cursor.next()['_id'])
        self.assertFalse(cursor.has_next())
        self.assertFalse(cursor.alive)
        with self.assertRaises(StopIteration):
            cursor.next()
        cursor.rewind()
        self.assertEqual([2, 4], self._ids(cursor))

    def test__for_each(self):
        seen = []
        Cursor(self.documents).for_each(lambda doc: seen.append(doc['_id']))
        self.assertEqual([1, 2, 3, 4], seen)

    def test__skip_and_limit(self):
        self.assertEqual([2, 3], self._ids(Cursor(self.documents, skip=1, limit=2)))
        self.assertEqual([3, 4], self._ids(Cursor(self.documents).skip(2)))
        self.assertEqual([1], self._ids(Cursor(self.documents).limit(1)))

    def test__unbounded_limits(self):
        for limit in (0, -1, None):
            self.assertEqual(4, len(Cursor(self.documents, limit=limit).fetch()))

    def test__sort(self):
        self.assertEqual([2, 1, 3, 4], self._ids(Cursor(self.documents, sort='name')))
        self.assertEqual(
            [4, 2, 1, 3], self._ids(Cursor(self.documents, sort=[('age', 1), ('name', 1)])))
        self.assertEqual(
            [3, 1, 2, 4], self._ids(Cursor(self.documents).sort([('age', -1), ('name', -1)])))
        self.assertEqual([4, 3, 2, 1], self._ids(Cursor(self.documents, sort={'$natural': -1})))

    def test__count(self):
        cursor = Cursor(self.documents, {'age': 30}, limit=1)
        self.assertEqual(2, cursor.count())
        self.assertEqual(1, cursor.count(with_limit_and_skip=True))

    def test__projection(self):
        cursor = Cursor(self.documents, {'_id': 2}, fields={'name': 1, '_id': 0})
        self.assertEqual([{'name': 'a'}], cursor.fetch())

    def test__clone(self):
        cursor = Cursor(self.documents, {'age': 30})
        cursor.fetch()
        self.assertEqual([1, 3], self._ids(cursor.clone()))

    def test__distinct(self):
        self.assertEqual([30, 20, 10], Cursor(self.documents).distinct('age'))
        self.assertEqual(['x', 'y', 'z'], Cursor(self.documents).distinct('tags'))
        with self.assertRaises(ValidationError):
            Cursor(self.documents).distinct(5)

    def test__getitem(self):
        cursor = Cursor(self.documents, sort=[('age', -1)])
        self.assertEqual(3, cursor[1]['_id'])
        with self.assertRaises(IndexError):
            cursor[-1]
        with self.assertRaises(TypeError):
            cursor['a']

    def test__context_manager(self):
        with Cursor(self.documents) as cursor:
            self.assertEqual(4, len(cursor.fetch()))

    def test__invalid_selection(self):
        with self.assertRaises(ValidationError):
            Cursor(self.documents, {'$foo': 1})
