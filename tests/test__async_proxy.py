import asyncio
from unittest import TestCase

import mongoportable
from mongoportable.async_proxy import AsyncCollectionProxy
from mongoportable.async_proxy import AsyncCursorProxy
from mongoportable.async_proxy import AsyncDatabaseProxy


class AsyncProxyTest(TestCase):

    def setUp(self):
        super(AsyncProxyTest, self).setUp()
        self.db = AsyncDatabaseProxy(mongoportable.Database('somedb'))

    def test__collection_access(self):
        self.assertIsInstance(self.db['coll'], AsyncCollectionProxy)
        self.assertIsInstance(self.db.coll, AsyncCollectionProxy)
        self.assertEqual('somedb', self.db.name)

    def test__crud(self):
        async def scenario():
            collection = self.db.coll
            inserted = await collection.insert({'name': 'a'})
            await collection.insert({'name': 'b'})
            result = await collection.update({'name': 'a'}, {'$set': {'age': 1}})
            docs = await collection.find()
            removed = await collection.remove({'name': 'b'})
            return inserted, result, docs, removed

        inserted, result, docs, removed = asyncio.run(scenario())
        self.assertEqual('a', inserted['name'])
        self.assertEqual(1, result['updated']['count'])
        self.assertEqual([1, None], [doc.get('age') for doc in docs])
        self.assertEqual(['b'], [doc['name'] for doc in removed])

    def test__get_collection(self):
        async def scenario():
            return await self.db.get_collection('coll')

        self.assertIsInstance(asyncio.run(scenario()), AsyncCollectionProxy)

    def test__cursor(self):
        async def scenario():
            collection = self.db['coll']
            await collection.bulk_insert([{'n': 1}, {'n': 2}, {'n': 3}])
            cursor = await collection.find({'n': {'$gt': 1}}, do_not_fetch=True)
            self.assertIsInstance(cursor, AsyncCursorProxy)
            return [doc['n'] async for doc in cursor]

        self.assertEqual([2, 3], asyncio.run(scenario()))

    def test__errors_propagate(self):
        async def scenario():
            await self.db.coll.update({}, {'a': 1, '$set': {'b': 1}})

        with self.assertRaises(mongoportable.MixedUpdateError):
            asyncio.run(scenario())
