"""Awaitable facade over Database, Collection and Cursor.

Every proxied call yields to the event loop once and then runs the
synchronous operation to completion, so one operation never interleaves
with another on the same loop.
"""

import asyncio

from mongoportable.collection import Collection
from mongoportable.cursor import Cursor
from mongoportable.database import Database


def _wrap(value):
    if isinstance(value, Database):
        return AsyncDatabaseProxy(value)
    if isinstance(value, Collection):
        return AsyncCollectionProxy(value)
    if isinstance(value, Cursor):
        return AsyncCursorProxy(value)
    return value


def _convert_to_async(func):
    async def inner(*args, **kwargs):
        await asyncio.sleep(0)
        return _wrap(func(*args, **kwargs))
    return inner


class AsyncPortableProxy:
    def __init__(self, real_obj):
        self.real_obj = real_obj

    def __getattr__(self, item):
        attr = getattr(self.real_obj, item)
        if isinstance(attr, (Database, Collection, Cursor)):
            return _wrap(attr)
        if callable(attr):
            return _convert_to_async(attr)
        return attr

    def __repr__(self):
        return '{0}({1!r})'.format(self.__class__.__name__, self.real_obj)


class AsyncDatabaseProxy(AsyncPortableProxy):
    def __getitem__(self, name):
        return AsyncCollectionProxy(self.real_obj[name])


class AsyncCollectionProxy(AsyncPortableProxy):
    pass


class AsyncCursorProxy(AsyncPortableProxy):
    def __aiter__(self):
        return self

    async def __anext__(self):
        await asyncio.sleep(0)
        try:
            return next(self.real_obj)
        except StopIteration:
            raise StopAsyncIteration
