import logging

from mongoportable import ValidationError

logger = logging.getLogger(__name__)

EVENTS = frozenset([
    'insert',
    'find',
    'findOne',
    'update',
    'remove',
    'dropCollection',
    'snapshot',
    'restore',
])


class EventEmitter(object):
    """Publishes collection lifecycle events to subscribed callbacks.

    Callbacks run synchronously, in subscription order, with the event
    payload. An exception raised by a callback is not caught: it becomes the
    failure of the operation that emitted the event.
    """

    def __init__(self):
        self._subscribers = {}

    def on(self, event, callback):
        if event not in EVENTS:
            raise ValidationError('Unknown event %r' % (event,))
        if not callable(callback):
            raise ValidationError('callback must be callable')
        self._subscribers.setdefault(event, []).append(callback)
        return callback

    def off(self, event, callback=None):
        if callback is None:
            self._subscribers.pop(event, None)
            return
        callbacks = self._subscribers.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def subscribers(self, event):
        return list(self._subscribers.get(event, []))

    def emit(self, event, payload):
        callbacks = self.subscribers(event)
        logger.debug('Emitting %s to %d subscriber(s)', event, len(callbacks))
        for callback in callbacks:
            callback(payload)
