from .models import LoadEvent, LoadEventType
from .emitter import LoadEventEmitter, NullEventEmitter, MemoryQueueEventEmitter

__all__ = [
    "LoadEvent",
    "LoadEventType",
    "LoadEventEmitter",
    "NullEventEmitter",
    "MemoryQueueEventEmitter",
]
