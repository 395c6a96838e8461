from .thread import Thread, ThreadItem, ThreadStore

__all__ = [
    "Thread",
    "ThreadItem",
    "ThreadStore",
]
