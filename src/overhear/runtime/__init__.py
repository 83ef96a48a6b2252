"""
Runtime plumbing: change notification, loop timers and the live session owner.

``LiveSession`` lives in ``overhear.runtime.live``; it is not re-exported here because the
ledger and Q&A session depend on ``Observable`` from this package.
"""

from overhear.runtime.observable import Observable
from overhear.runtime.timing import Debouncer, Throttle

__all__ = ["Debouncer", "Observable", "Throttle"]
