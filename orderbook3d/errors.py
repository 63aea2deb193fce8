"""Feed error types. None of these are fatal to the process."""

from __future__ import annotations

from typing import Callable


class FeedError(Exception):
    """Base class for non-fatal depth feed errors."""


class TransportError(FeedError):
    """Connection failed or dropped. The subscription is closed, not retried."""


class MalformedMessageError(FeedError):
    """Message could not be decoded into a snapshot and was dropped."""


class IngestionError(FeedError):
    """A decoded snapshot could not be applied downstream. The feed keeps running."""


ErrorSink = Callable[[FeedError], None]
