from __future__ import annotations

class ShareTaskError(Exception):
    """Base exception for the application."""

class TaskCreationError(ShareTaskError):
    """Raised when a task cannot be built from the supplied input."""

class TransformFailure(ShareTaskError):
    """Raised when an image effect, annotation or serialization yields nothing."""

class DownloadError(ShareTaskError):
    """Raised when remote content cannot be fetched before upload."""

class UploadError(ShareTaskError):
    """Raised when an upload attempt fails at the network or protocol level."""

class EmptyURLError(ShareTaskError):
    """Raised when an upload reports success but produced no URL."""

class PostUploadStepError(ShareTaskError):
    """Raised when one post-upload action fails."""
