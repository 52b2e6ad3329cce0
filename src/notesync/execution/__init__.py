"""Retry policy and the request pipeline built on it."""

from notesync.execution.pipeline import RequestPipeline, build_user_message
from notesync.execution.retry_policy import RetryPolicy

__all__ = ["RequestPipeline", "RetryPolicy", "build_user_message"]
