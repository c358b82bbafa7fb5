"""Destructive bulk operations."""

from .batch_delete import BatchDeleter, BatchDeleteSummary, DeletionBatch

__all__ = ["BatchDeleter", "BatchDeleteSummary", "DeletionBatch"]
