"""
Recommendations Service API Clients

This package provides clients for the hosted recommendations REST API and for
the blob storage used by batch scoring, together with their schemas,
configuration validation and credential storage.
"""

from .recommendations_client import RecommendationsClient
from .blob_client import BlobHelper, BlobStorageError
from .polling import OperationCancelledError, OperationTimeoutError

__all__ = [
    'RecommendationsClient',
    'BlobHelper',
    'BlobStorageError',
    'OperationCancelledError',
    'OperationTimeoutError'
]
