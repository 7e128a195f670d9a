"""
Kusari Upload Module

Uploads local files to a Kusari tenant:

Phase 1: Authentication - exchange client credentials for an access token
Phase 2: Presign - ask the tenant API for a presigned storage URL per file
Phase 3: Upload - PUT each file, wrapped in a document envelope, to storage
"""

from .environment_detector import KusariEnvironmentDetector
from .upload_orchestrator import UploadOrchestrator
from .exceptions import (
    UploadError,
    EnvironmentValidationError,
    APIConnectionError,
    AuthenticationError,
    UnexpectedStatusError,
    ResponseDecodeError,
    CheckTimeoutError
)

__all__ = [
    'KusariEnvironmentDetector',
    'UploadOrchestrator',
    'UploadError',
    'EnvironmentValidationError',
    'APIConnectionError',
    'AuthenticationError',
    'UnexpectedStatusError',
    'ResponseDecodeError',
    'CheckTimeoutError'
]
