"""
Exceptions for upload and blocked-package check functionality.
"""


class UploadError(Exception):
    """Base upload error."""

    def __init__(self, message, **kwargs):
        super().__init__(message)
        self.message = message
        self.endpoint = kwargs.get('endpoint')
        self.status_code = kwargs.get('status_code')
        self.file_path = kwargs.get('file_path')


class EnvironmentValidationError(UploadError):
    """Required configuration is missing or malformed."""

    def __init__(self, message, **kwargs):
        super().__init__(message, **kwargs)
        self.missing_vars = kwargs.get('missing_vars', [])


class APIConnectionError(UploadError):
    """API connection failed."""
    pass


class AuthenticationError(UploadError):
    """Authentication failed."""
    pass


class UnexpectedStatusError(UploadError):
    """Tenant API answered with a status code the caller cannot handle."""
    pass


class ResponseDecodeError(UploadError):
    """Response body was not the JSON document we expected."""
    pass


class CheckTimeoutError(UploadError):
    """Blocked-package check did not finish before its deadline."""

    def __init__(self, message, **kwargs):
        super().__init__(message, **kwargs)
        self.timeout_seconds = kwargs.get('timeout_seconds')
