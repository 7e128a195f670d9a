"""
Kusari tenant API client

Handles the presigned-URL request against the tenant API and the
unauthenticated PUT of the document envelope to object storage.
"""

import logging
from typing import Optional

import backoff
import requests

from .models import UploaderConfig
from .exceptions import (
    APIConnectionError,
    AuthenticationError,
    ResponseDecodeError,
    UploadError
)


class TenantAPIClient:
    """Handles all upload-related API interactions with a Kusari tenant"""

    def __init__(self, config: UploaderConfig, session: requests.Session, storage_session: Optional[requests.Session] = None):
        self.config = config
        self.session = session
        # Presigned URLs carry their own credentials; never send the bearer token to storage
        self.storage_session = storage_session or requests.Session()
        self.logger = logging.getLogger(self.__class__.__name__)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.session.close()
        self.storage_session.close()

    @backoff.on_exception(
        backoff.expo,
        requests.exceptions.RequestException,
        max_tries=3,
        base=1,
        max_value=60
    )
    def _post_presign(self, url: str, payload: dict) -> requests.Response:
        return self.session.post(url, json=payload, timeout=self.config.upload_timeout)

    def get_presigned_url(self, file_path: str) -> str:
        """POST /presign"""
        endpoint = "presign"
        url = f"{self.config.tenant_url}/{endpoint}"

        try:
            response = self._post_presign(url, {"filename": file_path})
        except requests.exceptions.RequestException as e:
            raise APIConnectionError(f"Failed to get presigned URL: {str(e)}", endpoint=endpoint)

        self._handle_response_errors(response, endpoint)

        try:
            presigned_url = response.json()["presignedUrl"]
        except (ValueError, KeyError, TypeError):
            raise ResponseDecodeError(
                f"Failed to decode presign response: {response.text[:200]}",
                endpoint=endpoint
            )

        if not presigned_url:
            raise ResponseDecodeError("Presign response contained an empty URL", endpoint=endpoint)

        return presigned_url

    def put_document(self, presigned_url: str, body: bytes, file_path: Optional[str] = None):
        """PUT the document envelope to object storage"""
        try:
            response = self.storage_session.put(presigned_url, data=body, timeout=self.config.upload_timeout)
        except requests.exceptions.RequestException as e:
            raise UploadError(f"Upload failed: {str(e)}", file_path=file_path)

        if response.status_code != 200:
            raise UploadError(
                f"Upload failed with status {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                file_path=file_path
            )

        self.logger.debug(f"Uploaded {file_path} ({len(body)} bytes)")

    def _handle_response_errors(self, response: requests.Response, endpoint: str):
        """Handle common API response errors"""
        if response.status_code == 401:
            raise AuthenticationError(
                "Access token was rejected by the tenant API",
                status_code=response.status_code,
                endpoint=endpoint
            )
        elif response.status_code == 403:
            raise AuthenticationError(
                "Access forbidden. Your client may not have upload permission for this tenant",
                status_code=response.status_code,
                endpoint=endpoint
            )
        elif response.status_code != 200:
            error_msg = f"API error {response.status_code}"
            try:
                error_data = response.json()
                error_msg = error_data.get("message", error_msg)
            except (ValueError, AttributeError):
                error_msg = f"HTTP {response.status_code}: {response.text[:200]}"

            raise APIConnectionError(
                error_msg,
                status_code=response.status_code,
                endpoint=endpoint
            )
