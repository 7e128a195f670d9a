"""
Best-effort extraction of the blocked-package check key from an SBOM.

Only the top-level identifying fields are read. Anything that is not a
recognisable CycloneDX or SPDX JSON document yields an empty key, which the
checker skips.
"""

import json
import logging

from .models import UploadResult

logger = logging.getLogger(__name__)

SPDX_DOCUMENT_ID = "SPDXRef-DOCUMENT"


def extract_subject(blob: bytes) -> UploadResult:
    """Return the (subject, uri) pair of a CycloneDX or SPDX JSON document"""
    try:
        document = json.loads(blob)
    except (ValueError, UnicodeDecodeError):
        return UploadResult()

    if not isinstance(document, dict):
        return UploadResult()

    if "bomFormat" in document:
        return _cyclonedx_subject(document)

    if document.get("SPDXID") == SPDX_DOCUMENT_ID:
        return UploadResult(
            subject=_as_text(document.get("name")),
            uri=_as_text(document.get("documentNamespace"))
        )

    return UploadResult()


def _cyclonedx_subject(document: dict) -> UploadResult:
    metadata = document.get("metadata")
    component = metadata.get("component") if isinstance(metadata, dict) else None
    name = component.get("name") if isinstance(component, dict) else None

    if not name:
        logger.debug("CycloneDX document has no metadata.component.name")

    return UploadResult(
        subject=_as_text(name),
        uri=_as_text(document.get("serialNumber"))
    )


def _as_text(value) -> str:
    return value if isinstance(value, str) else ""
