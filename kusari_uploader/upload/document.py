"""
Document envelope for uploaded files.

Files are not uploaded raw: each one is wrapped into the JSON document shape
the ingestion pipeline understands, carrying the file bytes, what kind of
document it is and where it came from.
"""

import base64
import hashlib
import json
from dataclasses import dataclass, field
from typing import Dict, Optional

from .models import DocumentMetadata

COLLECTOR_NAME = "Kusari-Uploader"

DOCUMENT_UNKNOWN = "UNKNOWN"
FORMAT_UNKNOWN = "UNKNOWN"

# document_type -> (Type, Format)
KNOWN_DOCUMENT_TYPES = {
    "sbom": ("SBOM", "JSON"),
    "openvex": ("OPEN_VEX", "JSON"),
}


def document_ref(blob: bytes) -> str:
    """Content address of a document blob"""
    return f"sha256_{hashlib.sha256(blob).hexdigest()}"


@dataclass
class SourceInformation:
    collector: str
    source: str
    document_ref: str
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class DocumentEnvelope:
    """Uploadable wrapper around one file"""
    blob: bytes
    source_information: SourceInformation
    type: str = DOCUMENT_UNKNOWN
    format: str = FORMAT_UNKNOWN
    encoding: str = ""

    def to_dict(self) -> dict:
        source = {
            "Collector": self.source_information.collector,
            "Source": self.source_information.source,
            "DocumentRef": self.source_information.document_ref,
        }
        if self.source_information.metadata:
            source["Metadata"] = dict(self.source_information.metadata)

        return {
            "Blob": base64.b64encode(self.blob).decode("ascii"),
            "Type": self.type,
            "Format": self.format,
            "Encoding": self.encoding,
            "SourceInformation": source,
        }

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")


def build_document(blob: bytes, file_path: str, metadata: Optional[DocumentMetadata] = None) -> DocumentEnvelope:
    """Wrap file contents into a document envelope"""
    metadata = metadata or DocumentMetadata()
    doc_type, doc_format = KNOWN_DOCUMENT_TYPES.get(
        (metadata.document_type or "").lower(),
        (DOCUMENT_UNKNOWN, FORMAT_UNKNOWN)
    )

    return DocumentEnvelope(
        blob=blob,
        type=doc_type,
        format=doc_format,
        source_information=SourceInformation(
            collector=COLLECTOR_NAME,
            source=f"file:///{file_path}",
            document_ref=document_ref(blob),
            metadata=metadata.as_dict()
        )
    )
