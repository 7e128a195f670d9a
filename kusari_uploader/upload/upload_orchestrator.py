"""
Upload Orchestrator

Walks the requested file or directory, uploads every file through the
presign -> envelope -> PUT workflow and collects the blocked-package check
key of each uploaded file.
"""

import logging
import os
from typing import Iterator, List, Optional

from rich.console import Console

from .api_client import TenantAPIClient
from .document import build_document
from .exceptions import UploadError
from .models import DocumentMetadata, UploadResult
from .sbom_subject import extract_subject


class UploadOrchestrator:
    """Coordinates sequential uploads of one file or a directory tree"""

    def __init__(self, client: TenantAPIClient, console: Console = None):
        self.client = client
        self.console = console or Console()
        self.logger = logging.getLogger(self.__class__.__name__)

    def upload_path(self, path: str, metadata: Optional[DocumentMetadata] = None) -> List[UploadResult]:
        """Upload a single file or every file below a directory.

        Files are uploaded one after another in walk order; the first failure
        stops the walk and propagates. Returns one check key per uploaded file,
        in upload order.
        """
        if not os.path.exists(path):
            raise UploadError(f"Path not found: {path}", file_path=path)

        entries = []
        for file_path in self.iter_files(path):
            entries.append(self.upload_file(file_path, metadata))

        if not entries:
            self.console.print(f"⚠️ No files found under {path}", style="yellow")

        return entries

    def upload_file(self, file_path: str, metadata: Optional[DocumentMetadata] = None) -> UploadResult:
        """Upload one file and return its check key"""
        try:
            with open(file_path, 'rb') as f:
                blob = f.read()
        except OSError as e:
            raise UploadError(f"Error reading file: {file_path}: {e}", file_path=file_path)

        presigned_url = self.client.get_presigned_url(file_path)
        document = build_document(blob, file_path, metadata)
        self.client.put_document(presigned_url, document.to_json(), file_path=file_path)

        entry = extract_subject(blob)
        self.console.print(f"✅ {file_path}", style="green")
        if entry.is_checkable:
            self.logger.debug(f"{file_path}: SBOM subject {entry.subject}, URI {entry.uri}")

        return entry

    @classmethod
    def iter_files(cls, path: str) -> Iterator[str]:
        """Yield regular files below ``path`` in lexical walk order.

        Entries of a directory are visited in sorted name order and a
        subdirectory is descended into at its own position, so ``a/x.json``
        comes before ``b.json``.
        """
        if not os.path.isdir(path):
            yield path
            return

        for name in sorted(os.listdir(path)):
            child = os.path.join(path, name)
            if os.path.isdir(child):
                yield from cls.iter_files(child)
            else:
                yield child
