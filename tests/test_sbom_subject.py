"""
Tests for SBOM subject extraction
"""

import json

from kusari_uploader.upload.models import UploadResult
from kusari_uploader.upload.sbom_subject import extract_subject


class TestExtractSubject:
    """Test cases for CycloneDX/SPDX check key extraction"""

    def test_cyclonedx(self):
        """Test CycloneDX uses component name and serial number"""
        sbom = {
            "bomFormat": "CycloneDX",
            "specVersion": "1.5",
            "serialNumber": "urn:uuid:3e671687-395b-41f5-a30f-a58921a69b79",
            "metadata": {"component": {"name": "acme-app", "version": "1.2.3"}}
        }

        result = extract_subject(json.dumps(sbom).encode())

        assert result == UploadResult(
            subject="acme-app",
            uri="urn:uuid:3e671687-395b-41f5-a30f-a58921a69b79"
        )
        assert result.is_checkable

    def test_spdx(self):
        """Test SPDX uses document name and namespace"""
        sbom = {
            "spdxVersion": "SPDX-2.3",
            "SPDXID": "SPDXRef-DOCUMENT",
            "name": "acme-image",
            "documentNamespace": "https://example.com/spdx/acme-image-1234"
        }

        result = extract_subject(json.dumps(sbom).encode())

        assert result.subject == "acme-image"
        assert result.uri == "https://example.com/spdx/acme-image-1234"

    def test_spdx_wrong_root_id(self):
        """Test SPDX document with another root id is not recognised"""
        sbom = {"SPDXID": "SPDXRef-Package", "name": "x", "documentNamespace": "y"}

        assert extract_subject(json.dumps(sbom).encode()) == UploadResult()

    def test_cyclonedx_without_component(self):
        """Test CycloneDX without metadata.component keeps only the URI"""
        sbom = {"bomFormat": "CycloneDX", "serialNumber": "urn:uuid:1"}

        result = extract_subject(json.dumps(sbom).encode())

        assert result.subject == ""
        assert result.uri == "urn:uuid:1"
        assert not result.is_checkable

    def test_cyclonedx_with_unexpected_types(self):
        """Test non-object metadata does not raise"""
        sbom = {"bomFormat": "CycloneDX", "metadata": ["oops"], "serialNumber": 42}

        assert extract_subject(json.dumps(sbom).encode()) == UploadResult()

    def test_not_json(self):
        """Test non-JSON files yield an empty entry"""
        assert extract_subject(b"#!/bin/sh\necho hi\n") == UploadResult()
        assert extract_subject(b"\xff\xfe\x00binary") == UploadResult()

    def test_json_array(self):
        """Test JSON that is not an object yields an empty entry"""
        assert extract_subject(b"[1, 2, 3]") == UploadResult()
