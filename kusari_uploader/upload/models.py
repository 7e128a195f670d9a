"""
Data Models for the Kusari upload workflow

Dataclass-based models shared by the upload pipeline and the
blocked-package checker.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class UploaderConfig:
    """Configuration for upload operations"""
    tenant_endpoint: str
    token_endpoint: str
    client_id: str
    client_secret: str
    upload_timeout: int = 300

    @property
    def tenant_url(self) -> str:
        return self.tenant_endpoint.rstrip('/')


@dataclass
class CheckSettings:
    """Tuning knobs for the blocked-package check"""
    timeout: float = 900.0
    max_concurrency: int = 5
    retry_interval: float = 1.0
    max_lookup_attempts: Optional[int] = None
    fail_fast: bool = True


@dataclass
class DocumentMetadata:
    """Optional metadata attached to an uploaded document"""
    document_type: Optional[str] = None
    tag: Optional[str] = None
    software_id: Optional[str] = None
    sbom_subject: Optional[str] = None
    component_name: Optional[str] = None

    def as_dict(self) -> Dict[str, str]:
        """Only the fields that were actually set"""
        values = {
            "document_type": self.document_type,
            "tag": self.tag,
            "software_id": self.software_id,
            "sbom_subject": self.sbom_subject,
            "component_name": self.component_name,
        }
        return {key: value for key, value in values.items() if value}


@dataclass(frozen=True)
class UploadResult:
    """Check key extracted from one uploaded file"""
    subject: str = ""
    uri: str = ""

    @property
    def is_checkable(self) -> bool:
        return bool(self.subject) and bool(self.uri)


@dataclass(frozen=True)
class ResolvedIdentity:
    """Platform-assigned identifiers for an uploaded SBOM"""
    software_id: int
    sbom_id: int


@dataclass
class CheckOutcome:
    """Block status of a single SBOM"""
    blocked: bool = False
    blocked_packages: List[str] = field(default_factory=list)


@dataclass
class EntryResult:
    """Result slot for one input entry of a check batch"""
    entry: UploadResult
    outcome: CheckOutcome = field(default_factory=CheckOutcome)
    error: Optional[Exception] = None
    skipped: bool = False


@dataclass
class BatchVerdict:
    """Aggregate over all entries of one check batch"""
    any_blocked: bool
    results: List[EntryResult]

    @property
    def blocked_results(self) -> List[EntryResult]:
        return [result for result in self.results if result.outcome.blocked]

    @property
    def errors(self) -> List[Exception]:
        return [result.error for result in self.results if result.error is not None]


@dataclass
class ValidationResult:
    """Configuration validation result"""
    is_valid: bool
    error_message: Optional[str] = None
    validation_type: Optional[str] = None
