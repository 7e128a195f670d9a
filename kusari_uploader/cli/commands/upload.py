"""
Upload command implementation.

Thin wrapper around UploadService that handles CLI argument parsing
and delegates business logic to the service layer.
"""
import sys
from typing import Optional

import typer

from kusari_uploader.core.uploader import UploadService
from kusari_uploader.upload.models import DocumentMetadata


def upload_command(
    path: str = typer.Argument(..., help="File or directory to upload"),
    client_id: Optional[str] = typer.Option(None, "--client-id", help="OAuth2 client ID (overrides KUSARI_CLIENT_ID)"),
    client_secret: Optional[str] = typer.Option(None, "--client-secret", help="OAuth2 client secret (overrides KUSARI_CLIENT_SECRET)"),
    tenant_endpoint: Optional[str] = typer.Option(None, "--tenant-endpoint", help="Tenant API URL (overrides KUSARI_TENANT_ENDPOINT)"),
    token_endpoint: Optional[str] = typer.Option(None, "--token-endpoint", help="OAuth2 token URL (overrides KUSARI_TOKEN_ENDPOINT)"),
    config_path: Optional[str] = typer.Option(None, "-c", "--config", help="Path to config YAML"),
    document_type: Optional[str] = typer.Option(None, "--document-type", help="Document type, e.g. sbom or openvex"),
    tag: Optional[str] = typer.Option(None, "--tag", help="Tag attached to the uploaded documents"),
    software_id: Optional[str] = typer.Option(None, "--software-id", help="Platform software ID the documents belong to"),
    sbom_subject: Optional[str] = typer.Option(None, "--sbom-subject", help="SBOM subject override"),
    component_name: Optional[str] = typer.Option(None, "--component-name", help="Component name attached to the documents"),
    check_blocked: bool = typer.Option(False, "--check-blocked-packages", help="Fail if an uploaded SBOM contains blocked packages"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging")
):
    """Upload a file or directory to a Kusari tenant."""

    metadata = DocumentMetadata(
        document_type=document_type,
        tag=tag,
        software_id=software_id,
        sbom_subject=sbom_subject,
        component_name=component_name
    )

    # Delegate to service layer
    upload_service = UploadService()
    exit_code = upload_service.execute_upload(
        path=path,
        client_id=client_id,
        client_secret=client_secret,
        tenant_endpoint=tenant_endpoint,
        token_endpoint=token_endpoint,
        config_path=config_path,
        metadata=metadata,
        check_blocked=check_blocked,
        verbose=verbose
    )

    # Exit with appropriate code
    if exit_code != 0:
        sys.exit(exit_code)
