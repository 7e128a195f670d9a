"""
Upload service for kusari-uploader.

Wires configuration, authentication, the upload workflow and the optional
blocked-package check together and maps the outcome to a process exit code.
"""
import logging
import os
from typing import Optional

import yaml

from kusari_uploader.check import check_blocked_packages, report_blocked
from kusari_uploader.core.config_manager import ConfigManager
from kusari_uploader.rich_utils.ui_helpers import configure_logging, get_console
from kusari_uploader.upload import KusariEnvironmentDetector, UploadOrchestrator
from kusari_uploader.upload.api_client import TenantAPIClient
from kusari_uploader.upload.auth import authorized_session, fetch_access_token
from kusari_uploader.upload.exceptions import (
    AuthenticationError,
    CheckTimeoutError,
    EnvironmentValidationError,
    UploadError
)
from kusari_uploader.upload.models import DocumentMetadata

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_BLOCKED = 2

logger = logging.getLogger(__name__)


class UploadService:
    """Service for uploading files and checking them for blocked packages."""

    def __init__(self):
        self.config_manager = ConfigManager()
        self.detector = KusariEnvironmentDetector()
        self.console = get_console()
        self.error_console = get_console(stderr=True)

    def configure_environment_variables(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        tenant_endpoint: Optional[str] = None,
        token_endpoint: Optional[str] = None
    ) -> None:
        """Override environment variables if CLI parameters are provided."""
        overrides = {
            "KUSARI_CLIENT_ID": client_id,
            "KUSARI_CLIENT_SECRET": client_secret,
            "KUSARI_TENANT_ENDPOINT": tenant_endpoint,
            "KUSARI_TOKEN_ENDPOINT": token_endpoint
        }
        for var, value in overrides.items():
            if value:
                os.environ[var] = value

    def execute_upload(
        self,
        path: str,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        tenant_endpoint: Optional[str] = None,
        token_endpoint: Optional[str] = None,
        config_path: Optional[str] = None,
        metadata: Optional[DocumentMetadata] = None,
        check_blocked: bool = False,
        verbose: bool = False
    ) -> int:
        """Execute upload workflow and return exit code."""

        self.configure_environment_variables(client_id, client_secret, tenant_endpoint, token_endpoint)

        try:
            config = self.config_manager.discover_and_load_config(config_path)
        except (OSError, yaml.YAMLError) as e:
            self.error_console.print(f"❌ Could not load configuration: {e}", style="bold red")
            return EXIT_FAILURE

        configure_logging(config.get("logging", {}).get("level", "WARNING"), verbose)
        logger.debug(f"Environment: {self.detector.get_environment_summary()}")

        try:
            upload_config = self.detector.get_upload_config(config.get("upload"))
            check_settings = self.detector.get_check_settings(config.get("check"))

            token = fetch_access_token(
                upload_config.token_endpoint,
                upload_config.client_id,
                upload_config.client_secret
            )

            self.console.print(f"🚀 Uploading {path} to {upload_config.tenant_url}...", style="bold blue")
            with TenantAPIClient(upload_config, authorized_session(token)) as client:
                orchestrator = UploadOrchestrator(client, self.console)
                entries = orchestrator.upload_path(path, metadata)

            self.console.print("Upload completed successfully", style="bold green")

            if not check_blocked:
                return EXIT_OK

            self.console.print("🔍 Checking uploaded SBOMs for blocked packages...", style="cyan")
            verdict = check_blocked_packages(
                entries,
                upload_config.tenant_endpoint,
                token,
                check_settings,
                request_timeout=upload_config.upload_timeout
            )

        except EnvironmentValidationError as e:
            self.error_console.print(f"❌ Upload not configured: {e.message}", style="bold red")
            self.error_console.print(
                "   Required: KUSARI_CLIENT_ID, KUSARI_CLIENT_SECRET, KUSARI_TENANT_ENDPOINT, KUSARI_TOKEN_ENDPOINT",
                style="dim"
            )
            return EXIT_FAILURE
        except AuthenticationError as e:
            self.error_console.print(f"🔐 Authentication failed: {e.message}", style="bold red")
            return EXIT_FAILURE
        except CheckTimeoutError as e:
            self.error_console.print(f"⏱️ Blocked package check timed out: {e.message}", style="bold red")
            return EXIT_FAILURE
        except UploadError as e:
            self.error_console.print(f"❌ {e.message}", style="bold red")
            return EXIT_FAILURE

        for error in verdict.errors:
            self.error_console.print(f"⚠️ Blocked package check failed: {error}", style="yellow")

        if verdict.any_blocked:
            report_blocked(verdict, self.console)
            return EXIT_BLOCKED

        if verdict.errors:
            return EXIT_FAILURE

        self.console.print("✅ No blocked packages found", style="bold green")
        return EXIT_OK
