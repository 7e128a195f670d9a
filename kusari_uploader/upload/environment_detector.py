"""
Kusari Environment Detector

Detects and validates the environment variables that configure uploads and
blocked-package checks.
"""

import os
from typing import List, Optional
from urllib.parse import urlparse

from .models import CheckSettings, UploaderConfig, ValidationResult
from .exceptions import EnvironmentValidationError


class KusariEnvironmentDetector:
    """Detects and validates the upload environment"""

    REQUIRED_VARS = [
        "KUSARI_CLIENT_ID",
        "KUSARI_CLIENT_SECRET",
        "KUSARI_TENANT_ENDPOINT",
        "KUSARI_TOKEN_ENDPOINT"
    ]

    URL_VARS = [
        "KUSARI_TENANT_ENDPOINT",
        "KUSARI_TOKEN_ENDPOINT"
    ]

    OPTIONAL_VARS = {
        "KUSARI_UPLOAD_TIMEOUT": ("upload_timeout", int),
        "KUSARI_CHECK_TIMEOUT": ("timeout", float),
        "KUSARI_CHECK_CONCURRENCY": ("max_concurrency", int),
        "KUSARI_CHECK_RETRY_INTERVAL": ("retry_interval", float)
    }

    def is_upload_enabled(self) -> bool:
        """Check if all required environment variables are present"""
        return all(os.getenv(var) for var in self.REQUIRED_VARS)

    def get_missing_variables(self) -> List[str]:
        """Get list of missing required environment variables"""
        return [var for var in self.REQUIRED_VARS if not os.getenv(var)]

    def validate_environment(self) -> ValidationResult:
        missing_vars = self.get_missing_variables()

        if missing_vars:
            return ValidationResult(
                is_valid=False,
                error_message=f"Missing required environment variables: {', '.join(missing_vars)}",
                validation_type="environment"
            )

        for var in self.URL_VARS:
            if not self._validate_url(os.getenv(var)):
                return ValidationResult(
                    is_valid=False,
                    error_message=f"Invalid URL format for {var}: {os.getenv(var)}",
                    validation_type="environment"
                )

        return ValidationResult(is_valid=True)

    def get_upload_config(self, defaults: Optional[dict] = None) -> UploaderConfig:
        """Extract and validate upload configuration from environment"""
        validation = self.validate_environment()
        if not validation.is_valid:
            raise EnvironmentValidationError(
                validation.error_message,
                missing_vars=self.get_missing_variables()
            )

        defaults = defaults or {}
        upload_timeout = self._typed_env("KUSARI_UPLOAD_TIMEOUT", defaults.get("timeout", 300))

        return UploaderConfig(
            tenant_endpoint=os.getenv("KUSARI_TENANT_ENDPOINT"),
            token_endpoint=os.getenv("KUSARI_TOKEN_ENDPOINT"),
            client_id=os.getenv("KUSARI_CLIENT_ID"),
            client_secret=os.getenv("KUSARI_CLIENT_SECRET"),
            upload_timeout=upload_timeout
        )

    def get_check_settings(self, defaults: Optional[dict] = None) -> CheckSettings:
        """Blocked-package check settings; environment overrides config file values"""
        defaults = defaults or {}
        settings = CheckSettings(
            timeout=float(defaults.get("timeout", 900)),
            max_concurrency=int(defaults.get("max_concurrency", 5)),
            retry_interval=float(defaults.get("retry_interval", 1)),
            max_lookup_attempts=defaults.get("max_lookup_attempts"),
            fail_fast=bool(defaults.get("fail_fast", True))
        )

        for var_name, (param, _) in self.OPTIONAL_VARS.items():
            if var_name == "KUSARI_UPLOAD_TIMEOUT":
                continue
            setattr(settings, param, self._typed_env(var_name, getattr(settings, param)))

        if settings.max_concurrency < 1:
            settings.max_concurrency = 1

        return settings

    def _typed_env(self, var_name: str, default_value):
        env_value = os.getenv(var_name)
        if not env_value:
            return default_value

        _, var_type = self.OPTIONAL_VARS[var_name]
        try:
            return var_type(env_value)
        except ValueError:
            # Use default if conversion fails
            return default_value

    def _validate_url(self, url: Optional[str]) -> bool:
        if not url:
            return False

        parsed = urlparse(url)
        return parsed.scheme in ['http', 'https'] and bool(parsed.netloc)

    def get_environment_summary(self) -> dict:
        """Get summary of environment configuration for debugging"""
        summary = {
            "upload_enabled": self.is_upload_enabled(),
            "missing_variables": self.get_missing_variables(),
            "detected_variables": {}
        }

        # Show which variables are set (but mask secrets)
        for var in self.REQUIRED_VARS:
            value = os.getenv(var)
            if value and "SECRET" in var:
                summary["detected_variables"][var] = f"{value[:4]}..."
            else:
                summary["detected_variables"][var] = value

        for var in self.OPTIONAL_VARS:
            value = os.getenv(var)
            if value:
                summary["detected_variables"][var] = value

        return summary
