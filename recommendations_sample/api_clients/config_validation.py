"""
Configuration Validation for API Clients

This module provides validation functions for the settings the sample app
passes to its clients, ensuring they are complete and within acceptable
ranges before any remote call is made.
"""

import logging
import re
from typing import Any, Dict
from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

_CONTAINER_NAME = re.compile(r"^[a-z0-9]([a-z0-9]|-(?!-)){1,61}[a-z0-9]$")


class ValidationError(Exception):
    """Exception raised for configuration validation errors."""
    pass


class RecommendationsClientConfig(BaseModel):
    """Validation model for the recommendations client configuration."""

    api_key: str = Field(..., min_length=1, description="Subscription key of the recommendations account")
    base_url: str = Field(..., description="Base URL of the recommendations API")
    timeout: int = Field(30, ge=5, le=120, description="Request timeout in seconds (5-120)")
    max_retries: int = Field(3, ge=0, le=10, description="Maximum number of retries for failed requests (0-10)")

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        """Require an absolute HTTPS URL."""
        if not v.startswith("https://"):
            raise ValueError("base_url must be an https:// URL")
        return v.rstrip("/")


class BlobStorageConfig(BaseModel):
    """Validation model for the batch scoring storage account."""

    account_name: str = Field(..., pattern=r"^[a-z0-9]{3,24}$", description="Storage account name")
    account_key: str = Field(..., min_length=1, description="Storage account key")
    container_name: str = Field(..., description="Container holding the batch files")

    @field_validator('container_name')
    @classmethod
    def validate_container_name(cls, v):
        """Validate the container name against the storage naming rules."""
        if not _CONTAINER_NAME.match(v):
            raise ValueError(
                "container_name must be 3-63 lowercase letters, digits or single hyphens"
            )
        return v


class PollingConfig(BaseModel):
    """Validation model for operation polling."""

    timeout: float = Field(3600, gt=0, description="Seconds to wait for an operation")
    initial_interval: float = Field(5, gt=0, description="Seconds between the first polls")
    max_interval: float = Field(60, gt=0, description="Upper bound of the wait between polls")

    @model_validator(mode='after')
    def validate_intervals(self):
        """Validate that the back-off bounds are consistent."""
        if self.max_interval < self.initial_interval:
            raise ValueError("max_interval must not be smaller than initial_interval")
        if self.initial_interval > self.timeout:
            logger.warning(
                f"Initial polling interval {self.initial_interval}s exceeds timeout {self.timeout}s; "
                "the operation will be polled only once"
            )
        return self


def _validate(model, config: Dict[str, Any], label: str) -> Dict[str, Any]:
    try:
        validated = model(**config)
        return validated.model_dump()
    except Exception as e:
        logger.error(f"{label} validation error: {str(e)}")
        raise ValidationError(f"Invalid {label.lower()}: {str(e)}")


def validate_client_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate recommendations client configuration.

    Args:
        config: Dictionary containing client configuration

    Returns:
        Validated configuration dictionary

    Raises:
        ValidationError: If validation fails
    """
    return _validate(RecommendationsClientConfig, config, "Client configuration")


def validate_blob_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate blob storage configuration.

    Args:
        config: Dictionary containing storage account configuration

    Returns:
        Validated configuration dictionary

    Raises:
        ValidationError: If validation fails
    """
    return _validate(BlobStorageConfig, config, "Blob storage configuration")


def validate_polling_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate polling configuration.

    Args:
        config: Dictionary containing polling configuration

    Returns:
        Validated configuration dictionary

    Raises:
        ValidationError: If validation fails
    """
    return _validate(PollingConfig, config, "Polling configuration")
