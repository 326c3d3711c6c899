"""
Credential Store for API Clients

This module provides secure storage and retrieval of credentials for the
sample app, namely the recommendations subscription key and the storage
account used by batch scoring.
"""

import os
import json
import logging
from typing import Dict, Optional, Any
import base64
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

PASSPHRASE_ENV = "RECOMMENDATIONS_SAMPLE_KEY"


class CredentialStore:
    """
    Secure storage and retrieval of API credentials.

    Credentials are kept per service in a JSON file; string values are
    encrypted with Fernet unless encryption is disabled.
    """

    def __init__(self, config_dir: Optional[str] = None, use_encryption: bool = True):
        """
        Initialize the credential store.

        Args:
            config_dir: Directory to store credential files. If None, uses ~/.recommendations_sample
            use_encryption: Whether to encrypt stored credentials
        """
        if config_dir is None:
            self.config_dir = os.path.expanduser("~/.recommendations_sample")
        else:
            self.config_dir = config_dir

        os.makedirs(self.config_dir, exist_ok=True)

        self.credentials_file = os.path.join(self.config_dir, "credentials.json")
        self.use_encryption = use_encryption
        self._cipher = None

        if self.use_encryption:
            self._initialize_encryption()

    def _initialize_encryption(self):
        """Initialize encryption with a key derived from an environment variable or a key file."""
        passphrase = os.environ.get(PASSPHRASE_ENV)

        if passphrase:
            key = self._derive_key(passphrase)
        else:
            key_file = os.path.join(self.config_dir, ".encryption_key")

            if os.path.exists(key_file):
                with open(key_file, "rb") as f:
                    key = f.read().strip()
            else:
                key = Fernet.generate_key()
                with open(key_file, "wb") as f:
                    f.write(key)
                os.chmod(key_file, 0o600)

        self._cipher = Fernet(key)

    def _derive_key(self, passphrase: str) -> bytes:
        """Derive an encryption key from a passphrase."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=b'recommendations_sample_salt',
            iterations=100000,
        )
        return base64.urlsafe_b64encode(kdf.derive(passphrase.encode()))

    def _encrypt(self, data: str) -> str:
        if self._cipher is None:
            return data
        return self._cipher.encrypt(data.encode()).decode()

    def _decrypt(self, data: str) -> str:
        if self._cipher is None:
            return data
        return self._cipher.decrypt(data.encode()).decode()

    def save_credentials(self, service: str, credentials: Dict[str, Any]) -> bool:
        """
        Save credentials for a service.

        Args:
            service: Service identifier (e.g., 'recommendations_api')
            credentials: Dictionary of credentials

        Returns:
            True if successful, False otherwise
        """
        try:
            all_credentials = self.load_all_credentials()
            all_credentials[service] = {
                key: self._encrypt(value) if isinstance(value, str) else value
                for key, value in credentials.items()
            }

            self._write(all_credentials)

            logger.info(f"Saved credentials for service: {service}")
            return True

        except OSError as e:
            logger.error(f"Error saving credentials for service {service}: {str(e)}")
            return False

    def load_credentials(self, service: str) -> Dict[str, Any]:
        """
        Load credentials for a service.

        Args:
            service: Service identifier (e.g., 'recommendations_api')

        Returns:
            Dictionary of credentials, or empty dict if not found
        """
        all_credentials = self.load_all_credentials()

        if service not in all_credentials:
            logger.debug(f"No credentials found for service: {service}")
            return {}

        decrypted = {}
        for key, value in all_credentials[service].items():
            if isinstance(value, str):
                try:
                    decrypted[key] = self._decrypt(value)
                except InvalidToken:
                    logger.warning(f"Could not decrypt '{key}' for service {service}; was it stored with another key?")
                    continue
            else:
                decrypted[key] = value
        return decrypted

    def load_all_credentials(self) -> Dict[str, Dict[str, Any]]:
        """
        Load all stored credentials.

        Returns:
            Dictionary of all credentials, keyed by service
        """
        if not os.path.exists(self.credentials_file):
            return {}

        try:
            with open(self.credentials_file, "r") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading credentials file: {str(e)}")
            return {}

    def delete_credentials(self, service: str) -> bool:
        """
        Delete credentials for a service.

        Returns:
            True if credentials were deleted, False otherwise
        """
        all_credentials = self.load_all_credentials()

        if service not in all_credentials:
            logger.warning(f"No credentials found for service: {service}")
            return False

        del all_credentials[service]
        try:
            self._write(all_credentials)
        except OSError as e:
            logger.error(f"Error deleting credentials for service {service}: {str(e)}")
            return False

        logger.info(f"Deleted credentials for service: {service}")
        return True

    def _write(self, all_credentials: Dict[str, Dict[str, Any]]) -> None:
        with open(self.credentials_file, "w") as f:
            json.dump(all_credentials, f)
        os.chmod(self.credentials_file, 0o600)


class RecommendationsCredentialManager:
    """
    Manager for the sample app's credentials.

    Environment variables take precedence over stored credentials.
    """

    API_SERVICE = "recommendations_api"
    BLOB_SERVICE = "blob_storage"

    def __init__(self, credential_store: Optional[CredentialStore] = None):
        """
        Initialize the credential manager.

        Args:
            credential_store: CredentialStore instance to use. If None, creates a new one.
        """
        self.credential_store = credential_store or CredentialStore()

    def get_api_key(self) -> str:
        """
        Get the recommendations subscription key.

        Raises:
            ValueError: If the key is neither in the environment nor stored
        """
        env_key = os.environ.get("RECOMMENDATIONS_API_KEY")
        if env_key:
            logger.info("Using recommendations API key from environment variables")
            return env_key

        credentials = self.credential_store.load_credentials(self.API_SERVICE)
        if credentials.get("api_key"):
            logger.info("Using stored recommendations API key")
            return credentials["api_key"]

        raise ValueError(
            "Recommendations API key not found. Please set the RECOMMENDATIONS_API_KEY "
            "environment variable, or store it using save_api_key()."
        )

    def save_api_key(self, api_key: str) -> bool:
        """Store the recommendations subscription key."""
        return self.credential_store.save_credentials(self.API_SERVICE, {"api_key": api_key})

    def get_blob_credentials(self) -> Dict[str, str]:
        """
        Get the storage account used by batch scoring.

        Returns:
            Dict with account_name, account_key and container_name. Missing
            values are empty strings.
        """
        stored = self.credential_store.load_credentials(self.BLOB_SERVICE)
        return {
            "account_name": os.environ.get("BLOB_ACCOUNT_NAME") or stored.get("account_name", ""),
            "account_key": os.environ.get("BLOB_ACCOUNT_KEY") or stored.get("account_key", ""),
            "container_name": os.environ.get("BLOB_CONTAINER") or stored.get("container_name", "")
        }

    def save_blob_credentials(self, account_name: str, account_key: str, container_name: str) -> bool:
        """Store the storage account used by batch scoring."""
        return self.credential_store.save_credentials(self.BLOB_SERVICE, {
            "account_name": account_name,
            "account_key": account_key,
            "container_name": container_name
        })
