"""
Credential Provider Module

This module provides centralized credential selection for the tenant a pass
targets. Source passes use the source tenant app registration, destination
passes the destination one.
"""

import logging
from typing import Dict, Optional, Tuple

from azure.identity import ClientSecretCredential

from .models import TenantRole
from .tenant_config import (
    TenantConfig,
    TenantCredentials,
    create_tenant_credentials_from_env,
)

logger = logging.getLogger(__name__)


class TenantCredentialProvider:
    """
    Provides credentials based on the targeted tenant role.

    Attributes:
        tenant_config: Tenants of the run
        _credentials: Loaded TenantCredentials per role
        _credential_cache: Cache of credentials per tenant ID
        _current_tenant_id: Track current tenant for logging
    """

    def __init__(self, tenant_config: TenantConfig) -> None:
        self.tenant_config = tenant_config
        self._credentials: Dict[TenantRole, TenantCredentials] = {}
        self._credential_cache: Dict[str, ClientSecretCredential] = {}
        self._current_tenant_id: Optional[str] = None

    def get_tenant_credentials(self, role: TenantRole) -> TenantCredentials:
        """
        Get the app credentials for a tenant role.

        Raises:
            MissingConfigurationError: If the environment lacks the credentials
        """
        if role not in self._credentials:
            self._credentials[role] = create_tenant_credentials_from_env(
                self.tenant_config, role
            )
        return self._credentials[role]

    def get_credential(self, role: TenantRole) -> Tuple[ClientSecretCredential, str]:
        """
        Get credential for the specified tenant role.

        Returns:
            Tuple of (credential, tenant_id)
        """
        tenant_creds = self.get_tenant_credentials(role)
        credential = self._get_or_create_credential(tenant_creds)

        if self._current_tenant_id != tenant_creds.tenant_id:
            logger.info(
                f"Using {role.value} tenant credentials: tenant={tenant_creds.tenant_id}, "
                f"client_id={tenant_creds.client_id}"
            )
            self._current_tenant_id = tenant_creds.tenant_id

        return credential, tenant_creds.tenant_id

    def _get_or_create_credential(
        self, tenant_creds: TenantCredentials
    ) -> ClientSecretCredential:
        if tenant_creds.tenant_id not in self._credential_cache:
            self._credential_cache[tenant_creds.tenant_id] = ClientSecretCredential(
                tenant_id=tenant_creds.tenant_id,
                client_id=tenant_creds.client_id,
                client_secret=tenant_creds.client_secret,
            )
        return self._credential_cache[tenant_creds.tenant_id]

    def close(self) -> None:
        """Close every cached credential."""
        for credential in self._credential_cache.values():
            credential.close()
        self._credential_cache.clear()
