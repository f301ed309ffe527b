"""
Tenant Configuration Module

This module provides the configuration for the two tenants of a migration.
Tenant IDs and admin UPNs come from the tenants CSV; the app registration
credentials used to call Graph and Exchange come from the environment, one
set per tenant.

Environment variables:
- AZURE_SOURCE_TENANT_CLIENT_ID / AZURE_SOURCE_TENANT_CLIENT_SECRET
- AZURE_DESTINATION_TENANT_CLIENT_ID / AZURE_DESTINATION_TENANT_CLIENT_SECRET
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .exceptions import InvalidInputError, MissingConfigurationError
from .models import TenantRole

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantConfig:
    """
    Source and destination tenants of a run. Immutable per run.

    Attributes:
        source_tenant_id: Tenant the users are leaving
        source_admin_upn: Admin account in the source tenant
        destination_tenant_id: Tenant the users are moving to
        destination_admin_upn: Admin account in the destination tenant
    """

    source_tenant_id: str
    source_admin_upn: str
    destination_tenant_id: str
    destination_admin_upn: str

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        for name in (
            "source_tenant_id",
            "source_admin_upn",
            "destination_tenant_id",
            "destination_admin_upn",
        ):
            if not getattr(self, name):
                raise InvalidInputError(f"Tenant configuration is missing {name}", column=name)

    def tenant_id_for(self, role: TenantRole) -> str:
        if role == TenantRole.SOURCE:
            return self.source_tenant_id
        return self.destination_tenant_id

    def admin_upn_for(self, role: TenantRole) -> str:
        if role == TenantRole.SOURCE:
            return self.source_admin_upn
        return self.destination_admin_upn


@dataclass
class TenantCredentials:
    """
    App credentials for a single tenant.

    Attributes:
        tenant_id: Azure tenant ID
        admin_upn: Admin UPN used to anchor Exchange requests
        client_id: App registration client ID
        client_secret: App registration client secret
        role: Tenant role in the migration
    """

    tenant_id: str
    admin_upn: str
    client_id: str
    client_secret: str = field(repr=False)
    role: TenantRole = TenantRole.SOURCE

    def __post_init__(self) -> None:
        """Validate credentials after initialization."""
        if not self.tenant_id:
            raise ValueError("Tenant ID is required")
        if not self.client_id:
            raise ValueError("Client ID is required")
        if not self.client_secret:
            raise ValueError("Client secret is required")

    def mask_secret(self) -> str:
        """Return a safe representation for logging."""
        return (
            f"TenantCredentials(tenant_id={self.tenant_id}, client_id={self.client_id}, "
            f"admin_upn={self.admin_upn}, role={self.role.value})"
        )


def _env_prefix(role: TenantRole) -> str:
    return f"AZURE_{role.value.upper()}_TENANT_"


def create_tenant_credentials_from_env(
    tenant_config: TenantConfig, role: TenantRole
) -> TenantCredentials:
    """
    Build the credentials for one tenant from the tenants CSV and environment.

    Args:
        tenant_config: Parsed tenants CSV
        role: Which tenant to build credentials for

    Returns:
        TenantCredentials: Configured instance

    Raises:
        MissingConfigurationError: If the client ID or secret is not set
    """
    prefix = _env_prefix(role)
    client_id = os.getenv(f"{prefix}CLIENT_ID")
    client_secret = os.getenv(f"{prefix}CLIENT_SECRET")

    missing = [
        key
        for key, value in (
            (f"{prefix}CLIENT_ID", client_id),
            (f"{prefix}CLIENT_SECRET", client_secret),
        )
        if not value
    ]
    if missing:
        raise MissingConfigurationError(
            f"{role.value} tenant credentials are incomplete", missing_keys=missing
        )

    credentials = TenantCredentials(
        tenant_id=tenant_config.tenant_id_for(role),
        admin_upn=tenant_config.admin_upn_for(role),
        client_id=client_id,  # type: ignore[arg-type]
        client_secret=client_secret,  # type: ignore[arg-type]
        role=role,
    )
    logger.debug(f"Loaded {credentials.mask_secret()}")
    return credentials
