"""
Tenant session: one authenticated directory service per tenant per run.

The session is acquired once, verified by requesting a Graph token, handed to
every record of the run and closed when the run ends.
"""

import asyncio
import contextlib
import logging
from typing import AsyncIterator

from azure.core.exceptions import ClientAuthenticationError
from msgraph.graph_service_client import GraphServiceClient

from ..credential_provider import TenantCredentialProvider
from ..exceptions import DirectorySessionError
from ..models import TenantRole
from .exchange_admin_client import ExchangeAdminClient
from .graph_directory_service import GraphDirectoryService

logger = logging.getLogger(__name__)

GRAPH_SCOPE = "https://graph.microsoft.com/.default"


@contextlib.asynccontextmanager
async def open_tenant_session(
    provider: TenantCredentialProvider,
    role: TenantRole,
    timeout: float = 120.0,
    max_retries: int = 5,
) -> AsyncIterator[GraphDirectoryService]:
    """
    Open the directory session for the targeted tenant.

    Raises:
        MissingConfigurationError: If the tenant credentials are not configured
        DirectorySessionError: If the tenant rejects the credentials
    """
    tenant_creds = provider.get_tenant_credentials(role)
    credential, tenant_id = provider.get_credential(role)

    try:
        await asyncio.to_thread(credential.get_token, GRAPH_SCOPE)
    except ClientAuthenticationError as e:
        provider.close()
        raise DirectorySessionError(
            f"Could not authenticate to {role.value} tenant",
            tenant_id=tenant_id,
            cause=e,
        ) from e

    client = GraphServiceClient(credentials=credential, scopes=[GRAPH_SCOPE])
    exchange = ExchangeAdminClient(
        credential,
        tenant_id,
        tenant_creds.admin_upn,
        timeout=timeout,
        max_retries=max_retries,
    )
    logger.info(f"Opened {role.value} tenant session: tenant={tenant_id}")
    try:
        yield GraphDirectoryService(client, exchange, tenant_id, max_retries=max_retries)
    finally:
        await exchange.close()
        provider.close()
        logger.info(f"Closed {role.value} tenant session: tenant={tenant_id}")
