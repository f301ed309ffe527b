"""
Graph Directory Service

DirectoryService backed by Microsoft Graph for user objects and by the
Exchange Online admin client for mailboxes. Graph calls retry throttling (429)
and server errors (5xx); other failures are mapped by wrap_directory_exception.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from azure.core.exceptions import ClientAuthenticationError
from kiota_abstractions.base_request_configuration import RequestConfiguration
from msgraph.generated.models.o_data_errors.o_data_error import ODataError
from msgraph.generated.models.password_profile import PasswordProfile as GraphPasswordProfile
from msgraph.generated.models.user import User
from msgraph.generated.users.item.user_item_request_builder import UserItemRequestBuilder
from msgraph.graph_service_client import GraphServiceClient

from ..exceptions import (
    CutoverError,
    DirectoryObjectNotFoundError,
    wrap_directory_exception,
)
from .directory_service import (
    DirectoryService,
    DirectoryUser,
    MailboxInfo,
    MailboxUpdate,
    UserPropertiesUpdate,
)
from .exchange_admin_client import ExchangeAdminClient

logger = logging.getLogger(__name__)


class GraphDirectoryService(DirectoryService):
    """
    Live directory/mailbox service for one tenant.

    Directory users are read and updated through Microsoft Graph; mailbox
    properties go through the Exchange Online admin endpoint.
    """

    def __init__(
        self,
        client: GraphServiceClient,
        exchange: ExchangeAdminClient,
        tenant_id: str,
        max_retries: int = 5,
    ) -> None:
        self.client = client
        self.exchange = exchange
        self.tenant_id = tenant_id
        self.max_retries = max_retries

    async def _retry_with_backoff(
        self,
        operation: Callable[[], Awaitable[Any]],
        identity: Optional[str] = None,
        operation_name: Optional[str] = None,
    ) -> Any:
        """Execute operation with exponential backoff retry logic."""
        for attempt in range(self.max_retries):
            try:
                return await operation()
            except ODataError as e:
                status_code = getattr(e, "response_status_code", None)
                if status_code == 429 and attempt < self.max_retries - 1:
                    # Rate limited - use fixed retry time
                    sleep_time = 2
                    logger.warning(
                        f"Rate limited, retrying after {sleep_time} seconds (attempt {attempt + 1})"
                    )
                    await asyncio.sleep(sleep_time)
                    continue
                elif (
                    status_code is not None
                    and 500 <= status_code < 600
                    and attempt < self.max_retries - 1
                ):
                    # Server error - exponential backoff
                    sleep_time = 2**attempt
                    logger.warning(
                        f"Server error {status_code}, retrying after {sleep_time} seconds (attempt {attempt + 1})"
                    )
                    await asyncio.sleep(sleep_time)
                    continue
                else:
                    logger.error(f"Non-retryable error on {operation_name}: {e}")
                    raise wrap_directory_exception(e, identity, operation_name) from e
            except CutoverError:
                raise
            except ClientAuthenticationError as e:
                raise wrap_directory_exception(e, identity, operation_name) from e
            except Exception as e:
                if attempt == self.max_retries - 1:
                    logger.error(
                        f"{operation_name} failed after {self.max_retries} attempts: {e}"
                    )
                    raise wrap_directory_exception(e, identity, operation_name) from e
                sleep_time = 2**attempt
                logger.warning(
                    f"Unexpected error, retrying after {sleep_time} seconds (attempt {attempt + 1}): {e}"
                )
                await asyncio.sleep(sleep_time)

    async def get_user(self, identity: str) -> DirectoryUser:
        async def fetch_user() -> DirectoryUser:
            query_params = UserItemRequestBuilder.UserItemRequestBuilderGetQueryParameters(
                select=["id", "userPrincipalName"]
            )
            request_config = RequestConfiguration(query_parameters=query_params)
            user = await self.client.users.by_user_id(identity).get(
                request_configuration=request_config
            )
            if user is None or not user.id:
                raise DirectoryObjectNotFoundError(
                    f"User not found: {identity}", identity=identity, operation="GetUser"
                )
            return DirectoryUser(
                id=user.id, user_principal_name=user.user_principal_name or identity
            )

        return await self._retry_with_backoff(fetch_user, identity, "GetUser")

    async def update_user_properties(
        self, user_id: str, update: UserPropertiesUpdate
    ) -> None:
        body = User()
        if update.account_enabled is not None:
            body.account_enabled = update.account_enabled
        if update.user_principal_name is not None:
            body.user_principal_name = update.user_principal_name
        if update.mail is not None:
            body.mail = update.mail
        if update.password_profile is not None:
            body.password_profile = GraphPasswordProfile(
                password=update.password_profile.password,
                force_change_password_next_sign_in=update.password_profile.force_change_at_next_sign_in,
            )

        async def patch_user() -> None:
            await self.client.users.by_user_id(user_id).patch(body)

        await self._retry_with_backoff(patch_user, user_id, "UpdateUserProperties")
        logger.debug(f"Updated user {user_id}: {sorted(update.to_dict())}")

    async def get_mailbox(self, identity: str) -> MailboxInfo:
        mailbox = await self.exchange.get_mailbox(identity)
        addresses = mailbox.get("EmailAddresses") or []
        return MailboxInfo(identity=identity, proxy_addresses=[str(a) for a in addresses])

    async def update_mailbox(self, identity: str, update: MailboxUpdate) -> None:
        parameters: dict = {}
        if update.hidden_from_address_lists is not None:
            parameters["HiddenFromAddressListsEnabled"] = update.hidden_from_address_lists
        if update.email_addresses is not None:
            parameters["EmailAddresses"] = list(update.email_addresses)
        if update.windows_email_address is not None:
            parameters["WindowsEmailAddress"] = update.windows_email_address
        if update.sign_in_address is not None:
            parameters["MicrosoftOnlineServicesID"] = update.sign_in_address
        await self.exchange.set_mailbox(identity, parameters)
