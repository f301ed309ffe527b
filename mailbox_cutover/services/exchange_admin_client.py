"""
Exchange Online Admin Client

Async HTTP client for the Exchange Online admin REST endpoint
(``/adminapi/beta/{tenant}/InvokeCommand``). Mailbox proxy addresses,
address-list visibility and the sign-in address are Exchange properties that
Microsoft Graph does not write, so Get-Mailbox/Set-Mailbox go through here.

Philosophy:
- One httpx.AsyncClient per tenant session, closed with the session
- Throttling (429) and server errors (5xx) are retried with backoff
- Everything else is mapped into the cutover exception hierarchy
"""

import asyncio
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

import httpx
from azure.core.credentials import TokenCredential

from ..exceptions import (
    DirectoryObjectNotFoundError,
    DirectoryServiceError,
    wrap_directory_exception,
)

logger = logging.getLogger(__name__)

EXCHANGE_SCOPE = "https://outlook.office365.com/.default"
EXCHANGE_ADMIN_BASE_URL = "https://outlook.office365.com/adminapi/beta"

_NOT_FOUND_MARKERS = ("couldn't be found", "could not be found", "ManagementObjectNotFound")
DEFAULT_RETRY_AFTER = 2


def retry_after_seconds(value: Optional[str]) -> int:
    """Seconds to wait from a Retry-After header (delay-seconds or HTTP-date)."""
    if not value:
        return DEFAULT_RETRY_AFTER
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.debug(f"Unparseable Retry-After header {value!r}")
        return DEFAULT_RETRY_AFTER
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0, int((retry_at - datetime.now(timezone.utc)).total_seconds()))


class ExchangeAdminClient:
    """
    Invokes Exchange Online cmdlets over REST for one tenant.

    Requests are anchored on the tenant admin mailbox (X-AnchorMailbox) so
    Exchange routes them to a consistent backend.
    """

    def __init__(
        self,
        credential: TokenCredential,
        tenant_id: str,
        anchor_upn: str,
        timeout: float = 120.0,
        max_retries: int = 5,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            credential: Azure credential able to issue Exchange tokens
            tenant_id: Tenant the cmdlets run against
            anchor_upn: Admin UPN used as routing anchor
            timeout: Request timeout in seconds
            max_retries: Attempts for throttled or failing requests
            http_client: Optional preconfigured client (tests)
        """
        self.credential = credential
        self.tenant_id = tenant_id
        self.anchor_upn = anchor_upn
        self.max_retries = max_retries
        self._http_client = http_client or httpx.AsyncClient(
            base_url=f"{EXCHANGE_ADMIN_BASE_URL}/{tenant_id}",
            timeout=httpx.Timeout(timeout),
        )

    async def __aenter__(self) -> "ExchangeAdminClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http_client.aclose()

    async def _get_token(self) -> str:
        token = await asyncio.to_thread(self.credential.get_token, EXCHANGE_SCOPE)
        return token.token

    async def invoke_command(
        self, cmdlet: str, parameters: Dict[str, Any], identity: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Run a cmdlet and return its output objects.

        Args:
            cmdlet: Cmdlet name, e.g. "Get-Mailbox"
            parameters: Cmdlet parameters
            identity: Identity the call is about (error context only)

        Returns:
            List of result objects (the "value" array of the response)
        """
        body = {"CmdletInput": {"CmdletName": cmdlet, "Parameters": parameters}}

        for attempt in range(self.max_retries):
            try:
                headers = {
                    "Authorization": f"Bearer {await self._get_token()}",
                    "X-AnchorMailbox": f"UPN:{self.anchor_upn}",
                    "X-ResponseFormat": "json",
                }
                response = await self._http_client.post(
                    "/InvokeCommand", json=body, headers=headers
                )
            except httpx.TransportError as e:
                if attempt == self.max_retries - 1:
                    logger.error(f"{cmdlet} failed after {self.max_retries} attempts: {e}")
                    raise wrap_directory_exception(e, identity, cmdlet) from e
                sleep_time = 2**attempt
                logger.warning(
                    f"Transport error on {cmdlet}, retrying after {sleep_time} seconds (attempt {attempt + 1}): {e}"
                )
                await asyncio.sleep(sleep_time)
                continue

            status_code = response.status_code
            if status_code == 429 and attempt < self.max_retries - 1:
                sleep_time = retry_after_seconds(response.headers.get("Retry-After"))
                logger.warning(
                    f"Rate limited on {cmdlet}, retrying after {sleep_time} seconds (attempt {attempt + 1})"
                )
                await asyncio.sleep(sleep_time)
                continue
            if 500 <= status_code < 600 and attempt < self.max_retries - 1:
                sleep_time = 2**attempt
                logger.warning(
                    f"Server error {status_code} on {cmdlet}, retrying after {sleep_time} seconds (attempt {attempt + 1})"
                )
                await asyncio.sleep(sleep_time)
                continue

            if status_code >= 400:
                raise self._error_for_response(response, cmdlet, identity)

            if not response.content:
                return []
            payload = response.json()
            return list(payload.get("value", []))

        raise DirectoryServiceError(
            f"{cmdlet} failed after {self.max_retries} attempts",
            identity=identity,
            operation=cmdlet,
        )

    def _error_for_response(
        self, response: httpx.Response, cmdlet: str, identity: Optional[str]
    ) -> Exception:
        message = response.text
        if "json" in response.headers.get("content-type", ""):
            error = response.json().get("error") or {}
            message = error.get("message", message)

        if response.status_code == 404 or any(m in message for m in _NOT_FOUND_MARKERS):
            return DirectoryObjectNotFoundError(
                f"Mailbox not found: {identity}",
                identity=identity,
                operation=cmdlet,
                status_code=response.status_code,
            )
        request_error = httpx.HTTPStatusError(
            message, request=response.request, response=response
        )
        return wrap_directory_exception(request_error, identity, cmdlet)

    async def get_mailbox(self, identity: str) -> Dict[str, Any]:
        """Run Get-Mailbox for a single identity."""
        results = await self.invoke_command(
            "Get-Mailbox", {"Identity": identity}, identity=identity
        )
        if not results:
            raise DirectoryObjectNotFoundError(
                f"Mailbox not found: {identity}",
                identity=identity,
                operation="Get-Mailbox",
            )
        return results[0]

    async def set_mailbox(self, identity: str, parameters: Dict[str, Any]) -> None:
        """Run Set-Mailbox with the given parameters."""
        params = {"Identity": identity}
        params.update(parameters)
        await self.invoke_command("Set-Mailbox", params, identity=identity)
