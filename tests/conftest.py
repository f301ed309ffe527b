"""
Shared test fixtures for mailbox cutover tests.

The in-memory FakeDirectoryService stands in for a tenant: it holds mailboxes
keyed by identity, records every mutating call and can be told to fail on a
lookup (optionally for one identity, "get_mailbox:<identity>") or on a
specific cutover step.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from mailbox_cutover.exceptions import DirectoryObjectNotFoundError
from mailbox_cutover.models import MailboxType, UserRecord
from mailbox_cutover.services.directory_service import (
    DirectoryService,
    DirectoryUser,
    MailboxInfo,
    MailboxUpdate,
    UserPropertiesUpdate,
)


class FakeDirectoryService(DirectoryService):
    """In-memory tenant."""

    def __init__(
        self,
        mailboxes: Optional[Dict[str, List[str]]] = None,
        tenant_id: str = "22222222-2222-2222-2222-222222222222",
    ) -> None:
        self.tenant_id = tenant_id
        self.mailboxes: Dict[str, List[str]] = {}
        self.user_ids: Dict[str, str] = {}
        self.calls: List[Tuple[str, str, dict]] = []
        self.lookups: List[Tuple[str, str]] = []
        self.fail_on: Dict[str, Exception] = {}
        self.delays: Dict[str, float] = {}
        self.active = 0
        self.max_active = 0
        for identity, addresses in (mailboxes or {}).items():
            self.add_mailbox(identity, addresses)

    def add_mailbox(self, identity: str, addresses: List[str]) -> None:
        self.mailboxes[identity.lower()] = list(addresses)
        self.user_ids[f"id-{identity.lower()}"] = identity.lower()

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise self.fail_on[operation]

    async def get_mailbox(self, identity: str) -> MailboxInfo:
        self.lookups.append(("get_mailbox", identity))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(identity.lower(), 0))
            self._maybe_fail("get_mailbox")
            self._maybe_fail(f"get_mailbox:{identity.lower()}")
            if identity.lower() not in self.mailboxes:
                raise DirectoryObjectNotFoundError(
                    f"Mailbox not found: {identity}", identity=identity, operation="Get-Mailbox"
                )
            return MailboxInfo(identity=identity, proxy_addresses=list(self.mailboxes[identity.lower()]))
        finally:
            self.active -= 1

    async def get_user(self, identity: str) -> DirectoryUser:
        self.lookups.append(("get_user", identity))
        self._maybe_fail("get_user")
        if identity.lower() not in self.mailboxes:
            raise DirectoryObjectNotFoundError(
                f"User not found: {identity}", identity=identity, operation="GetUser"
            )
        return DirectoryUser(id=f"id-{identity.lower()}", user_principal_name=identity)

    async def update_user_properties(self, user_id: str, update: UserPropertiesUpdate) -> None:
        if update.account_enabled is not None:
            self._maybe_fail("AccountEnabled")
        if update.user_principal_name is not None:
            self._maybe_fail("IdentityRename")
        if update.password_profile is not None:
            self._maybe_fail("PasswordReset")
        self.calls.append(("update_user_properties", user_id, update.to_dict()))

    async def update_mailbox(self, identity: str, update: MailboxUpdate) -> None:
        if update.hidden_from_address_lists is not None:
            self._maybe_fail("AddressListVisibility")
        if update.email_addresses is not None:
            self._maybe_fail("AddressCommit")
            self.mailboxes[self.user_ids[identity]] = list(update.email_addresses)
        self.calls.append(("update_mailbox", identity, update.to_dict()))


@pytest.fixture
def fake_directory() -> FakeDirectoryService:
    """Tenant holding the staging mailbox of the sample record."""
    return FakeDirectoryService(
        {
            "jane@staging.fabrikam.com": [
                "SMTP:jane@staging.fabrikam.com",
                "smtp:jane@contoso.com",
                "smtp:j.doe@contoso.com",
                "X500:/o=ExchangeLabs/ou=Exchange/cn=Recipients/cn=jane",
            ]
        }
    )


@pytest.fixture
def user_record() -> UserRecord:
    """A user mailbox moving from contoso.com to fabrikam.com."""
    return UserRecord(
        source_email="jane@contoso.com",
        post_migration_source_email="jane@contoso.onmicrosoft.com",
        destination_staging_email="jane@staging.fabrikam.com",
        post_migration_destination_email="jane@fabrikam.com",
        destination_aliases=("jane.doe@fabrikam.com", "smtp:jd@fabrikam.com"),
        destination_password="Welcome-2024!",  # pragma: allowlist secret
        account_enabled_at_source=False,
        account_enabled_at_destination=True,
        source_hide_from_gal=True,
        destination_hide_from_gal=False,
        mailbox_type=MailboxType.USER,
        row_number=2,
    )


@pytest.fixture
def make_record(user_record):
    """Factory for records derived from the sample record."""
    from dataclasses import replace

    def _make(**overrides) -> UserRecord:
        return replace(user_record, **overrides)

    return _make


@pytest.fixture(autouse=True)
def tenant_credentials_env(monkeypatch):
    """App credentials for both tenants."""
    monkeypatch.setenv("AZURE_SOURCE_TENANT_CLIENT_ID", "source-client-id")
    monkeypatch.setenv("AZURE_SOURCE_TENANT_CLIENT_SECRET", "source-secret")  # pragma: allowlist secret
    monkeypatch.setenv("AZURE_DESTINATION_TENANT_CLIENT_ID", "destination-client-id")
    monkeypatch.setenv(
        "AZURE_DESTINATION_TENANT_CLIENT_SECRET", "destination-secret"  # pragma: allowlist secret
    )


@pytest.fixture
def directory_factory():
    """Build a FakeDirectoryService with custom mailboxes."""
    return FakeDirectoryService
