"""
Directory/Mailbox Service interface.

The cutover core talks to a tenant only through this interface. The live
implementation is GraphDirectoryService; tests use an in-memory fake.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class MailboxInfo:
    """Mailbox as returned by a lookup."""

    identity: str
    proxy_addresses: List[str] = field(default_factory=list)


@dataclass
class DirectoryUser:
    """Directory user as returned by a lookup."""

    id: str
    user_principal_name: str


@dataclass
class PasswordProfile:
    password: str
    force_change_at_next_sign_in: bool = True


@dataclass
class UserPropertiesUpdate:
    """Partial update of directory user properties; None means unchanged."""

    account_enabled: Optional[bool] = None
    user_principal_name: Optional[str] = None
    mail: Optional[str] = None
    password_profile: Optional[PasswordProfile] = None

    def to_dict(self) -> Dict[str, Any]:
        """Changed properties only; the password itself is masked."""
        result: Dict[str, Any] = {}
        if self.account_enabled is not None:
            result["accountEnabled"] = self.account_enabled
        if self.user_principal_name is not None:
            result["userPrincipalName"] = self.user_principal_name
        if self.mail is not None:
            result["mail"] = self.mail
        if self.password_profile is not None:
            result["passwordProfile"] = {
                "password": "***",
                "forceChangePasswordNextSignIn": self.password_profile.force_change_at_next_sign_in,
            }
        return result


@dataclass
class MailboxUpdate:
    """Partial update of mailbox properties; None means unchanged."""

    hidden_from_address_lists: Optional[bool] = None
    email_addresses: Optional[List[str]] = None
    windows_email_address: Optional[str] = None
    sign_in_address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.hidden_from_address_lists is not None:
            result["hiddenFromAddressLists"] = self.hidden_from_address_lists
        if self.email_addresses is not None:
            result["emailAddresses"] = list(self.email_addresses)
        if self.windows_email_address is not None:
            result["windowsEmailAddress"] = self.windows_email_address
        if self.sign_in_address is not None:
            result["signInAddress"] = self.sign_in_address
        return result


class DirectoryService(ABC):
    """
    Abstract directory/mailbox service for one tenant.

    Implementations own their request timeouts and retry policy. They raise
    DirectoryObjectNotFoundError for unknown identities, DirectorySessionError
    when the tenant session is unusable and DirectoryServiceError otherwise.
    """

    tenant_id: str = ""

    @abstractmethod
    async def get_mailbox(self, identity: str) -> MailboxInfo:
        """Look up a mailbox and its proxy addresses."""

    @abstractmethod
    async def get_user(self, identity: str) -> DirectoryUser:
        """Look up a directory user by UPN or object id."""

    @abstractmethod
    async def update_user_properties(
        self, user_id: str, update: UserPropertiesUpdate
    ) -> None:
        """Apply a partial update to a directory user."""

    @abstractmethod
    async def update_mailbox(self, identity: str, update: MailboxUpdate) -> None:
        """Apply a partial update to a mailbox."""
