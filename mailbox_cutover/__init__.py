"""
Mailbox Cutover

Tenant-to-tenant mailbox identity cutover: flips account status, address
list visibility, sign-in name and proxy addresses for every mailbox listed in
a users CSV, against either the source or the destination tenant.
"""

__version__ = "0.1.0"
