"""Unit tests for proxy address reconciliation.

Philosophy:
- Worked examples pin the exact output order
- Structural properties (one primary, no duplicates, fixed point) are
  checked over a spread of awkward inputs
"""

import pytest

from mailbox_cutover.address_set import AddressKind, AddressSet
from mailbox_cutover.reconciliation import (
    is_valid_domain_filter,
    normalize_alias,
    reconcile,
)

AWKWARD_INPUTS = [
    # (existing, target_domain, new_primary, cli_aliases)
    ([], "contoso.com", "new@fabrikam.com", []),
    (["SMTP:old@contoso.com"], "contoso.com", "new@fabrikam.com", []),
    (["SMTP:keep@c.com", "SMTP:also@d.com"], "contoso.com", "new@fabrikam.com", []),
    (
        ["smtp:dup@x.com", "SMTP:DUP@x.com", "smtp:Dup@X.com"],
        "contoso.com",
        "new@fabrikam.com",
        ["dup@x.com"],
    ),
    (
        ["SMTP:new@fabrikam.com", "smtp:NEW@fabrikam.com"],
        "contoso.com",
        "new@fabrikam.com",
        ["SMTP:new@fabrikam.com"],
    ),
    (
        ["X500:/o=Org/cn=jane", "SIP:jane@contoso.com", "smtp:jane@contoso.com"],
        "contoso.com",
        "jane@fabrikam.com",
        ["  ", "jane.doe@fabrikam.com"],
    ),
    (["SMTP:jane@contoso.com"], "", "jane@contoso.com", []),
    (["SMTP:jane@contoso.com"], "bad domain", "jane@fabrikam.com", ["SMTP:boss@fabrikam.com"]),
]


# ========================================================================
# Worked examples
# ========================================================================


def test_discarded_address_readded_from_csv():
    existing = AddressSet.from_strings(["SMTP:old@a.com", "smtp:alt@b.com"])

    result, diagnostics = reconcile(existing, "a.com", "new@b.com", ["old@a.com"])

    assert result.to_strings() == ["smtp:alt@b.com", "smtp:old@a.com", "SMTP:new@b.com"]
    assert diagnostics.discarded == ["SMTP:old@a.com"]
    assert diagnostics.added_aliases == ["smtp:old@a.com"]
    assert diagnostics.promoted_primary == "SMTP:new@b.com"


def test_csv_alias_already_present_is_skipped():
    existing = AddressSet.from_strings(["SMTP:jane@c.com", "smtp:jd@fabrikam.com"])

    result, diagnostics = reconcile(existing, "contoso.com", "jane@fabrikam.com", ["JD@Fabrikam.com"])

    assert diagnostics.skipped_duplicates == ["smtp:JD@Fabrikam.com"]
    assert [a.key for a in result].count("smtp:jd@fabrikam.com") == 1
    result.validate()


def test_existing_primary_is_demoted():
    existing = AddressSet.from_strings(["SMTP:keep@c.com"])

    result, diagnostics = reconcile(existing, "a.com", "new@b.com")

    assert result.to_strings() == ["smtp:keep@c.com", "SMTP:new@b.com"]
    assert diagnostics.demoted_primaries == ["SMTP:keep@c.com"]


def test_domain_match_is_case_insensitive():
    existing = AddressSet.from_strings(["smtp:a@CONTOSO.com", "smtp:b@fabrikam.com"])

    result, _ = reconcile(existing, "Contoso.COM", "new@fabrikam.com")

    assert result.to_strings() == ["smtp:b@fabrikam.com", "SMTP:new@fabrikam.com"]


def test_subdomain_is_not_target_domain():
    existing = AddressSet.from_strings(["smtp:a@mail.contoso.com"])

    result, _ = reconcile(existing, "contoso.com", "new@fabrikam.com")

    assert "smtp:a@mail.contoso.com" in result


def test_non_smtp_addresses_pass_through():
    existing = AddressSet.from_strings(["SIP:jane@contoso.com", "X500:/o=Org/cn=jane"])

    result, diagnostics = reconcile(existing, "contoso.com", "jane@fabrikam.com")

    assert result.to_strings() == [
        "SIP:jane@contoso.com",
        "X500:/o=Org/cn=jane",
        "SMTP:jane@fabrikam.com",
    ]
    assert diagnostics.discarded == []


def test_existing_alias_of_new_primary_is_dropped():
    existing = AddressSet.from_strings(["SMTP:jane@staging.com", "smtp:Jane@Fabrikam.com"])

    result, diagnostics = reconcile(existing, "contoso.com", "jane@fabrikam.com")

    assert result.to_strings() == ["smtp:jane@staging.com", "SMTP:jane@fabrikam.com"]
    assert diagnostics.discarded == ["smtp:Jane@Fabrikam.com"]


def test_csv_alias_equal_to_new_primary_is_removed():
    existing = AddressSet.from_strings(["SMTP:jane@staging.com"])

    result, diagnostics = reconcile(
        existing, "contoso.com", "jane@fabrikam.com", ["jane@fabrikam.com"]
    )

    assert result.to_strings() == ["smtp:jane@staging.com", "SMTP:jane@fabrikam.com"]
    assert diagnostics.removed_primary_aliases == ["smtp:jane@fabrikam.com"]


def test_existing_duplicates_collapse_primary_wins():
    existing = AddressSet.from_strings(["smtp:x@c.com", "SMTP:X@c.com"])

    result, diagnostics = reconcile(existing, "a.com", "new@b.com")

    # The primary took the alias's slot before being demoted
    assert result.to_strings() == ["smtp:X@c.com", "SMTP:new@b.com"]
    assert diagnostics.collapsed_duplicates == ["SMTP:X@c.com"]


@pytest.mark.parametrize("domain", ["", "   ", None, "user@contoso.com", "contoso .com"])
def test_malformed_domain_filter_keeps_everything(domain):
    existing = AddressSet.from_strings(["SMTP:a@contoso.com", "smtp:b@contoso.com"])

    result, diagnostics = reconcile(existing, domain, "new@fabrikam.com")

    assert diagnostics.discarded == []
    assert result.to_strings() == [
        "smtp:a@contoso.com",
        "smtp:b@contoso.com",
        "SMTP:new@fabrikam.com",
    ]


def test_reconcile_does_not_mutate_input():
    existing = AddressSet.from_strings(["SMTP:old@a.com", "smtp:alt@b.com"])
    before = existing.to_strings()

    reconcile(existing, "a.com", "new@b.com", ["x@b.com"])

    assert existing.to_strings() == before


# ========================================================================
# Structural properties
# ========================================================================


@pytest.mark.parametrize("existing,domain,new_primary,aliases", AWKWARD_INPUTS)
def test_exactly_one_primary(existing, domain, new_primary, aliases):
    result, _ = reconcile(AddressSet.from_strings(existing), domain, new_primary, aliases)

    primaries = [a for a in result if a.kind == AddressKind.PRIMARY]
    assert len(primaries) == 1
    assert primaries[0].value == f"SMTP:{new_primary}"


@pytest.mark.parametrize("existing,domain,new_primary,aliases", AWKWARD_INPUTS)
def test_no_case_insensitive_duplicates(existing, domain, new_primary, aliases):
    result, _ = reconcile(AddressSet.from_strings(existing), domain, new_primary, aliases)

    keys = [a.key for a in result]
    assert len(keys) == len(set(keys))
    result.validate()


@pytest.mark.parametrize("existing,domain,new_primary,aliases", AWKWARD_INPUTS)
def test_rerun_keeps_the_same_addresses(existing, domain, new_primary, aliases):
    first, _ = reconcile(AddressSet.from_strings(existing), domain, new_primary, aliases)

    second, _ = reconcile(first, domain, new_primary, aliases)
    third, _ = reconcile(second, domain, new_primary, aliases)

    assert second.same_addresses(first)
    assert third == second


@pytest.mark.parametrize("existing,domain,new_primary,aliases", AWKWARD_INPUTS)
def test_second_run_without_aliases_is_a_fixed_point(existing, domain, new_primary, aliases):
    first, _ = reconcile(AddressSet.from_strings(existing), domain, new_primary)

    second, _ = reconcile(first, domain, new_primary)

    assert second == first


def test_target_domain_alias_settles_after_second_run():
    existing = AddressSet.from_strings(["SMTP:s@stage.com"])
    aliases = ["a@contoso.com", "x@fabrikam.com"]

    first, _ = reconcile(existing, "contoso.com", "p@fabrikam.com", aliases)
    second, diagnostics = reconcile(first, "contoso.com", "p@fabrikam.com", aliases)
    third, _ = reconcile(second, "contoso.com", "p@fabrikam.com", aliases)

    assert first.to_strings() == [
        "smtp:s@stage.com",
        "smtp:a@contoso.com",
        "smtp:x@fabrikam.com",
        "SMTP:p@fabrikam.com",
    ]
    assert second.to_strings() == [
        "smtp:s@stage.com",
        "smtp:x@fabrikam.com",
        "smtp:a@contoso.com",
        "SMTP:p@fabrikam.com",
    ]
    assert diagnostics.discarded == ["smtp:a@contoso.com", "SMTP:p@fabrikam.com"]
    assert second.same_addresses(first)
    assert third == second


# ========================================================================
# Helpers
# ========================================================================


def test_is_valid_domain_filter():
    assert is_valid_domain_filter("contoso.com")
    assert is_valid_domain_filter("  contoso.com  ")
    assert not is_valid_domain_filter("")
    assert not is_valid_domain_filter(None)
    assert not is_valid_domain_filter("a@contoso.com")
    assert not is_valid_domain_filter("contoso\t.com")


def test_normalize_alias():
    assert normalize_alias("  jane@x.com ").value == "smtp:jane@x.com"
    assert normalize_alias("smtp:jane@x.com").value == "smtp:jane@x.com"
    assert normalize_alias("SMTP:jane@x.com").value == "SMTP:jane@x.com"
    assert normalize_alias("   ") is None
