"""Tests for users and tenants CSV ingestion."""

import pytest

from mailbox_cutover.csv_loader import (
    USERS_COLUMNS,
    parse_bool,
    parse_mailbox_type,
    read_tenants_csv,
    read_users_csv,
    split_aliases,
)
from mailbox_cutover.exceptions import InvalidInputError, MissingInputFileError
from mailbox_cutover.models import MailboxType, TenantRole

USERS_HEADER = ",".join(USERS_COLUMNS)
TENANTS_HEADER = "SourceTenantId,SourceAdminUPN,DestinationTenantId,DestinationAdminUPN"


def write_users(tmp_path, *rows):
    path = tmp_path / "users.csv"
    path.write_text("\n".join((USERS_HEADER,) + rows) + "\n", encoding="utf-8")
    return path


class TestParseBool:
    """Tests for boolean parsing."""

    @pytest.mark.parametrize("value", ["True", "true", " YES ", "y", "1", "$true"])
    def test_true_values(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["False", "no", "N", "0", "$False"])
    def test_false_values(self, value):
        assert parse_bool(value) is False

    @pytest.mark.parametrize("value", ["", None, "maybe", "Tru"])
    def test_unrecognized_values_fail(self, value):
        with pytest.raises(InvalidInputError) as exc_info:
            parse_bool(value, column="SourceHideFromGAL", row=7)
        assert exc_info.value.context == {"row": 7, "column": "SourceHideFromGAL"}


class TestParseMailboxType:
    """Tests for mailbox type parsing."""

    @pytest.mark.parametrize("value", ["User", "user", "UserMailbox"])
    def test_user(self, value):
        assert parse_mailbox_type(value) == MailboxType.USER

    @pytest.mark.parametrize("value", ["Shared", "SharedMailbox"])
    def test_shared(self, value):
        assert parse_mailbox_type(value) == MailboxType.SHARED

    def test_unknown(self):
        with pytest.raises(InvalidInputError, match="mailbox type"):
            parse_mailbox_type("RoomMailbox", row=3)


def test_split_aliases():
    assert split_aliases("a@x.com; smtp:b@x.com;;") == ("a@x.com", "smtp:b@x.com")
    assert split_aliases("") == ()
    assert split_aliases(None) == ()


class TestReadUsersCsv:
    """Tests for the users CSV."""

    def test_reads_rows(self, tmp_path):
        path = write_users(
            tmp_path,
            "jane@contoso.com,jane@contoso.onmicrosoft.com,jane@staging.fabrikam.com,"
            "jane@fabrikam.com,jd@fabrikam.com;jane.doe@fabrikam.com,Secret-1,"
            "False,True,True,False,User",
            "team@contoso.com,team@contoso.onmicrosoft.com,team@staging.fabrikam.com,"
            "team@fabrikam.com,,,False,True,True,False,Shared",
        )

        records = read_users_csv(path)

        assert len(records) == 2
        jane, team = records
        assert jane.source_email == "jane@contoso.com"
        assert jane.destination_aliases == ("jd@fabrikam.com", "jane.doe@fabrikam.com")
        assert jane.destination_password == "Secret-1"  # pragma: allowlist secret
        assert jane.account_enabled_at_source is False
        assert jane.account_enabled_at_destination is True
        assert jane.source_hide_from_gal is True
        assert jane.destination_hide_from_gal is False
        assert jane.row_number == 2
        assert team.mailbox_type == MailboxType.SHARED
        assert team.destination_aliases == ()
        assert team.row_number == 3

    def test_blank_rows_are_skipped_but_counted(self, tmp_path):
        path = write_users(
            tmp_path,
            ",,,,,,,,,,",
            "a@contoso.com,a@x.com,a@s.com,a@f.com,,,true,true,true,false,User",
        )

        records = read_users_csv(path)

        assert len(records) == 1
        assert records[0].row_number == 3

    def test_bad_boolean_fails_the_load(self, tmp_path):
        path = write_users(
            tmp_path,
            "a@contoso.com,a@x.com,a@s.com,a@f.com,,,true,maybe,true,false,User",
        )

        with pytest.raises(InvalidInputError) as exc_info:
            read_users_csv(path)

        assert exc_info.value.context["column"] == "AccountEnabledAtDestination"
        assert exc_info.value.context["row"] == 2

    def test_missing_column(self, tmp_path):
        path = tmp_path / "users.csv"
        path.write_text("SourceEmail,MailboxType\na@contoso.com,User\n")

        with pytest.raises(InvalidInputError, match="missing columns"):
            read_users_csv(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(MissingInputFileError) as exc_info:
            read_users_csv(tmp_path / "nope.csv")
        assert exc_info.value.error_code == "MISSING_INPUT_FILE"

    def test_utf8_bom_header(self, tmp_path):
        path = tmp_path / "users.csv"
        path.write_text(
            USERS_HEADER + "\na@contoso.com,a@x.com,a@s.com,a@f.com,,,1,1,0,0,User\n",
            encoding="utf-8-sig",
        )

        assert read_users_csv(path)[0].source_email == "a@contoso.com"

    def test_extra_fields_name_the_row(self, tmp_path):
        # Unquoted comma inside DestinationAliases
        path = write_users(
            tmp_path,
            "a@contoso.com,a@x.com,a@s.com,a@f.com,,,true,true,true,false,User",
            "b@contoso.com,b@x.com,b@s.com,b@f.com,b1@f.com,b2@f.com,,true,true,true,false,User",
        )

        with pytest.raises(InvalidInputError, match="more field") as exc_info:
            read_users_csv(path)

        assert exc_info.value.context["row"] == 3
        assert exc_info.value.context["path"] == str(path)

    def test_non_utf8_file(self, tmp_path):
        path = tmp_path / "users.csv"
        path.write_bytes(
            (USERS_HEADER + "\nJos\xe9@contoso.com,a@x.com,a@s.com,a@f.com,,,1,1,0,0,User\n").encode(
                "latin-1"
            )
        )

        with pytest.raises(InvalidInputError, match="not UTF-8") as exc_info:
            read_users_csv(path)

        assert isinstance(exc_info.value.cause, UnicodeDecodeError)


class TestReadTenantsCsv:
    """Tests for the tenants CSV."""

    def test_first_row_is_used(self, tmp_path):
        path = tmp_path / "tenants.csv"
        path.write_text(
            TENANTS_HEADER
            + "\nsrc-tenant,admin@contoso.com,dst-tenant,admin@fabrikam.com"
            + "\nother,other@x.com,other,other@y.com\n"
        )

        config = read_tenants_csv(path)

        assert config.tenant_id_for(TenantRole.SOURCE) == "src-tenant"
        assert config.admin_upn_for(TenantRole.DESTINATION) == "admin@fabrikam.com"

    def test_no_data_rows(self, tmp_path):
        path = tmp_path / "tenants.csv"
        path.write_text(TENANTS_HEADER + "\n")

        with pytest.raises(InvalidInputError, match="no data rows"):
            read_tenants_csv(path)

    def test_empty_value(self, tmp_path):
        path = tmp_path / "tenants.csv"
        path.write_text(TENANTS_HEADER + "\nsrc-tenant,,dst-tenant,admin@fabrikam.com\n")

        with pytest.raises(InvalidInputError, match="source_admin_upn"):
            read_tenants_csv(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(MissingInputFileError):
            read_tenants_csv(tmp_path / "tenants.csv")
