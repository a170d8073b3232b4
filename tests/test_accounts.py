import pytest

from outreach.accounts import available_accounts, load_config, resolve_account
from outreach.errors import (
    AccountNotFoundError,
    ConfigMissingError,
    CredentialNotConfiguredError,
)

ENV = """\
# Sender accounts
DEFAULT_ACCOUNT=personal

GMAIL_USER_personal=me@gmail.com
GMAIL_PASSWORD_personal=abcd efgh ijkl mnop
GMAIL_NAME_personal=Jo Example

GMAIL_USER_work=jo@company.com
GMAIL_PASSWORD_work=PLACEHOLDER_set_me

GMAIL_USER_side=side@gmail.com
GMAIL_PASSWORD_side=secret=with=equals
"""


@pytest.fixture
def config(tmp_path):
    path = tmp_path / ".env"
    path.write_text(ENV)
    return load_config(path)


def test_missing_env_file(tmp_path):
    with pytest.raises(ConfigMissingError):
        load_config(tmp_path / ".env")


def test_default_account(config):
    account = resolve_account(config)
    assert account.name == "personal"
    assert account.address == "me@gmail.com"
    assert account.password == "abcd efgh ijkl mnop"
    assert account.formatted_address == '"Jo Example" <me@gmail.com>'


def test_value_may_contain_equals(config):
    assert resolve_account(config, "side").password == "secret=with=equals"


def test_display_name_fallbacks(config):
    assert resolve_account(config, "side").display_name == "side@gmail.com"
    assert resolve_account(config, "side", default_display_name="Side Desk").display_name == "Side Desk"


def test_unknown_account_lists_available(config):
    with pytest.raises(AccountNotFoundError) as excinfo:
        resolve_account(config, "nope")
    assert excinfo.value.available == {
        "personal": "me@gmail.com",
        "work": "jo@company.com",
        "side": "side@gmail.com",
    }


def test_placeholder_password_rejected(config):
    with pytest.raises(CredentialNotConfiguredError) as excinfo:
        resolve_account(config, "work")
    assert excinfo.value.account == "work"


def test_no_default_and_no_from():
    with pytest.raises(ConfigMissingError):
        resolve_account({"GMAIL_USER_a": "a@gmail.com"})


def test_available_accounts_ignores_other_keys():
    config = {"GMAIL_USER_": "x", "GMAIL_USER_a": "a@gmail.com", "OTHER": "1"}
    assert available_accounts(config) == {"a": "a@gmail.com"}


def test_repr_hides_password(config):
    assert "abcd" not in repr(resolve_account(config))
