import pytest

from zoho_desk_mcp.auth import CredentialStore
from zoho_desk_mcp.client import ZohoDeskClient

ZOHO_ENV_VARS = (
    "ZOHO_ACCESS_TOKEN",
    "ZOHO_ORG_ID",
    "ZOHO_CLIENT_ID",
    "ZOHO_CLIENT_SECRET",
    "ZOHO_REFRESH_TOKEN",
    "ZOHO_WEBHOOK_URL",
    "ZOHO_CONFIG_FILE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ZOHO_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # keep a developer's ./config.json out of the tests
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def credentials():
    return CredentialStore(
        access_token="old-token",
        org_id="org-1",
        refresh_token="refresh-1",
        client_id="client-1",
        client_secret="secret-1",
    )


@pytest.fixture
def static_credentials():
    return CredentialStore(access_token="old-token", org_id="org-1")


@pytest.fixture
def client(credentials):
    return ZohoDeskClient(credentials)
