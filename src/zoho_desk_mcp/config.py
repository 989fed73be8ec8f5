import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.json"


class ConfigError(Exception):
    """Raised when Zoho Desk credentials cannot be loaded."""


class ZohoConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., alias="accessToken", min_length=1)
    org_id: str = Field(..., alias="orgId", min_length=1)
    client_id: Optional[str] = Field(None, alias="clientId")
    client_secret: Optional[str] = Field(None, alias="clientSecret")
    refresh_token: Optional[str] = Field(None, alias="refreshToken")
    webhook_url: Optional[str] = Field(None, alias="webhookUrl")

    @property
    def can_refresh(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)

    @property
    def has_partial_refresh(self) -> bool:
        provided = [self.client_id, self.client_secret, self.refresh_token]
        return any(provided) and not all(provided)


def _from_env() -> Optional[ZohoConfig]:
    access_token = os.getenv("ZOHO_ACCESS_TOKEN")
    org_id = os.getenv("ZOHO_ORG_ID")
    if not access_token or not org_id:
        return None

    return ZohoConfig(
        access_token=access_token,
        org_id=org_id,
        client_id=os.getenv("ZOHO_CLIENT_ID") or None,
        client_secret=os.getenv("ZOHO_CLIENT_SECRET") or None,
        refresh_token=os.getenv("ZOHO_REFRESH_TOKEN") or None,
        webhook_url=os.getenv("ZOHO_WEBHOOK_URL") or None,
    )


def _from_file(path: Path) -> ZohoConfig:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    except ValueError as e:
        raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e

    if not isinstance(raw, dict) or not raw.get("accessToken") or not raw.get("orgId"):
        raise ConfigError(f"{path} must contain accessToken and orgId")

    try:
        return ZohoConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e


def load_config(config_path: Optional[Union[str, Path]] = None) -> ZohoConfig:
    """Load Zoho Desk credentials.

    Environment variables win when both ZOHO_ACCESS_TOKEN and ZOHO_ORG_ID are
    set. Otherwise the JSON file at ``config_path``, ``$ZOHO_CONFIG_FILE`` or
    ``./config.json`` is used.

    Raises:
        ConfigError: if neither source provides an access token and org id.
    """
    config = _from_env()
    source = "environment"

    if config is None:
        path = Path(config_path or os.getenv("ZOHO_CONFIG_FILE") or DEFAULT_CONFIG_FILE)
        if not path.is_file():
            raise ConfigError(
                "Zoho Desk credentials not found. Please set ZOHO_ACCESS_TOKEN and "
                f"ZOHO_ORG_ID environment variables, or create a {path} file."
            )
        config = _from_file(path)
        source = str(path)

    if config.has_partial_refresh:
        logger.warning(
            "Incomplete refresh credentials in %s; clientId, clientSecret and "
            "refreshToken are all required. Automatic token refresh is disabled.",
            source,
        )

    logger.info("Loaded Zoho Desk credentials from %s", source)
    return config
