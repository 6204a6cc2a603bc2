"""
Configuration: INI file with environment variable overrides.

Example ``~/.config/dooray-calendar-sync.conf``::

    [dooray]
    cloud = gov
    username = me@example.com
    password = caldav-password
    calendar_name = My Calendar

    [google]
    client_id = ...
    client_secret = ...
    refresh_token = ...
    calendar_id = primary
    time_zone = Asia/Seoul

    [apple]
    username = me@icloud.com
    app_password = abcd-efgh-ijkl-mnop

    [sync]
    days_back = 7
    days_forward = 90
    interval_minutes = 15
    store_path = ~/.local/share/dooray-calendar-sync/store.json
"""

import logging
import os
from collections.abc import Mapping
from configparser import ConfigParser
from configparser import Error as ConfigParserError
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from dooray_calendar_sync.models import DEFAULT_DAYS_BACK
from dooray_calendar_sync.models import DEFAULT_DAYS_FORWARD
from dooray_calendar_sync.models import DEFAULT_INTERVAL_MINUTES
from dooray_calendar_sync.models import ConfigIncomplete

logger = logging.getLogger(__name__)

# (section, key) → environment variable
ENV_OVERRIDES = {
    ("dooray", "cloud"): "DOORAY_CLOUD",
    ("dooray", "tenant_id"): "DOORAY_TENANT_ID",
    ("dooray", "username"): "DOORAY_USERNAME",
    ("dooray", "password"): "DOORAY_PASSWORD",
    ("dooray", "calendar_name"): "DOORAY_CALENDAR_NAME",
    ("google", "client_id"): "GOOGLE_CLIENT_ID",
    ("google", "client_secret"): "GOOGLE_CLIENT_SECRET",
    ("google", "refresh_token"): "GOOGLE_REFRESH_TOKEN",
    ("google", "calendar_id"): "GOOGLE_CALENDAR_ID",
    ("google", "time_zone"): "GOOGLE_TIME_ZONE",
    ("apple", "username"): "APPLE_USERNAME",
    ("apple", "app_password"): "APPLE_APP_PASSWORD",
    ("apple", "calendar_name"): "APPLE_CALENDAR_NAME",
    ("sync", "store_path"): "SYNC_STORE_PATH",
}


@dataclass
class DoorayConfig:
    username: str
    password: str
    cloud: str = "gov"
    tenant_id: str | None = None
    calendar_name: str | None = None


@dataclass
class GoogleConfig:
    client_id: str
    client_secret: str
    refresh_token: str
    calendar_id: str = "primary"
    time_zone: str | None = None


@dataclass
class AppleConfig:
    username: str
    app_password: str
    calendar_name: str | None = None


@dataclass
class SyncSettings:
    days_back: int = DEFAULT_DAYS_BACK
    days_forward: int = DEFAULT_DAYS_FORWARD
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES
    store_path: Path | None = None


@dataclass
class AppConfig:
    """Everything needed to build a SyncEngine."""

    dooray: DoorayConfig
    google: GoogleConfig | None = None
    apple: AppleConfig | None = None
    sync: SyncSettings = field(default_factory=SyncSettings)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _read_sections(config_path: Path | None) -> dict[str, dict[str, str]]:
    if config_path is None or not config_path.exists():
        return {}
    parser = ConfigParser(interpolation=None)
    try:
        parser.read(config_path, encoding="utf-8")
    except ConfigParserError as e:
        raise ConfigIncomplete(f"Cannot parse config file {config_path}: {e}") from e
    return {name: dict(parser[name]) for name in parser.sections()}


def _merge_env(
    sections: dict[str, dict[str, str]], environ: Mapping[str, str]
) -> dict[str, dict[str, str]]:
    for (section, key), var in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            sections.setdefault(section, {})[key] = value
    return sections


def _require(section: str, values: dict[str, str], keys: tuple[str, ...]) -> None:
    missing = [k for k in keys if not values.get(k)]
    if missing:
        env_names = [ENV_OVERRIDES.get((section, k), "") for k in missing]
        hint = ", ".join(f"{k} ({e})" if e else k for k, e in zip(missing, env_names))
        raise ConfigIncomplete(f"[{section}] missing required setting(s): {hint}")


def _int(values: dict[str, str], key: str, default: int) -> int:
    raw = values.get(key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigIncomplete(f"[sync] {key} must be an integer, got {raw!r}") from None


def load_config(
    config_path: Path | None = None, environ: Mapping[str, str] | None = None
) -> AppConfig:
    """
    Build an AppConfig from the INI file (if any) and the environment.

    Environment variables win over file values.  The Dooray section is
    mandatory; Google and Apple are enabled as soon as any of their settings is
    present and must then be complete.

    Raises:
        ConfigIncomplete: a required setting is missing or malformed.
    """
    environ = os.environ if environ is None else environ
    sections = _merge_env(_read_sections(config_path), environ)

    dooray_values = sections.get("dooray", {})
    _require("dooray", dooray_values, ("username", "password"))
    dooray = DoorayConfig(
        username=dooray_values["username"],
        password=dooray_values["password"],
        cloud=dooray_values.get("cloud") or "gov",
        tenant_id=dooray_values.get("tenant_id") or None,
        calendar_name=dooray_values.get("calendar_name") or None,
    )

    google = None
    google_values = sections.get("google", {})
    if any(google_values.values()):
        _require("google", google_values, ("client_id", "client_secret", "refresh_token"))
        google = GoogleConfig(
            client_id=google_values["client_id"],
            client_secret=google_values["client_secret"],
            refresh_token=google_values["refresh_token"],
            calendar_id=google_values.get("calendar_id") or "primary",
            time_zone=google_values.get("time_zone") or None,
        )

    apple = None
    apple_values = sections.get("apple", {})
    if any(apple_values.values()):
        _require("apple", apple_values, ("username", "app_password"))
        apple = AppleConfig(
            username=apple_values["username"],
            app_password=apple_values["app_password"],
            calendar_name=apple_values.get("calendar_name") or None,
        )

    sync_values = sections.get("sync", {})
    store_path = sync_values.get("store_path")
    settings = SyncSettings(
        days_back=_int(sync_values, "days_back", DEFAULT_DAYS_BACK),
        days_forward=_int(sync_values, "days_forward", DEFAULT_DAYS_FORWARD),
        interval_minutes=_int(sync_values, "interval_minutes", DEFAULT_INTERVAL_MINUTES),
        store_path=Path(store_path).expanduser() if store_path else None,
    )

    logger.debug(
        f"Config loaded: dooray={dooray.cloud} google={google is not None} apple={apple is not None}"
    )
    return AppConfig(dooray=dooray, google=google, apple=apple, sync=settings)
