"""
MINERVA CONFIG - Manager configuration state and settings loading

Two layers:
- ManagerConfig: the live, mutable state a manager reads at the start of
  every dispatch (gateway address, namespace, identity token, reasoner
  flag, group scope) and the endpoints derived from it.
- ManagerSettings: the startup values, loaded once from
  config/minerva.toml and overridden by MINERVA_* environment variables.

Usage:
    from core.config import load_settings, ManagerConfig

    settings = load_settings()
    config = ManagerConfig(settings.barista_url, settings.namespace, settings.user_token)
    config.user_token = "abc"     # endpoints switch to their privileged variants
    config.batch_url              # ".../api/minerva_local/m3BatchPrivileged"
"""
import os
import logging
import warnings
from pathlib import Path
from typing import Optional, Dict, Any, List

import msgspec


logger = logging.getLogger("minerva.config")

PRIVILEGED_SUFFIX = "Privileged"
BATCH_PATH = "m3Batch"
SEED_PATH = "seed/fromProcess"

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "minerva.toml"


# =============================================================================
# LIVE CONFIGURATION STATE
# =============================================================================

class ManagerConfig:
    """
    Configuration state shared by every call on one manager.

    Getters hand out copies of mutable state; nothing returned here can
    be used to change what the next dispatch sees.
    """

    def __init__(
        self,
        base_address: str,
        namespace: str,
        user_token: Optional[str] = None,
        use_reasoner: bool = False,
        use_groups: Optional[List[str]] = None,
    ):
        self._base_address = base_address.rstrip("/")
        self._namespace = namespace
        self._user_token: Optional[str] = None
        self._use_reasoner = False
        self._use_groups: List[str] = []
        self._batch_url = ""
        self._seed_url = ""

        self.user_token = user_token
        self.use_reasoner = use_reasoner
        self.use_groups = use_groups

    @property
    def base_address(self) -> str:
        return self._base_address

    @property
    def namespace(self) -> str:
        return self._namespace

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    @property
    def user_token(self) -> Optional[str]:
        return self._user_token

    @user_token.setter
    def user_token(self, token: Optional[str]) -> None:
        """Set (or clear, with None/"") the token; endpoints follow."""
        self._user_token = token or None
        self._derive_endpoints()

    def _derive_endpoints(self) -> None:
        api = f"{self._base_address}/api/{self._namespace}"
        batch_url = f"{api}/{BATCH_PATH}"
        seed_url = f"{api}/{SEED_PATH}"
        if self._user_token:
            batch_url += PRIVILEGED_SUFFIX
            seed_url += PRIVILEGED_SUFFIX
        self._batch_url = batch_url
        self._seed_url = seed_url

    @property
    def batch_url(self) -> str:
        return self._batch_url

    @property
    def seed_url(self) -> str:
        return self._seed_url

    # -------------------------------------------------------------------------
    # Reasoner and group scope
    # -------------------------------------------------------------------------

    @property
    def use_reasoner(self) -> bool:
        return self._use_reasoner

    @use_reasoner.setter
    def use_reasoner(self, flag: bool) -> None:
        # Only real booleans count; anything else leaves the flag alone.
        if isinstance(flag, bool):
            self._use_reasoner = flag

    @property
    def use_groups(self) -> List[str]:
        return list(self._use_groups)

    @use_groups.setter
    def use_groups(self, groups: Optional[List[str]]) -> None:
        if groups is None or groups is False:
            self._use_groups = []
        elif isinstance(groups, list):
            self._use_groups = list(groups)

    def __repr__(self) -> str:
        return (
            f"ManagerConfig(batch_url={self._batch_url!r}, "
            f"token={'set' if self._user_token else 'unset'}, "
            f"use_reasoner={self._use_reasoner}, use_groups={self._use_groups})"
        )


# =============================================================================
# STARTUP SETTINGS
# =============================================================================

class ManagerSettings(msgspec.Struct, kw_only=True):
    """Values used to build a manager at startup."""
    barista_url: str = "http://localhost:3400"
    namespace: str = "minerva_local"
    user_token: Optional[str] = None
    mode: str = "sync"
    method: str = "POST"
    timeout: float = 30.0
    use_reasoner: bool = False
    use_groups: List[str] = []


# Environment variable -> settings field
ENV_OVERRIDES = {
    "MINERVA_BARISTA_URL": "barista_url",
    "MINERVA_NAMESPACE": "namespace",
    "MINERVA_TOKEN": "user_token",
    "MINERVA_MODE": "mode",
    "MINERVA_METHOD": "method",
    "MINERVA_TIMEOUT": "timeout",
    "MINERVA_USE_REASONER": "use_reasoner",
    "MINERVA_GROUPS": "use_groups",
}


def load_toml_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from minerva.toml.

    Returns:
        Dict with all configuration sections ({} if the file is unusable)
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    try:
        import tomllib

        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        warnings.warn(f"Failed to load config from TOML: {e}")
        return {}


def _env_value(field: str, raw: str) -> Any:
    if field == "timeout":
        return float(raw)
    if field == "use_reasoner":
        return raw.strip().lower() in ("true", "1", "yes")
    if field == "use_groups":
        return [g.strip() for g in raw.split(",") if g.strip()]
    return raw


def load_settings(path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> ManagerSettings:
    """
    Resolve startup settings.

    Priority (highest last): struct defaults, the [manager] table of the
    TOML file, MINERVA_* environment variables.
    """
    environ = os.environ if environ is None else environ

    values: Dict[str, Any] = {}
    if path is not None or DEFAULT_CONFIG_PATH.exists():
        values.update(load_toml_config(path).get("manager", {}))

    for env_name, field in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is not None and raw != "":
            values[field] = _env_value(field, raw)

    settings = msgspec.convert(values, ManagerSettings)
    logger.debug(f"Resolved settings for {settings.barista_url} ({settings.namespace}, {settings.mode})")
    return settings
