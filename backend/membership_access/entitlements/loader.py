"""
License tier alias loader.

Loads the alias table from config/license_tiers.yml, the single source of
truth for turning stored license values into tiers.

Consumers:
  - EntitlementResolver: profile license and module required license

Usage:
    from membership_access.entitlements.loader import get_license_tier_loader

    loader = get_license_tier_loader()
    loader.lookup("transformation")   # Tier.PRO
    loader.lookup("gold")             # None (unknown)
"""

import logging
import os
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

import yaml

from membership_access.entitlements.tiers import Tier

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LICENSE_TIERS_CONFIG"
CONFIG_FILENAME = "license_tiers.yml"

# Canonical names plus the legacy profile licenses. The YAML file extends
# and overrides this table.
BUILTIN_ALIASES: Dict[str, Tier] = {
    "none": Tier.NONE,
    "starter": Tier.STARTER,
    "pro": Tier.PRO,
    "elite": Tier.ELITE,
    "entree": Tier.STARTER,
    "transformation": Tier.PRO,
    "immersion": Tier.ELITE,
}

_DEFAULT_MISSING_REQUIRED = Tier.STARTER
_DEFAULT_UNKNOWN_REQUIRED = Tier.ELITE


def normalize_key(value: str) -> str:
    return value.strip().lower()


class LicenseTierLoader:
    """
    Thread-safe singleton loader for config/license_tiers.yml.

    A missing file is not an error: the built-in table is used alone.
    """

    _instance: Optional["LicenseTierLoader"] = None
    _lock = Lock()

    def __new__(cls, config_path: Optional[str] = None):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None):
        if self._initialized:
            return

        self._config_path = config_path or os.getenv(CONFIG_ENV_VAR)
        self._aliases: Dict[str, Tier] = dict(BUILTIN_ALIASES)
        self._missing_required: Tier = _DEFAULT_MISSING_REQUIRED
        self._unknown_required: Tier = _DEFAULT_UNKNOWN_REQUIRED
        self._source: Optional[Path] = None
        self._load_lock = Lock()

        self._load()
        self._initialized = True

    # ------------------------------------------------------------------
    # Config resolution
    # ------------------------------------------------------------------

    def _resolve_path(self) -> Optional[Path]:
        if self._config_path:
            configured = Path(self._config_path)
            if configured.exists():
                return configured
            logger.warning("Configured %s not found: %s", CONFIG_FILENAME, configured)
            return None

        candidates = [
            # backend/config/ next to the package
            Path(__file__).parent.parent.parent / "config" / CONFIG_FILENAME,
            Path(os.getcwd()) / "config" / CONFIG_FILENAME,
            Path(os.getcwd()) / "backend" / "config" / CONFIG_FILENAME,
        ]

        for p in candidates:
            resolved = p.resolve()
            if resolved.exists():
                return resolved
        return None

    def _load(self) -> None:
        with self._load_lock:
            aliases: Dict[str, Tier] = dict(BUILTIN_ALIASES)
            missing_required = _DEFAULT_MISSING_REQUIRED
            unknown_required = _DEFAULT_UNKNOWN_REQUIRED

            path = self._resolve_path()
            if path is None:
                logger.info("No %s found, using built-in license aliases", CONFIG_FILENAME)
            else:
                logger.info("Loading license aliases from %s", path)
                raw = self._read_mapping(path)

                for alias, target in self._section(raw, "aliases").items():
                    tier = Tier.from_name(target)
                    if tier is None or not isinstance(alias, str):
                        logger.warning(
                            "Skipping invalid license alias",
                            extra={"alias": alias, "target": target},
                        )
                        continue
                    aliases[normalize_key(alias)] = tier

                defaults = self._section(raw, "defaults")
                missing_required = self._parse_default(
                    defaults, "missing_required_license", missing_required
                )
                unknown_required = self._parse_default(
                    defaults, "unknown_required_license", unknown_required
                )

            self._aliases = aliases
            self._missing_required = missing_required
            self._unknown_required = unknown_required
            self._source = path

            logger.info(
                "License aliases loaded",
                extra={"alias_count": len(aliases), "source": str(path) if path else "builtin"},
            )

    @staticmethod
    def _read_mapping(path: Path) -> Dict[str, Any]:
        """Parsed file root, or {} when the file is not a YAML mapping."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(
                "Unparseable %s, using built-in license aliases",
                CONFIG_FILENAME,
                extra={"path": str(path), "error": str(e)},
            )
            return {}

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            logger.warning(
                "%s root is not a mapping, using built-in license aliases",
                CONFIG_FILENAME,
                extra={"path": str(path), "root_type": type(raw).__name__},
            )
            return {}
        return raw

    @staticmethod
    def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
        value = raw.get(key)
        if value is None:
            return {}
        if not isinstance(value, dict):
            logger.warning(
                "Ignoring %s section that is not a mapping",
                key,
                extra={"section": key, "section_type": type(value).__name__},
            )
            return {}
        return value

    @staticmethod
    def _parse_default(defaults: Dict[str, Any], key: str, fallback: Tier) -> Tier:
        if key not in defaults:
            return fallback
        tier = Tier.from_name(defaults[key])
        if tier is None:
            logger.warning(
                "Invalid license default, keeping fallback",
                extra={"key": key, "value": defaults[key], "fallback": fallback.label},
            )
            return fallback
        return tier

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def lookup(self, value: str) -> Optional[Tier]:
        """Tier for a stored license value, or None if unrecognized."""
        return self._aliases.get(normalize_key(value))

    @property
    def aliases(self) -> Dict[str, Tier]:
        return dict(self._aliases)

    @property
    def missing_required_tier(self) -> Tier:
        return self._missing_required

    @property
    def unknown_required_tier(self) -> Tier:
        return self._unknown_required

    @property
    def source(self) -> Optional[Path]:
        return self._source

    def reload(self) -> None:
        """Re-read the config file (e.g. after an alias was added)."""
        self._load()


def get_license_tier_loader() -> LicenseTierLoader:
    return LicenseTierLoader()


def reset_license_tier_loader() -> None:
    """Drop the singleton so the next access re-reads configuration."""
    with LicenseTierLoader._lock:
        LicenseTierLoader._instance = None
