"""Runtime configuration models with YAML and environment overrides."""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from config.config import (
    PROJECT_ROOT,
    STORAGE_KEY,
    STATE_DIR,
    STATE_DB_PATH,
    STORAGE_BACKEND,
    PROBE_TIMEOUT_SEC,
    API_KEY_PLACEMENT,
    API_KEY_HEADER,
    API_KEY_PARAM,
    REFRESH_MAX_INSTANCES,
    REFRESH_MISFIRE_GRACE_SEC,
)
from utils.io import maybe_load_yaml


@dataclass
class ProbeConfig:
    """HTTP probe settings.

    ``api_key_placement`` decides whether a widget's API key is sent at all:
    "none" keeps it in configuration only, "header" sends it in
    ``api_key_header`` and "query" appends it as ``api_key_param``.
    """
    timeout_sec: Optional[float] = PROBE_TIMEOUT_SEC
    api_key_placement: str = API_KEY_PLACEMENT
    api_key_header: str = API_KEY_HEADER
    api_key_param: str = API_KEY_PARAM


@dataclass
class StorageConfig:
    """Durable state settings."""
    backend: str = STORAGE_BACKEND
    key: str = STORAGE_KEY
    state_dir: str = str(STATE_DIR)
    db_path: str = str(STATE_DB_PATH)


@dataclass
class SchedulerConfig:
    """Refresh scheduler settings."""
    max_instances: int = REFRESH_MAX_INSTANCES
    misfire_grace_sec: int = REFRESH_MISFIRE_GRACE_SEC


@dataclass
class AppConfig:
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_yaml(cls, yaml_path: Optional[str] = None,
                  environ: Optional[Dict[str, str]] = None) -> 'AppConfig':
        """Create config from an optional YAML file, then apply env overrides.

        Sections: ``probe``, ``storage``, ``scheduler``, ``logging``.
        Invalid or missing YAML falls back to defaults.
        """
        yaml_config = maybe_load_yaml(yaml_path)
        if not isinstance(yaml_config, dict):
            yaml_config = {}

        probe_cfg = _section(yaml_config, 'probe')
        storage_cfg = _section(yaml_config, 'storage')
        scheduler_cfg = _section(yaml_config, 'scheduler')
        logging_cfg = _section(yaml_config, 'logging')

        config = cls(
            probe=ProbeConfig(
                timeout_sec=probe_cfg.get('timeout_sec', PROBE_TIMEOUT_SEC),
                api_key_placement=probe_cfg.get('api_key_placement', API_KEY_PLACEMENT),
                api_key_header=probe_cfg.get('api_key_header', API_KEY_HEADER),
                api_key_param=probe_cfg.get('api_key_param', API_KEY_PARAM),
            ),
            storage=StorageConfig(
                backend=storage_cfg.get('backend', STORAGE_BACKEND),
                key=storage_cfg.get('key', STORAGE_KEY),
                state_dir=str(storage_cfg.get('state_dir', STATE_DIR)),
                db_path=str(storage_cfg.get('db_path', STATE_DB_PATH)),
            ),
            scheduler=SchedulerConfig(
                max_instances=scheduler_cfg.get('max_instances', REFRESH_MAX_INSTANCES),
                misfire_grace_sec=scheduler_cfg.get('misfire_grace_sec', REFRESH_MISFIRE_GRACE_SEC),
            ),
            log_level=logging_cfg.get('level', "INFO"),
            log_file=logging_cfg.get('file'),
        )
        return config.apply_env(environ)

    def apply_env(self, environ: Optional[Dict[str, str]] = None) -> 'AppConfig':
        """Override fields from ``FINBOARD_*`` environment variables."""
        if environ is None:
            load_dotenv(PROJECT_ROOT / ".env")
            environ = dict(os.environ)

        if 'FINBOARD_STORAGE_BACKEND' in environ:
            self.storage.backend = environ['FINBOARD_STORAGE_BACKEND']
        if 'FINBOARD_STATE_DIR' in environ:
            self.storage.state_dir = environ['FINBOARD_STATE_DIR']
        if 'FINBOARD_DB_PATH' in environ:
            self.storage.db_path = environ['FINBOARD_DB_PATH']
        if 'FINBOARD_PROBE_TIMEOUT' in environ:
            self.probe.timeout_sec = float(environ['FINBOARD_PROBE_TIMEOUT'])
        if 'FINBOARD_API_KEY_PLACEMENT' in environ:
            self.probe.api_key_placement = environ['FINBOARD_API_KEY_PLACEMENT']
        if 'FINBOARD_LOG_LEVEL' in environ:
            self.log_level = environ['FINBOARD_LOG_LEVEL']
        return self


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config.get(name) or {}
    return section if isinstance(section, dict) else {}

