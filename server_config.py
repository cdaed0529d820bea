"""
Catalog service configuration.

Defaults come from settings.py (which pulls them from constantStorage);
the catalog path can be overridden by an environment variable, and
main.py applies command-line overrides on top with `with_overrides()`.
"""
import os
from dataclasses import dataclass, replace
from typing import Optional
import settings

SYSTEM_PORTS_LIMIT = 1024


@dataclass(frozen=True)
class ServiceConfig:
    """Everything the service needs to start."""
    host: str = '127.0.0.1'
    port: int = 8088
    catalog_path: str = "fonts.json"
    max_upload_bytes: int = 16 * 1024 * 1024
    max_concurrent_renders: int = 8
    request_timeout: float = 30
    decoder: str = "pillow"
    max_cols: Optional[int] = None

    @classmethod
    def from_settings(cls, environ=None):
        environ = os.environ if environ is None else environ
        env_var = getattr(settings, 'CATALOG_ENV_VAR', 'ASCII_ART_CATALOG')
        catalog_path = environ.get(env_var) or getattr(settings, 'CATALOG_PATH', cls.catalog_path)
        return cls(
            host=getattr(settings, 'SERVICE_HOST', cls.host),
            port=getattr(settings, 'SERVICE_PORT', cls.port),
            catalog_path=catalog_path,
            max_upload_bytes=getattr(settings, 'MAX_UPLOAD_BYTES', cls.max_upload_bytes),
            max_concurrent_renders=getattr(settings, 'MAX_CONCURRENT_RENDERS', cls.max_concurrent_renders),
            request_timeout=getattr(settings, 'REQUEST_TIMEOUT', cls.request_timeout),
            max_cols=getattr(settings, 'ASCII_MAX_COLS', cls.max_cols),
        )

    def with_overrides(self, **overrides):
        """Copy with every non-None override applied, then validated."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes).validate()

    def validate(self):
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Port out of range: {self.port}")
        if self.max_upload_bytes <= 0:
            raise ValueError("max_upload_bytes must be positive")
        if self.max_concurrent_renders <= 0:
            raise ValueError("max_concurrent_renders must be positive")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.max_cols is not None and self.max_cols < 1:
            raise ValueError("max_cols must be at least 1")
        return self

    @property
    def is_system_port(self):
        return 0 < self.port < SYSTEM_PORTS_LIMIT


# Global instance - set by main.py once the command line is parsed
_config: Optional[ServiceConfig] = None


def set_config(config: ServiceConfig) -> ServiceConfig:
    global _config
    _config = config.validate()
    return _config


def get_config() -> ServiceConfig:
    """The active ServiceConfig; built from settings on first use."""
    global _config
    if _config is None:
        _config = ServiceConfig.from_settings().validate()
    return _config
