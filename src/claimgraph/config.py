"""
Service configuration for claimgraph.

Settings come from a JSON file, from ``CLAIMGRAPH_*`` environment
variables, or from defaults.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "CLAIMGRAPH_"

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigValidationError(Exception):
    """Configuration validation error."""
    pass


@dataclass
class ServiceConfig:
    """Configuration for the query service."""
    data_file: Optional[str] = None          # JSON seed for the in-memory store
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    frontend_url: str = "http://localhost:3000"
    slow_query_threshold_seconds: float = 1.0
    search_default_limit: int = 50

    def validate(self) -> None:
        """Raise ConfigValidationError if any setting is out of range."""
        errors = []
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"log_level must be one of {', '.join(VALID_LOG_LEVELS)}")
        if self.slow_query_threshold_seconds < 0:
            errors.append("slow_query_threshold_seconds must be >= 0")
        if self.search_default_limit < 1:
            errors.append("search_default_limit must be >= 1")
        if errors:
            raise ConfigValidationError("; ".join(errors))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data_file": self.data_file,
            "log_level": self.log_level,
            "cors_origins": list(self.cors_origins),
            "frontend_url": self.frontend_url,
            "slow_query_threshold_seconds": self.slow_query_threshold_seconds,
            "search_default_limit": self.search_default_limit,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServiceConfig":
        config = cls(
            data_file=data.get("data_file"),
            log_level=str(data.get("log_level", "INFO")).upper(),
            cors_origins=list(data.get("cors_origins", ["*"])),
            frontend_url=data.get("frontend_url", "http://localhost:3000"),
            slow_query_threshold_seconds=float(data.get("slow_query_threshold_seconds", 1.0)),
            search_default_limit=int(data.get("search_default_limit", 50)),
        )
        config.validate()
        return config

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServiceConfig":
        """
        Build configuration from environment variables.

        Recognised variables: CLAIMGRAPH_DATA_FILE, CLAIMGRAPH_LOG_LEVEL,
        CLAIMGRAPH_CORS_ORIGINS (comma-separated), CLAIMGRAPH_FRONTEND_URL,
        CLAIMGRAPH_SLOW_QUERY_SECONDS, CLAIMGRAPH_SEARCH_LIMIT.
        """
        env = os.environ if environ is None else environ

        def get(name: str, default: Optional[str] = None) -> Optional[str]:
            return env.get(ENV_PREFIX + name, default)

        data: Dict[str, Any] = {
            "data_file": get("DATA_FILE"),
            "log_level": get("LOG_LEVEL", "INFO"),
            "frontend_url": get("FRONTEND_URL", "http://localhost:3000"),
        }
        origins = get("CORS_ORIGINS", "")
        if origins:
            data["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]

        try:
            if get("SLOW_QUERY_SECONDS"):
                data["slow_query_threshold_seconds"] = float(get("SLOW_QUERY_SECONDS"))
            if get("SEARCH_LIMIT"):
                data["search_default_limit"] = int(get("SEARCH_LIMIT"))
        except ValueError as e:
            raise ConfigValidationError(f"Invalid numeric setting: {e}") from e

        return cls.from_dict(data)

    def save(self, path: Path | str) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Path | str) -> "ServiceConfig":
        """Load configuration from a JSON file, or defaults if it does not exist."""
        path = Path(path)
        if path.exists():
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return cls.from_dict(data)
        logger.info(f"No config file at {path}, using defaults")
        return cls()
