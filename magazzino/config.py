"""TOML configuration loader for the warehouse module."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]

DEFAULT_CONFIG_PATH = "~/.config/magazzino/config.toml"


@dataclass
class GeminiExtractionConfig:
    api_key: str = ""
    model: str = "gemini-2.0-flash"


@dataclass
class ClaudeExtractionConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class ExtractionConfig:
    backend: str = "gemini"
    timeout_s: float = 25.0
    retry_backoff_s: float = 1.0
    gemini: GeminiExtractionConfig = field(default_factory=GeminiExtractionConfig)
    claude: ClaudeExtractionConfig = field(default_factory=ClaudeExtractionConfig)


@dataclass
class DatabaseConfig:
    path: str = "~/.config/magazzino/magazzino.db"


@dataclass
class RemoteConfig:
    enabled: bool = False
    url: str = ""
    api_key: str = ""
    table: str = "documents"


@dataclass
class ExportConfig:
    language: str = "it"  # it / en
    output_dir: str = "."


@dataclass
class MagazzinoConfig:
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    export: ExportConfig = field(default_factory=ExportConfig)


def load_config(path: str | Path | None = None) -> MagazzinoConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    API keys and the Supabase URL can come from environment variables.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path).expanduser()
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    ext = raw.get("extraction", {})
    dbs = raw.get("database", {})
    rem = raw.get("remote", {})
    exp = raw.get("export", {})

    gemini_cfg = ext.get("gemini", {})
    claude_cfg = ext.get("claude", {})

    # Resolve secrets: config file → environment variable
    gemini_api_key = gemini_cfg.get("api_key", "") or os.environ.get(
        "GEMINI_API_KEY", ""
    )
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )
    remote_url = rem.get("url", "") or os.environ.get("SUPABASE_URL", "")
    remote_key = rem.get("api_key", "") or os.environ.get("SUPABASE_ANON_KEY", "")

    return MagazzinoConfig(
        extraction=ExtractionConfig(
            backend=ext.get("backend", "gemini"),
            timeout_s=float(ext.get("timeout_s", 25.0)),
            retry_backoff_s=float(ext.get("retry_backoff_s", 1.0)),
            gemini=GeminiExtractionConfig(
                api_key=gemini_api_key,
                model=gemini_cfg.get("model", "gemini-2.0-flash"),
            ),
            claude=ClaudeExtractionConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
        ),
        database=DatabaseConfig(
            path=dbs.get("path", "~/.config/magazzino/magazzino.db"),
        ),
        remote=RemoteConfig(
            enabled=rem.get("enabled", False),
            url=remote_url,
            api_key=remote_key,
            table=rem.get("table", "documents"),
        ),
        export=ExportConfig(
            language=exp.get("language", "it"),
            output_dir=exp.get("output_dir", "."),
        ),
    )
