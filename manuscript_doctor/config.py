from __future__ import annotations
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional
import logging
import os

import yaml

logger = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yml"


@dataclass
class DoctorConfig:
    """Runtime settings for the Claude collaborators, sweep pacing and history."""
    api_key: Optional[str] = None
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 8192
    temperature: float = 0.4
    max_retries: int = 3
    min_request_interval: float = 0.3   # seconds before every API call

    call_timeout: float = 300.0         # per external call; 0 disables
    pacing_delay: float = 1.5           # between sweep documents
    suggestion_delay: float = 0.5       # between chapters of a global-edit scan
    history_limit: int = 10

    # context sizing
    rewrite_char_limit: int = 30000
    global_edit_char_limit: int = 8000
    context_chars_per_chapter: int = 4000
    batch_char_limit: int = 5000
    continuity_char_limit: int = 3000

    # batched scans
    health_batch_size: int = 5
    continuity_batch_size: int = 10


def load_config_file(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config(path: Optional[str] = None, **overrides: Any) -> DoctorConfig:
    """
    Layer packaged defaults, an optional YAML file, then explicit overrides.

    Unknown keys are ignored with a warning. The API key falls back to
    ANTHROPIC_API_KEY when nothing else sets it.
    """
    values: Dict[str, Any] = {}
    values.update(load_config_file(str(DEFAULTS_PATH)))
    if path:
        values.update(load_config_file(path))
    values.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(DoctorConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

    config = DoctorConfig(**{k: v for k, v in values.items() if k in known})
    if not config.api_key:
        config.api_key = os.environ.get("ANTHROPIC_API_KEY")
    return config
