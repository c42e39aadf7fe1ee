"""Configuration schemas for VLM client and document processor."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class VLMConfig:
    """Configuration for VLM client.

    Attributes:
        api_key: API key for Gemini API
        model: Model name (default: gemini-3-pro-preview)
        timeout_sec: Request timeout in seconds
        max_retries: Maximum number of retry attempts
        backoff_base: Base for exponential backoff calculation
        min_interval_s: Minimum interval between requests (throttling)
    """
    api_key: str
    model: str = "gemini-3-pro-preview"
    timeout_sec: int = 120
    max_retries: int = 3
    backoff_base: float = 1.5
    min_interval_s: float = 0.6


@dataclass
class ProcessorConfig:
    """Configuration for DocumentProcessor.

    Attributes:
        state_dir: Directory for state persistence (optional)
        auto_save: Automatically save previews, responses and results
        render_dpi: DPI for PDF first-page rendering (default: 150)
        max_workers: Documents extracted concurrently (default: 1 = sequential)
        log_level: Logging level (default: INFO)
        catalog_path: YAML template catalog (optional, defaults built in)
    """
    state_dir: Optional[Path] = None
    auto_save: bool = True
    render_dpi: int = 150
    max_workers: int = 1
    log_level: str = "INFO"
    catalog_path: Optional[Path] = None
