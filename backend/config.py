"""
Settings for the broker statement extractor, read once from the environment.
"""

import os
from pathlib import Path
from typing import Optional

class Config:
    """Environment-driven settings shared by the CLI, the API and the engine defaults."""

    APP_NAME = "Broker Statement Transaction Extractor"
    VERSION = "1.0.0"

    # Uploads accepted by the API
    MAX_FILE_SIZE_MB: int = int(os.getenv("MAX_FILE_SIZE_MB", "10"))
    MAX_FILE_SIZE_BYTES: int = MAX_FILE_SIZE_MB * 1024 * 1024
    ALLOWED_FILE_TYPES: list[str] = [".pdf", ".txt"]

    # Invalid transactions raise instead of being filtered
    STRICT_MODE: bool = os.getenv("STRICT_MODE", "false").lower() == "true"

    # Tax/fee conflict policies: "first", "sum" or "error"
    TAX_CONFLICT_POLICY: str = os.getenv("TAX_CONFLICT_POLICY", "first")
    FEE_CONFLICT_POLICY: str = os.getenv("FEE_CONFLICT_POLICY", "first")
    CONFLICT_TOLERANCE: str = os.getenv("CONFLICT_TOLERANCE", "0.01")
    MAX_BLOCK_LINES: int = int(os.getenv("MAX_BLOCK_LINES", "200"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR: Path = Path(os.getenv("LOG_DIR", "./logs"))
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))

    @classmethod
    def get_log_path(cls, filename: str) -> Path:
        """Path of a log file inside LOG_DIR, creating the directory."""
        cls.LOG_DIR.mkdir(parents=True, exist_ok=True)
        return cls.LOG_DIR / filename

    @classmethod
    def validate_file(cls, filename: str, file_size: int) -> tuple[bool, Optional[str]]:
        """
        Check an uploaded statement's extension and size.

        Returns:
            tuple: (is_valid, error_message)
        """
        if not any(filename.lower().endswith(ext) for ext in cls.ALLOWED_FILE_TYPES):
            return False, f"Invalid file type. Allowed types: {', '.join(cls.ALLOWED_FILE_TYPES)}"

        if file_size > cls.MAX_FILE_SIZE_BYTES:
            size_mb = file_size / (1024 * 1024)
            return False, f"File too large ({size_mb:.2f} MB). Maximum: {cls.MAX_FILE_SIZE_MB} MB"

        if file_size == 0:
            return False, "File is empty"

        return True, None


config = Config()
