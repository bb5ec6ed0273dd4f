"""Configuration management with environment variable support"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

DEFAULT_MAX_BUFFER = 1024 * 1024 * 100


@dataclass(frozen=True)
class ImagickalConfig:
    """Options shared by every command built from this config.

    Args:
        executable: command used for transforms, may carry env assignments
            (``MAGICK_MEMORY_LIMIT=256MB /usr/bin/convert``)
        identify_executable: command used for identify/dimension queries
        max_buffer: ceiling in bytes for buffered stdout/stderr of the tool
        exec_options: passed through to the subprocess call (``env``, ``cwd``, ...)
    """

    executable: str = "convert"
    identify_executable: str = "identify"
    max_buffer: int = DEFAULT_MAX_BUFFER
    exec_options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "ImagickalConfig":
        """Create config from environment variables"""
        return cls(
            executable=os.getenv("IMAGICKAL_EXECUTABLE", "convert"),
            identify_executable=os.getenv("IMAGICKAL_IDENTIFY_EXECUTABLE", "identify"),
            max_buffer=int(os.getenv("IMAGICKAL_MAX_BUFFER", str(DEFAULT_MAX_BUFFER))),
        )


_defaults: ImagickalConfig = ImagickalConfig()


def set_defaults(config: Optional[ImagickalConfig] = None, **overrides: Any) -> ImagickalConfig:
    """Replace the process-wide defaults used when no config is passed explicitly.

    Either a full config or keyword overrides applied on top of a fresh
    ``ImagickalConfig()``; last call wins.
    """
    global _defaults
    if config is None:
        config = ImagickalConfig(**overrides)
    _defaults = config
    return _defaults


def get_defaults() -> ImagickalConfig:
    return _defaults


def reset_defaults() -> None:
    set_defaults(ImagickalConfig())
