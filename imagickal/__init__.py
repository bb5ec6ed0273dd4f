"""Fluent command builder and async runner for ImageMagick convert/identify"""

from .builder import CommandBuilder, commands
from .config import ImagickalConfig, get_defaults, reset_defaults, set_defaults
from .exceptions import (
    ExternalToolError,
    ImagickalError,
    InvalidImageError,
    OutputLimitError,
    ParseError,
)
from .query import dimensions, dimensions_sync, identify, identify_sync
from .models import (
    CropOptions,
    Dimensions,
    ExtentOptions,
    FormatField,
    ImageInfo,
    Operation,
    ResizeOptions,
    RotateOptions,
    SharpenOptions,
    SharpenPreset,
    Step,
)
from .transformer import Transformer, transform, transform_sync

__version__ = "1.0.0"

__all__ = [
    'CommandBuilder',
    'commands',
    'ImagickalConfig',
    'get_defaults',
    'reset_defaults',
    'set_defaults',
    'ExternalToolError',
    'ImagickalError',
    'InvalidImageError',
    'OutputLimitError',
    'ParseError',
    'dimensions',
    'dimensions_sync',
    'identify',
    'identify_sync',
    'CropOptions',
    'Dimensions',
    'ExtentOptions',
    'FormatField',
    'ImageInfo',
    'Operation',
    'ResizeOptions',
    'RotateOptions',
    'SharpenOptions',
    'SharpenPreset',
    'Step',
    'Transformer',
    'transform',
    'transform_sync',
]
