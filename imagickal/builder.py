"""Fluent builder for convert command lines"""

import asyncio
import math
from typing import Any, Dict, List, Optional, Tuple

from .config import ImagickalConfig, get_defaults
from .models import (
    CropOptions,
    ExtentOptions,
    Operation,
    ResizeOptions,
    RotateOptions,
    SharpenOptions,
    SharpenPreset,
    Step,
)
from .utils.logger import logger
from .utils.process import run_command
from .utils.streams import is_readable_stream, is_writable_stream, pipe_or_path

# Sharpening presets, values are (radius, amount, threshold)
SHARPEN_PRESETS: Dict[str, SharpenPreset] = {
    'light': SharpenPreset(0.5, 1, 0.05),
    'moderate': SharpenPreset(0.65, 1.1, 0.05),
    'strong': SharpenPreset(0.8, 1.2, 0.05),
    'extreme': SharpenPreset(1.0, 1.5, 0.0),
}

SHARPEN_MODES = tuple(SHARPEN_PRESETS) + ('off', 'variable')

# Upper size bound per preset, checked in order; http://www.imagemagick.org/Usage/resize/#resize_unsharp
SHARPEN_BREAKPOINTS: Tuple[Tuple[int, str], ...] = (
    (50, 'extreme'),
    (100, 'strong'),
    (300, 'moderate'),
    (500, 'light'),
)

# http://www.imagemagick.org/Usage/resize/#noaspect
RESIZE_FLAGS = ('<', '>', '!', '^')

# http://www.imagemagick.org/script/command-line-options.php#gravity
GRAVITIES = (
    'NorthWest', 'North', 'NorthEast',
    'West', 'Center', 'East',
    'SouthWest', 'South', 'SouthEast',
)


def to_number(value: Any) -> Optional[float]:
    """Return value as a finite float, None if it is not numeric"""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def is_number(value: Any) -> bool:
    return to_number(value) is not None


def format_number(value: Any) -> str:
    """Shortest round-trip text form of a number: 1.0 -> '1', 0.65 -> '0.65'"""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def _blank_or_number(value: Any) -> str:
    return format_number(value) if value else ''


def _signed(value: Any) -> str:
    text = format_number(value)
    return text if to_number(value) < 0 else f'+{text}'


def resize_flag(flag: Any) -> str:
    """Escape a resize flag for the shell, empty string if invalid"""
    if flag not in RESIZE_FLAGS:
        return ''
    return flag if flag == '^' else '\\' + flag


def variable_sharpen_mode(width: Any, height: Any) -> Optional[str]:
    """Pick a sharpening preset from the image's working dimensions.

    Either axis is enough to qualify. Missing axes never match.
    """
    w = to_number(width) if width else None
    h = to_number(height) if height else None
    for limit, mode in SHARPEN_BREAKPOINTS:
        if (w is not None and w <= limit) or (h is not None and h <= limit):
            return mode
    return None


class CommandBuilder:
    """Accumulates convert operations in call order and renders/runs them"""

    def __init__(self, config: Optional[ImagickalConfig] = None):
        config = config if config is not None else get_defaults()
        self.config = config
        self.executable = config.executable
        self.max_buffer = config.max_buffer
        self.exec_options = dict(config.exec_options)
        self._input_options: List[str] = []
        self._steps: List[Step] = []

    @property
    def steps(self) -> List[Step]:
        return list(self._steps)

    @property
    def commands(self) -> List[str]:
        """Rendered fragments of every step, in call order"""
        return [step.fragment for step in self._steps]

    @property
    def input_options(self) -> List[str]:
        return list(self._input_options)

    def _add(self, operation: Operation, fragment: str) -> 'CommandBuilder':
        self._steps.append(Step(operation, fragment))
        return self

    def gravity(self, gravity: Any) -> 'CommandBuilder':
        if gravity not in GRAVITIES:
            return self
        return self._add(Operation.GRAVITY, f'-gravity {gravity}')

    def resize(self, options: Any) -> 'CommandBuilder':
        """Resize, keeps the aspect ratio when only one side is given.

        Args:
            options: ResizeOptions or mapping with width, height, flag (<, >, !, ^)
        """
        opts = ResizeOptions.coerce(options)
        if not opts.width and not opts.height:
            return self

        width = _blank_or_number(opts.width)
        height = _blank_or_number(opts.height)
        flag = resize_flag(opts.flag) if opts.flag else ''
        return self._add(Operation.RESIZE, f'-filter Catrom -resize {width}x{height}{flag}')

    def crop(self, options: Any) -> 'CommandBuilder':
        opts = CropOptions.coerce(options)
        if not opts.width or not opts.height or not is_number(opts.x) or not is_number(opts.y):
            return self

        width = format_number(opts.width)
        height = format_number(opts.height)
        return self._add(Operation.CROP, f'-crop {width}x{height}{_signed(opts.x)}{_signed(opts.y)}')

    def extent(self, options: Any) -> 'CommandBuilder':
        opts = ExtentOptions.coerce(options)
        if not opts.width or not opts.height:
            return self
        return self._add(
            Operation.EXTENT,
            f'-extent {format_number(opts.width)}x{format_number(opts.height)}',
        )

    def rotate(self, options: Any) -> 'CommandBuilder':
        """Rotate ``angle`` degrees around (x, y), filling with bg_color when given.

        An angle of 0 is no rotation and adds nothing.
        """
        opts = RotateOptions.coerce(options)
        if not is_number(opts.angle) or not is_number(opts.x) or not is_number(opts.y):
            return self
        if to_number(opts.angle) == 0:
            return self

        background = ''
        if opts.bg_color:
            background = f'-background {opts.bg_color} -virtual-pixel background '
        x, y, angle = format_number(opts.x), format_number(opts.y), format_number(opts.angle)
        return self._add(
            Operation.ROTATE,
            f"{background}-distort ScaleRotateTranslate '{x},{y} {angle}'",
        )

    def sharpen(self, options: Any) -> 'CommandBuilder':
        """Unsharp mask from a preset.

        Args:
            options: SharpenOptions or mapping; mode is one of light, moderate,
                strong, extreme, variable, off. width/height are only read for
                variable mode.
        """
        opts = SharpenOptions.coerce(options)
        mode = opts.mode
        if not isinstance(mode, str) or mode not in SHARPEN_MODES:
            return self

        if mode == 'variable':
            mode = variable_sharpen_mode(opts.width, opts.height)

        if mode == 'off' or not mode:
            return self

        preset = SHARPEN_PRESETS[mode]
        return self._add(
            Operation.SHARPEN,
            '-unsharp {}x{}+{}+{}'.format(
                format_number(preset.radius),
                format_number(preset.sigma),
                format_number(preset.amount),
                format_number(preset.threshold),
            ),
        )

    def quality(self, quality: Any) -> 'CommandBuilder':
        if not is_number(quality):
            return self
        return self._add(Operation.QUALITY, f'-quality {format_number(quality)}')

    def density(self, density: Any) -> 'CommandBuilder':
        """Density is an input option, rendered before the source"""
        if not is_number(density):
            return self
        self._input_options.append(f'-density {format_number(density)}')
        return self

    def strip(self, *_: Any) -> 'CommandBuilder':
        return self._add(Operation.STRIP, '-strip')

    def render(self, source: Any, destination: Any, output_format: Optional[str] = None,
               input_format: Optional[str] = None) -> str:
        """Get the command line.

        Args:
            source: path or readable stream
            destination: path or writable stream
            output_format: codec hint for the destination (jpg, png, ...)
            input_format: codec hint for the source, mostly for streamed input
        """
        parts = [self.executable]
        parts.extend(self._input_options)
        parts.append(pipe_or_path(source, input_format))
        parts.extend(self.commands)
        parts.append(pipe_or_path(destination, output_format))
        return ' '.join(parts)

    async def execute(self, source: Any, destination: Any, output_format: Optional[str] = None,
                      input_format: Optional[str] = None) -> Any:
        """Run the command.

        Streams are wired to the process: a readable source feeds stdin and a
        writable destination receives stdout.

        Returns:
            destination, once the process has exited and all output is written

        Raises:
            ExternalToolError: convert exited with a non-zero status
        """
        command = self.render(source, destination, output_format, input_format)
        logger.debug(f"Executing {command}")

        await run_command(
            command,
            stdin=source if is_readable_stream(source) else None,
            stdout=destination if is_writable_stream(destination) else None,
            max_buffer=self.max_buffer,
            exec_options=self.exec_options,
        )
        return destination

    def execute_sync(self, source: Any, destination: Any, output_format: Optional[str] = None,
                     input_format: Optional[str] = None) -> Any:
        """Blocking wrapper for execute, must not be called from a running event loop"""
        return asyncio.run(self.execute(source, destination, output_format, input_format))


def commands(config: Optional[ImagickalConfig] = None) -> CommandBuilder:
    """Create a CommandBuilder.

    A config passed here is used as-is; the process-wide defaults set with
    set_defaults() only apply when it is omitted.
    """
    return CommandBuilder(config)
