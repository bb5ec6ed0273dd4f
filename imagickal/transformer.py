"""Turn a mapping of named operations into a convert run, with adaptive sharpening"""

import asyncio
from dataclasses import replace
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .builder import CommandBuilder, to_number
from .config import ImagickalConfig
from .query import dimensions
from .models import CropOptions, Dimensions, Operation, ResizeOptions, SharpenOptions
from .utils.logger import logger
from .utils.streams import is_readable_stream, tee

# Terminal builder methods, never dispatched even if present in the intents
RESERVED_NAMES = frozenset({'get', 'exec', 'render', 'execute'})

DISPATCH: Dict[Operation, Callable[[CommandBuilder, Any], CommandBuilder]] = {
    Operation.GRAVITY: CommandBuilder.gravity,
    Operation.RESIZE: CommandBuilder.resize,
    Operation.CROP: CommandBuilder.crop,
    Operation.EXTENT: CommandBuilder.extent,
    Operation.ROTATE: CommandBuilder.rotate,
    Operation.SHARPEN: CommandBuilder.sharpen,
    Operation.QUALITY: CommandBuilder.quality,
    Operation.DENSITY: CommandBuilder.density,
    Operation.STRIP: CommandBuilder.strip,
}

Size = Tuple[Optional[int], Optional[int]]


def _size(value: Any) -> Optional[int]:
    number = to_number(value) if value else None
    return int(number) if number is not None and number > 0 else None


def _scale(side: int, numerator: int, denominator: int) -> int:
    return max(1, int(round(side * numerator / denominator)))


def needs_original_dimensions(intents: Mapping[str, Any]) -> bool:
    """True when working dimensions cannot be computed from the intents alone"""
    resize = ResizeOptions.coerce(intents.get('resize'))
    width, height = _size(resize.width), _size(resize.height)
    if width and height:
        return False
    if width or height:
        return True
    crop = CropOptions.coerce(intents.get('crop'))
    return not (_size(crop.width) and _size(crop.height))


def working_dimensions(intents: Mapping[str, Any], original: Optional[Dimensions] = None) -> Optional[Size]:
    """Width/height the image will have after the resize/crop intents.

    Priority: resize with both sides, resize with one side (other side scaled
    from ``original``), crop size, then ``original`` itself.
    """
    resize = ResizeOptions.coerce(intents.get('resize'))
    width, height = _size(resize.width), _size(resize.height)
    if width and height:
        return width, height

    if width or height:
        if original is None or not original.width or not original.height:
            return width, height
        if width:
            return width, _scale(width, original.height, original.width)
        return _scale(height, original.width, original.height), height

    crop = CropOptions.coerce(intents.get('crop'))
    crop_width, crop_height = _size(crop.width), _size(crop.height)
    if crop_width and crop_height:
        return crop_width, crop_height

    if original is not None:
        return original.width, original.height
    return None


def is_variable_sharpen(intents: Mapping[str, Any]) -> bool:
    return SharpenOptions.coerce(intents.get('sharpen')).mode == 'variable'


def with_sharpen_size(intents: Mapping[str, Any], size: Optional[Size]) -> Dict[str, Any]:
    """Copy of intents where the sharpen entry carries the working size"""
    modified = dict(intents)
    if size is not None:
        sharpen = SharpenOptions.coerce(intents.get('sharpen'))
        modified['sharpen'] = replace(sharpen, width=size[0], height=size[1])
    return modified


class Transformer:
    """Builds and runs convert commands from named operations.

    Holds no state between calls besides the config it was created with.
    """

    def __init__(self, config: Optional[ImagickalConfig] = None):
        self.config = config

    def apply_intents(self, intents: Mapping[str, Any]) -> CommandBuilder:
        """Create a CommandBuilder and apply intents on it in mapping order.

        Unknown names and the reserved terminal names are ignored. A ``strip``
        value of False skips stripping.
        """
        builder = CommandBuilder(self.config)
        for name, options in intents.items():
            if name in RESERVED_NAMES:
                logger.debug(f"Ignoring reserved operation name '{name}'")
                continue
            try:
                operation = Operation(name)
            except ValueError:
                logger.debug(f"Ignoring unknown operation '{name}'")
                continue
            if operation is Operation.STRIP and options is False:
                continue
            DISPATCH[operation](builder, options)
        return builder

    async def resolve_dimensions(self, intents: Mapping[str, Any], source: Any) -> Optional[Size]:
        """Working dimensions, querying ``source`` when the intents are not enough.

        ``source`` is read by the query; pass a copy when it is a stream that
        is needed again afterwards.
        """
        original = None
        if needs_original_dimensions(intents):
            original = await dimensions(source, self.config)
        return working_dimensions(intents, original)

    async def transform(self, source: Any, destination: Any, intents: Mapping[str, Any],
                        output_format: Optional[str] = None) -> Any:
        """Transform ``source`` into ``destination``.

        Args:
            source: path or readable stream
            destination: path or writable stream
            intents: operation name -> options, applied in order
            output_format: output codec (jpg, png, ...)

        Returns:
            destination
        """
        if not is_variable_sharpen(intents):
            return await self.apply_intents(intents).execute(source, destination, output_format)

        if is_readable_stream(source) and needs_original_dimensions(intents):
            async with tee(source) as (probe, copy):
                size = await self.resolve_dimensions(intents, probe)
                return await self._execute_sized(intents, size, copy, destination, output_format)

        size = await self.resolve_dimensions(intents, source)
        return await self._execute_sized(intents, size, source, destination, output_format)

    async def _execute_sized(self, intents: Mapping[str, Any], size: Optional[Size], source: Any,
                             destination: Any, output_format: Optional[str]) -> Any:
        logger.debug(f"Variable sharpen working dimensions: {size}")
        builder = self.apply_intents(with_sharpen_size(intents, size))
        return await builder.execute(source, destination, output_format)


async def transform(source: Any, destination: Any, intents: Mapping[str, Any],
                    output_format: Optional[str] = None,
                    config: Optional[ImagickalConfig] = None) -> Any:
    """Transform an image with a fresh Transformer"""
    return await Transformer(config).transform(source, destination, intents, output_format)


def transform_sync(source: Any, destination: Any, intents: Mapping[str, Any],
                   output_format: Optional[str] = None,
                   config: Optional[ImagickalConfig] = None) -> Any:
    """Blocking wrapper for transform"""
    return asyncio.run(transform(source, destination, intents, output_format, config))
