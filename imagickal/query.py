"""identify queries: image dimensions, format and custom -format fields"""

import asyncio
import json
import re
from typing import Any, Dict, Mapping, Optional, Union

from .config import ImagickalConfig, get_defaults
from .exceptions import ExternalToolError, InvalidImageError, ParseError
from .models import Dimensions, FormatField, ImageInfo
from .utils.logger import logger
from .utils.process import run_command
from .utils.streams import is_readable_stream, pipe_or_path

RECORD_PATTERN = re.compile(r'(\{[^}]+\})')

DIMENSION_FIELDS: Dict[str, FormatField] = {
    'width': FormatField('%w', numeric=True),
    'height': FormatField('%h', numeric=True),
}

IDENTIFY_FIELDS: Dict[str, FormatField] = {
    'format': FormatField('%m'),
    'width': FormatField('%w', numeric=True),
    'height': FormatField('%h', numeric=True),
}

# Keys set by the default template, everything else ends up in ImageInfo.extra
_CORE_KEYS = ('format', 'width', 'height')


def parse_output(output: str) -> Dict[str, Any]:
    """Parse identify output, returning the record for the first image of the sequence.

    identify prints one ``{...}`` record per frame; the returned dict gets an
    extra ``frame_count`` key with the number of records found.

    Raises:
        ParseError: no record, or the first record is not a JSON object
    """
    records = RECORD_PATTERN.findall(output)
    if not records:
        raise ParseError(f"No record found in identify output: {output}", output)

    try:
        data = json.loads(records[0])
    except ValueError as e:
        raise ParseError(f"Unable to parse identify output ({e}): {output}", output) from e

    if not isinstance(data, dict):
        raise ParseError(f"Unable to parse identify output: {output}", output)

    data['frame_count'] = len(records)
    return data


def stringify_format(fields: Mapping[str, Union[str, FormatField]]) -> str:
    """Build the -format template as a JSON object, escaped for a double-quoted shell word"""
    parts = []
    for key, value in fields.items():
        if not isinstance(value, FormatField):
            value = FormatField(str(value))
        rendered = value.value if value.numeric else f'\\"{value.value}\\"'
        parts.append(f'\\"{key}\\":{rendered}')
    return '{' + ','.join(parts) + '}'


def normalize_format(fmt: Any) -> str:
    """Lower-case format name, jpeg is reported as jpg"""
    fmt = str(fmt).lower()
    return 'jpg' if fmt == 'jpeg' else fmt


def _build_command(executable: str, fields: Mapping[str, Union[str, FormatField]], source: Any,
                   verify: bool = False) -> str:
    verbose = '-verbose ' if verify else ''
    return f'{executable} -format "{stringify_format(fields)}" {verbose}{pipe_or_path(source)}'


async def _query(source: Any, command: str, config: ImagickalConfig) -> str:
    """Run an identify command line, translating "no decode delegate" failures"""
    logger.debug(f"Querying {command}")
    try:
        stdout = await run_command(
            command,
            stdin=source if is_readable_stream(source) else None,
            max_buffer=config.max_buffer,
            exec_options=config.exec_options,
        )
    except ExternalToolError as e:
        if 'decode delegate' in e.stderr:
            raise InvalidImageError(
                "Invalid image file",
                command=e.command,
                returncode=e.returncode,
                stderr=e.stderr,
            ) from e
        raise
    return stdout.decode('utf-8', errors='replace')


async def dimensions(source: Any, config: Optional[ImagickalConfig] = None) -> Dimensions:
    """Get dimensions of an image file or stream.

    Only the first image counts when the file holds a sequence; frame_count
    tells how many images were found (e.g. frames of an animated gif).

    Raises:
        InvalidImageError: identify has no decode delegate for the input
        ExternalToolError: any other identify failure
        ParseError: output did not hold usable dimensions
    """
    config = config if config is not None else get_defaults()
    command = _build_command(config.identify_executable, DIMENSION_FIELDS, source)
    output = await _query(source, command, config)

    data = parse_output(output)
    try:
        return Dimensions(int(data['width']), int(data['height']), data['frame_count'])
    except (KeyError, TypeError, ValueError) as e:
        raise ParseError(f"Unable to parse dimensions from output: {output}", output) from e


async def identify(
    source: Any,
    format: Optional[Mapping[str, Union[str, FormatField]]] = None,
    verify: bool = False,
    config: Optional[ImagickalConfig] = None,
) -> ImageInfo:
    """Identify image format and dimensions.

    Args:
        source: path or readable stream
        format: extra -format fields, e.g. ``{'orient': '%[orientation]'}``;
            use FormatField(..., numeric=True) for numbers
        verify: run identify with -verbose so a corrupt file fails the query
        config: overrides the process-wide defaults

    Raises:
        InvalidImageError: identify has no decode delegate for the input
        ExternalToolError: any other identify failure
        ParseError: output did not hold a usable record
    """
    config = config if config is not None else get_defaults()
    fields: Dict[str, Union[str, FormatField]] = dict(IDENTIFY_FIELDS)
    fields.update(format or {})
    command = _build_command(config.identify_executable, fields, source, verify)

    output = await _query(source, command, config)

    data = parse_output(output)
    try:
        info = ImageInfo(
            format=normalize_format(data['format']),
            width=int(data['width']),
            height=int(data['height']),
            frame_count=data['frame_count'],
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ParseError(f"Unable to parse identify data, output was: {output}", output) from e

    info.extra = {k: v for k, v in data.items() if k not in _CORE_KEYS and k != 'frame_count'}
    return info


def dimensions_sync(source: Any, config: Optional[ImagickalConfig] = None) -> Dimensions:
    """Blocking wrapper for dimensions"""
    return asyncio.run(dimensions(source, config))


def identify_sync(source: Any, format: Optional[Mapping[str, Union[str, FormatField]]] = None,
                  verify: bool = False, config: Optional[ImagickalConfig] = None) -> ImageInfo:
    """Blocking wrapper for identify"""
    return asyncio.run(identify(source, format, verify, config))
