"""Data models and types for imagickal"""

import math
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Mapping, NamedTuple, Optional, Union

Number = Union[int, float, str]


class Operation(str, Enum):
    """Operations a CommandBuilder knows how to render"""
    GRAVITY = 'gravity'
    RESIZE = 'resize'
    CROP = 'crop'
    EXTENT = 'extent'
    ROTATE = 'rotate'
    SHARPEN = 'sharpen'
    QUALITY = 'quality'
    DENSITY = 'density'
    STRIP = 'strip'


class Step(NamedTuple):
    """One rendered command fragment and the operation that produced it"""
    operation: Operation
    fragment: str

    def __str__(self) -> str:
        return self.fragment


class SharpenPreset(NamedTuple):
    """Unsharp mask parameters"""
    radius: float
    amount: float
    threshold: float

    @property
    def sigma(self) -> float:
        return self.radius if self.radius < 1 else math.sqrt(self.radius)


class _OptionRecord:
    """Lenient construction from a mapping; unknown keys are dropped"""
    _aliases: Dict[str, str] = {}

    @classmethod
    def coerce(cls, value: Any):
        if isinstance(value, cls):
            return value
        if not isinstance(value, Mapping):
            return cls()
        names = {f.name for f in fields(cls)}
        kwargs = {}
        for key, val in value.items():
            key = cls._aliases.get(key, key)
            if key in names:
                kwargs[key] = val
        return cls(**kwargs)


@dataclass(frozen=True)
class ResizeOptions(_OptionRecord):
    width: Optional[Number] = None
    height: Optional[Number] = None
    flag: Optional[str] = None


@dataclass(frozen=True)
class CropOptions(_OptionRecord):
    width: Optional[Number] = None
    height: Optional[Number] = None
    x: Optional[Number] = None
    y: Optional[Number] = None


@dataclass(frozen=True)
class ExtentOptions(_OptionRecord):
    width: Optional[Number] = None
    height: Optional[Number] = None


@dataclass(frozen=True)
class RotateOptions(_OptionRecord):
    _aliases = {'bgColor': 'bg_color'}

    angle: Optional[Number] = None
    x: Optional[Number] = None
    y: Optional[Number] = None
    bg_color: Optional[str] = None


@dataclass(frozen=True)
class SharpenOptions(_OptionRecord):
    """mode is a preset name, 'variable' or 'off'; width/height only matter for 'variable'"""
    mode: Any = None
    width: Optional[Number] = None
    height: Optional[Number] = None


@dataclass(frozen=True)
class Dimensions:
    """Image size, frame_count is the number of images in the sequence"""
    width: int
    height: int
    frame_count: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'width': self.width,
            'height': self.height,
            'frame_count': self.frame_count,
        }


@dataclass
class ImageInfo:
    """Result of an identify query for the first image of a sequence"""
    format: str
    width: int
    height: int
    frame_count: int = 1
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(self.width, self.height, self.frame_count)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'format': self.format,
            'width': self.width,
            'height': self.height,
            'frame_count': self.frame_count,
        }
        data.update(self.extra)
        return data


@dataclass(frozen=True)
class FormatField:
    """An identify -format escape; numeric fields are emitted unquoted in the JSON record"""
    value: str
    numeric: bool = False
