"""Resolve raw rendering options into one canonical ``Configuration``."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

from .errors import InvalidArgument

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 800.0
DEFAULT_HEIGHT = 600.0
DEFAULT_SCALE = 1.0
DEFAULT_FONT_SIZE = 12.0
FONT_FAMILY = '"Helvetica Neue", Helvetica, Arial, sans-serif'

RawNumbers = Union[str, float, int, Sequence[Union[str, float, int]]]


@dataclass(frozen=True)
class Margins:
    top: float = 0.0
    right: float = 0.0
    bottom: float = 0.0
    left: float = 0.0


@dataclass(frozen=True)
class Position:
    x_attr: str
    y_attr: str


@dataclass(frozen=True)
class Configuration:
    width: float = DEFAULT_WIDTH
    height: float = DEFAULT_HEIGHT
    margins: Margins = Margins()
    position: Optional[Position] = None
    scale: float = DEFAULT_SCALE
    font_size: float = DEFAULT_FONT_SIZE
    node_value_format: Optional[Callable[[float], str]] = None

    @property
    def inner_size(self) -> tuple[float, float]:
        return (
            self.width - self.margins.left - self.margins.right,
            self.height - self.margins.top - self.margins.bottom,
        )


def resolve_options(
    size: Optional[RawNumbers] = None,
    margins: Optional[RawNumbers] = None,
    position: Optional[Union[str, Sequence[str]]] = None,
    scale: Optional[Union[str, float]] = None,
    font_size: Optional[Union[str, float]] = None,
    node_values: Optional[str] = None,
) -> Configuration:
    """Merge user options with defaults.

    Every numeric field is checked to be finite; any malformed value raises
    ``InvalidArgument`` before rendering starts.
    """
    width, height = parse_size(size) if size is not None else (DEFAULT_WIDTH, DEFAULT_HEIGHT)
    resolved_margins = parse_margins(margins) if margins is not None else Margins()
    resolved_position = parse_position(position) if position is not None else None

    resolved_scale = DEFAULT_SCALE
    if scale is not None:
        resolved_scale = _positive(_number(scale, "--scale"), "--scale")
    resolved_font_size = DEFAULT_FONT_SIZE
    if font_size is not None:
        resolved_font_size = _positive(_number(font_size, "--font-size"), "--font-size")

    value_format = make_value_formatter(node_values) if node_values is not None else None

    inner_w = width - resolved_margins.left - resolved_margins.right
    inner_h = height - resolved_margins.top - resolved_margins.bottom
    if inner_w <= 0 or inner_h <= 0:
        raise InvalidArgument(
            f"margins leave no drawing area ({inner_w:g}x{inner_h:g})"
        )

    config = Configuration(
        width=width,
        height=height,
        margins=resolved_margins,
        position=resolved_position,
        scale=resolved_scale,
        font_size=resolved_font_size,
        node_value_format=value_format,
    )
    logger.debug("resolved configuration: %s", config)
    return config


def parse_size(raw: RawNumbers) -> tuple[float, float]:
    values = _numbers(raw, "--size")
    if len(values) == 1:
        width = height = values[0]
    elif len(values) == 2:
        width, height = values
    else:
        raise InvalidArgument(f"--size expects 1 or 2 numbers (got {len(values)})")
    return _positive(width, "--size"), _positive(height, "--size")


def parse_margins(raw: RawNumbers) -> Margins:
    values = _numbers(raw, "--margins")
    if len(values) == 1:
        (m,) = values
        return Margins(top=m, right=m, bottom=m, left=m)
    if len(values) == 2:
        vertical, horizontal = values
        return Margins(top=vertical, right=horizontal, bottom=vertical, left=horizontal)
    if len(values) == 4:
        top, right, bottom, left = values
        return Margins(top=top, right=right, bottom=bottom, left=left)
    raise InvalidArgument(f"--margins expects 1, 2 or 4 numbers (got {len(values)})")


def parse_position(raw: Union[str, Sequence[str]]) -> Position:
    names = _split(raw) if isinstance(raw, str) else [str(item).strip() for item in raw]
    if len(names) != 2 or not all(names):
        raise InvalidArgument(
            f"--position expects exactly two attribute names <x>,<y> (got {raw!r})"
        )
    return Position(x_attr=names[0], y_attr=names[1])


def make_value_formatter(format_spec: str) -> Callable[[float], str]:
    """Return a formatter for a Python format specification such as ``.1f``."""
    try:
        format(1234.5, format_spec)
    except (ValueError, TypeError) as exc:
        raise InvalidArgument(f"--node-values has an invalid format {format_spec!r}: {exc}") from exc

    def _format(value: float) -> str:
        return format(value, format_spec)

    return _format


def _split(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",")]


def _numbers(raw: RawNumbers, option: str) -> List[float]:
    if isinstance(raw, str):
        tokens: Sequence[Union[str, float, int]] = _split(raw)
    elif isinstance(raw, (int, float)):
        tokens = [raw]
    else:
        tokens = list(raw)
    return [_number(token, option) for token in tokens]


def _number(token: Union[str, float, int], option: str) -> float:
    if isinstance(token, bool):
        raise InvalidArgument(f"{option} expects numbers (got {token!r})")
    try:
        value = float(token)
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"{option} expects numbers (got {token!r})") from exc
    if not math.isfinite(value):
        raise InvalidArgument(f"{option} expects finite numbers (got {token!r})")
    return value


def _positive(value: float, option: str) -> float:
    if value <= 0:
        raise InvalidArgument(f"{option} must be > 0 (got {value:g})")
    return value
