"""Structures, flags and ioctls of the Linux GPIO character device uAPI v2."""

from __future__ import annotations

import enum
import fcntl
import os
import struct
from dataclasses import dataclass, field
from typing import ClassVar, Iterable, Union

LINES_MAX = 64
"""Maximum number of lines in a single request."""

NAME_SIZE = 32
"""Size of the name and consumer fields, including the terminating NUL."""

ATTRS_MAX = 10
"""Maximum number of attributes in a line config or line info."""

_U32 = 0xFFFF_FFFF
_U64 = 0xFFFF_FFFF_FFFF_FFFF

_LINE_CONFIG_PAD = 5
_LINE_REQUEST_PAD = 5
_LINE_EVENT_PAD = 6
_LINE_INFO_PAD = 4
_LINE_INFO_CHANGED_PAD = 5

FileDescriptor = Union[int, "os.PathLike[str]", object]


def _fixed(values: Iterable[int], size: int, what: str) -> tuple[int, ...]:
    """Return values zero-filled to exactly size entries."""
    items = tuple(values)
    if len(items) > size:
        raise ValueError(f"{what} holds at most {size} entries, got {len(items)}")
    return items + (0,) * (size - len(items))


def _cstring(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", "replace")


def _expect_size(data: bytes, size: int, what: str) -> None:
    if len(data) != size:
        raise ValueError(f"{what} needs {size} bytes, got {len(data)}")


class LineFlagV2(enum.IntFlag):
    """Flags describing the configuration of a line."""

    USED = 1 << 0
    ACTIVE_LOW = 1 << 1
    INPUT = 1 << 2
    OUTPUT = 1 << 3
    EDGE_RISING = 1 << 4
    EDGE_FALLING = 1 << 5
    OPEN_DRAIN = 1 << 6
    OPEN_SOURCE = 1 << 7
    BIAS_PULL_UP = 1 << 8
    BIAS_PULL_DOWN = 1 << 9
    BIAS_DISABLED = 1 << 10
    EVENT_CLOCK_REALTIME = 1 << 11

    DIRECTION_MASK = INPUT | OUTPUT
    EDGE_MASK = EDGE_RISING | EDGE_FALLING
    EDGE_BOTH = EDGE_RISING | EDGE_FALLING
    DRIVE_MASK = OPEN_DRAIN | OPEN_SOURCE
    BIAS_MASK = BIAS_DISABLED | BIAS_PULL_UP | BIAS_PULL_DOWN

    def _has(self, flag: int) -> bool:
        return int(self) & int(flag) != 0

    def is_available(self) -> bool:
        """True if the line may be requested."""
        return not self._has(LineFlagV2.USED)

    def is_used(self) -> bool:
        """True if the line is already in use."""
        return self._has(LineFlagV2.USED)

    def is_active_low(self) -> bool:
        return self._has(LineFlagV2.ACTIVE_LOW)

    def is_input(self) -> bool:
        return self._has(LineFlagV2.INPUT)

    def is_output(self) -> bool:
        return self._has(LineFlagV2.OUTPUT)

    def is_open_drain(self) -> bool:
        return self._has(LineFlagV2.OPEN_DRAIN)

    def is_open_source(self) -> bool:
        return self._has(LineFlagV2.OPEN_SOURCE)

    def is_rising_edge(self) -> bool:
        return self._has(LineFlagV2.EDGE_RISING)

    def is_falling_edge(self) -> bool:
        return self._has(LineFlagV2.EDGE_FALLING)

    def is_both_edges(self) -> bool:
        both = int(LineFlagV2.EDGE_BOTH)
        return int(self) & both == both

    def is_bias_disabled(self) -> bool:
        return self._has(LineFlagV2.BIAS_DISABLED)

    def is_bias_pull_up(self) -> bool:
        return self._has(LineFlagV2.BIAS_PULL_UP)

    def is_bias_pull_down(self) -> bool:
        return self._has(LineFlagV2.BIAS_PULL_DOWN)

    def has_realtime_event_clock(self) -> bool:
        return self._has(LineFlagV2.EVENT_CLOCK_REALTIME)

    def encode(self) -> "LineAttribute":
        """Return a flags attribute holding these flags."""
        return LineAttribute.from_u64(LineAttributeID.FLAGS, int(self))

    @classmethod
    def decode(cls, attr: "LineAttribute") -> "LineFlagV2":
        """Return the flags held in a flags attribute."""
        return cls(attr.value64())


def _flags(value: int) -> LineFlagV2:
    return LineFlagV2(int(value) & _U64)


class LineAttributeID(enum.IntEnum):
    """Identifies the kind of value held by a line attribute."""

    FLAGS = 1
    OUTPUT_VALUES = 2
    DEBOUNCE = 3


@dataclass(frozen=True)
class LineAttribute:
    """A configuration attribute: an id and an 8 byte native endian value."""

    id: int = 0
    value: bytes = bytes(8)
    padding: int = 0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("=II8s")
    SIZE: ClassVar[int] = _STRUCT.size

    def __post_init__(self) -> None:
        if len(self.value) != 8:
            raise ValueError("attribute value must be 8 bytes")

    @classmethod
    def from_u32(cls, attr_id: int, value: int) -> "LineAttribute":
        return cls(attr_id, struct.pack("=I", value & _U32) + bytes(4))

    @classmethod
    def from_u64(cls, attr_id: int, value: int) -> "LineAttribute":
        return cls(attr_id, struct.pack("=Q", value & _U64))

    def value32(self) -> int:
        return struct.unpack("=I", self.value[:4])[0]

    def value64(self) -> int:
        return struct.unpack("=Q", self.value)[0]

    def pack(self) -> bytes:
        return self._STRUCT.pack(self.id & _U32, self.padding & _U32, self.value)

    @classmethod
    def unpack(cls, data: bytes) -> "LineAttribute":
        _expect_size(data, cls.SIZE, "LineAttribute")
        attr_id, padding, value = cls._STRUCT.unpack(data)
        return cls(attr_id, value, padding)


class DebouncePeriod(int):
    """A debounce period in nanoseconds."""

    def encode(self) -> LineAttribute:
        """Return a debounce attribute, with the period in microseconds."""
        return LineAttribute.from_u32(LineAttributeID.DEBOUNCE, int(self) // 1000)

    @classmethod
    def decode(cls, attr: LineAttribute) -> "DebouncePeriod":
        return cls(attr.value32() * 1000)


class LineBitmap(int):
    """A 64 bit bitmap holding one bit per requested line."""

    @staticmethod
    def _mask(n: int) -> int:
        return 1 << n if 0 <= n < LINES_MAX else 0

    def get(self, n: int) -> int:
        """Return the value of bit n, 0 or 1."""
        if not 0 <= n < LINES_MAX:
            return 0
        return (int(self) >> n) & 1

    def set(self, n: int, value: int) -> "LineBitmap":
        """Return a copy with bit n set to value."""
        mask = self._mask(n)
        if value == 0:
            return type(self)(int(self) & ~mask & _U64)
        return type(self)(int(self) | mask)


class OutputValues(LineBitmap):
    """The active levels of output lines."""

    def encode(self) -> LineAttribute:
        return LineAttribute.from_u64(LineAttributeID.OUTPUT_VALUES, int(self))

    @classmethod
    def decode(cls, attr: LineAttribute) -> "OutputValues":
        return cls(attr.value64())


def new_line_bits(*args: int) -> LineBitmap:
    """Return a bitmap with the given bit numbers set."""
    bitmap = LineBitmap(0)
    for bit in args:
        bitmap = bitmap.set(bit, 1)
    return bitmap


def new_line_bitmap(*args: int) -> LineBitmap:
    """Return a bitmap built from a sequence of bit values."""
    bitmap = LineBitmap(0)
    for index, value in enumerate(args):
        bitmap = bitmap.set(index, value)
    return bitmap


def new_line_bit_mask(n: int) -> LineBitmap:
    """Return a mask of the lowest n bits."""
    if n >= LINES_MAX or n < 0:
        return LineBitmap(_U64)
    return LineBitmap((1 << n) - 1)


@dataclass(frozen=True)
class LineConfigAttribute:
    """An attribute applied to the requested lines selected by mask."""

    attr: LineAttribute = field(default_factory=LineAttribute)
    mask: int = 0

    SIZE: ClassVar[int] = LineAttribute.SIZE + 8

    def pack(self) -> bytes:
        return self.attr.pack() + struct.pack("=Q", self.mask & _U64)

    @classmethod
    def unpack(cls, data: bytes) -> "LineConfigAttribute":
        _expect_size(data, cls.SIZE, "LineConfigAttribute")
        attr = LineAttribute.unpack(data[: LineAttribute.SIZE])
        (mask,) = struct.unpack("=Q", data[LineAttribute.SIZE :])
        return cls(attr, LineBitmap(mask))


@dataclass
class LineConfig:
    """The configuration of a set of requested lines."""

    flags: LineFlagV2 = LineFlagV2(0)
    attrs: list[LineConfigAttribute] = field(default_factory=list)
    padding: tuple[int, ...] = (0,) * _LINE_CONFIG_PAD

    _HEAD: ClassVar[struct.Struct] = struct.Struct(f"=QI{_LINE_CONFIG_PAD}I")
    SIZE: ClassVar[int] = _HEAD.size + ATTRS_MAX * LineConfigAttribute.SIZE

    def __post_init__(self) -> None:
        self.flags = _flags(self.flags)
        self.padding = _fixed(self.padding, _LINE_CONFIG_PAD, "padding")

    @property
    def num_attrs(self) -> int:
        return len(self.attrs)

    def add_attribute(self, attr: LineConfigAttribute) -> None:
        """Append an attribute; ignored once the config is full."""
        if len(self.attrs) < ATTRS_MAX:
            self.attrs.append(attr)

    def remove_attribute(self, attr: LineConfigAttribute) -> None:
        """Remove every attribute equal to attr."""
        self.attrs = [a for a in self.attrs if a != attr]

    def remove_attribute_id(self, attr_id: int) -> None:
        """Remove every attribute with the given id."""
        self.attrs = [a for a in self.attrs if a.attr.id != attr_id]

    def pack(self) -> bytes:
        if len(self.attrs) > ATTRS_MAX:
            raise ValueError(f"at most {ATTRS_MAX} attributes, got {len(self.attrs)}")
        head = self._HEAD.pack(int(self.flags) & _U64, len(self.attrs), *self.padding)
        filler = [LineConfigAttribute()] * (ATTRS_MAX - len(self.attrs))
        return head + b"".join(a.pack() for a in [*self.attrs, *filler])

    @classmethod
    def unpack(cls, data: bytes) -> "LineConfig":
        _expect_size(data, cls.SIZE, "LineConfig")
        flags, num_attrs, *padding = cls._HEAD.unpack(data[: cls._HEAD.size])
        body = data[cls._HEAD.size :]
        size = LineConfigAttribute.SIZE
        attrs = [
            LineConfigAttribute.unpack(body[i * size : (i + 1) * size])
            for i in range(min(num_attrs, ATTRS_MAX))
        ]
        return cls(_flags(flags), attrs, tuple(padding))


@dataclass
class LineRequest:
    """A request for a set of lines on one chip."""

    offsets: list[int] = field(default_factory=list)
    consumer: str = ""
    config: LineConfig = field(default_factory=LineConfig)
    event_buffer_size: int = 0
    padding: tuple[int, ...] = (0,) * _LINE_REQUEST_PAD
    fd: int = -1

    _HEAD: ClassVar[struct.Struct] = struct.Struct(f"={LINES_MAX}I{NAME_SIZE}s")
    _TAIL: ClassVar[struct.Struct] = struct.Struct(f"=II{_LINE_REQUEST_PAD}Ii")
    SIZE: ClassVar[int] = _HEAD.size + LineConfig.SIZE + _TAIL.size

    def __post_init__(self) -> None:
        self.offsets = list(self.offsets)
        self.padding = _fixed(self.padding, _LINE_REQUEST_PAD, "padding")

    @property
    def lines(self) -> int:
        return len(self.offsets)

    def pack(self) -> bytes:
        offsets = _fixed(self.offsets, LINES_MAX, "offsets")
        head = self._HEAD.pack(*offsets, self.consumer.encode("utf-8"))
        tail = self._TAIL.pack(
            len(self.offsets), self.event_buffer_size, *self.padding, self.fd
        )
        return head + self.config.pack() + tail

    @classmethod
    def unpack(cls, data: bytes) -> "LineRequest":
        _expect_size(data, cls.SIZE, "LineRequest")
        *offsets, consumer = cls._HEAD.unpack(data[: cls._HEAD.size])
        config_end = cls._HEAD.size + LineConfig.SIZE
        config = LineConfig.unpack(data[cls._HEAD.size : config_end])
        lines, buffer_size, *rest = cls._TAIL.unpack(data[config_end:])
        *padding, fd = rest
        return cls(
            offsets=offsets[: min(lines, LINES_MAX)],
            consumer=_cstring(consumer),
            config=config,
            event_buffer_size=buffer_size,
            padding=tuple(padding),
            fd=fd,
        )


@dataclass
class LineValues:
    """Logical values of the lines selected by mask."""

    bits: int = 0
    mask: int = 0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("=QQ")
    SIZE: ClassVar[int] = _STRUCT.size

    def get(self, n: int) -> int:
        """Return the value of line n in the request, 0 or 1."""
        return LineBitmap(self.bits & _U64).get(n)

    def pack(self) -> bytes:
        return self._STRUCT.pack(self.bits & _U64, self.mask & _U64)

    @classmethod
    def unpack(cls, data: bytes) -> "LineValues":
        _expect_size(data, cls.SIZE, "LineValues")
        bits, mask = cls._STRUCT.unpack(data)
        return cls(LineBitmap(bits), LineBitmap(mask))


class LineEventID(enum.IntEnum):
    """The kind of edge detected."""

    RISING_EDGE = 1
    FALLING_EDGE = 2


def _event_id(value: int) -> int:
    try:
        return LineEventID(value)
    except ValueError:
        return value


@dataclass
class LineEvent:
    """An edge event read from a requested line."""

    timestamp: int = 0
    id: int = 0
    offset: int = 0
    seqno: int = 0
    line_seqno: int = 0
    padding: tuple[int, ...] = (0,) * _LINE_EVENT_PAD

    _STRUCT: ClassVar[struct.Struct] = struct.Struct(f"=QIIII{_LINE_EVENT_PAD}I")
    SIZE: ClassVar[int] = _STRUCT.size

    def __post_init__(self) -> None:
        self.padding = _fixed(self.padding, _LINE_EVENT_PAD, "padding")

    def pack(self) -> bytes:
        return self._STRUCT.pack(
            self.timestamp & _U64,
            int(self.id),
            self.offset,
            self.seqno,
            self.line_seqno,
            *self.padding,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "LineEvent":
        _expect_size(data, cls.SIZE, "LineEvent")
        timestamp, event_id, offset, seqno, line_seqno, *padding = cls._STRUCT.unpack(
            data
        )
        return cls(timestamp, _event_id(event_id), offset, seqno, line_seqno, tuple(padding))


@dataclass
class LineInfoV2:
    """The details of a single line of a chip."""

    name: str = ""
    consumer: str = ""
    offset: int = 0
    flags: LineFlagV2 = LineFlagV2(0)
    attrs: list[LineAttribute] = field(default_factory=list)
    padding: tuple[int, ...] = (0,) * _LINE_INFO_PAD

    _HEAD: ClassVar[struct.Struct] = struct.Struct(f"={NAME_SIZE}s{NAME_SIZE}sIIQ")
    _TAIL: ClassVar[struct.Struct] = struct.Struct(f"={_LINE_INFO_PAD}I")
    SIZE: ClassVar[int] = _HEAD.size + ATTRS_MAX * LineAttribute.SIZE + _TAIL.size

    def __post_init__(self) -> None:
        self.flags = _flags(self.flags)
        self.attrs = list(self.attrs)
        self.padding = _fixed(self.padding, _LINE_INFO_PAD, "padding")

    @property
    def num_attrs(self) -> int:
        return len(self.attrs)

    def pack(self) -> bytes:
        if len(self.attrs) > ATTRS_MAX:
            raise ValueError(f"at most {ATTRS_MAX} attributes, got {len(self.attrs)}")
        head = self._HEAD.pack(
            self.name.encode("utf-8"),
            self.consumer.encode("utf-8"),
            self.offset,
            len(self.attrs),
            int(self.flags) & _U64,
        )
        filler = [LineAttribute()] * (ATTRS_MAX - len(self.attrs))
        body = b"".join(a.pack() for a in [*self.attrs, *filler])
        return head + body + self._TAIL.pack(*self.padding)

    @classmethod
    def unpack(cls, data: bytes) -> "LineInfoV2":
        _expect_size(data, cls.SIZE, "LineInfoV2")
        name, consumer, offset, num_attrs, flags = cls._HEAD.unpack(
            data[: cls._HEAD.size]
        )
        size = LineAttribute.SIZE
        body = data[cls._HEAD.size : cls._HEAD.size + ATTRS_MAX * size]
        attrs = [
            LineAttribute.unpack(body[i * size : (i + 1) * size])
            for i in range(min(num_attrs, ATTRS_MAX))
        ]
        padding = cls._TAIL.unpack(data[cls.SIZE - cls._TAIL.size :])
        return cls(_cstring(name), _cstring(consumer), offset, _flags(flags), attrs, padding)


@dataclass
class LineInfoChangedV2:
    """A change to the info of a watched line."""

    info: LineInfoV2 = field(default_factory=LineInfoV2)
    timestamp: int = 0
    change_type: int = 0
    padding: tuple[int, ...] = (0,) * _LINE_INFO_CHANGED_PAD

    _TAIL: ClassVar[struct.Struct] = struct.Struct(f"=QI{_LINE_INFO_CHANGED_PAD}I")
    SIZE: ClassVar[int] = LineInfoV2.SIZE + _TAIL.size

    def __post_init__(self) -> None:
        self.padding = _fixed(self.padding, _LINE_INFO_CHANGED_PAD, "padding")

    def pack(self) -> bytes:
        tail = self._TAIL.pack(self.timestamp & _U64, self.change_type, *self.padding)
        return self.info.pack() + tail

    @classmethod
    def unpack(cls, data: bytes) -> "LineInfoChangedV2":
        _expect_size(data, cls.SIZE, "LineInfoChangedV2")
        info = LineInfoV2.unpack(data[: LineInfoV2.SIZE])
        timestamp, change_type, *padding = cls._TAIL.unpack(data[LineInfoV2.SIZE :])
        return cls(info, timestamp, change_type, tuple(padding))


def _iorw(nr: int, size: int) -> int:
    return (3 << 30) | (size << 16) | (0xB4 << 8) | nr


_GET_LINE_INFO_V2 = _iorw(0x05, LineInfoV2.SIZE)
_WATCH_LINE_INFO_V2 = _iorw(0x06, LineInfoV2.SIZE)
_GET_LINE = _iorw(0x07, LineRequest.SIZE)
_SET_LINE_CONFIG_V2 = _iorw(0x0D, LineConfig.SIZE)
_GET_LINE_VALUES_V2 = _iorw(0x0E, LineValues.SIZE)
_SET_LINE_VALUES_V2 = _iorw(0x0F, LineValues.SIZE)


def _fileno(fd) -> int:
    return fd if isinstance(fd, int) else fd.fileno()


def _ioctl(fd, request: int, payload: bytes) -> bytearray:
    buf = bytearray(payload)
    fcntl.ioctl(_fileno(fd), request, buf, True)
    return buf


def _read_exact(fd, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        chunk = os.read(_fileno(fd), size - len(data))
        if not chunk:
            raise EOFError(f"expected {size} bytes, got {len(data)}")
        data += chunk
    return bytes(data)


def get_line_info_v2(fd, offset: int) -> LineInfoV2:
    """Return the info of one line of an open chip."""
    buf = _ioctl(fd, _GET_LINE_INFO_V2, LineInfoV2(offset=offset).pack())
    return LineInfoV2.unpack(bytes(buf))


def get_line(fd, request: LineRequest) -> int:
    """Request lines from an open chip and return the fd of the request."""
    buf = _ioctl(fd, _GET_LINE, request.pack())
    return LineRequest.unpack(bytes(buf)).fd


def get_line_values_v2(fd, values: LineValues) -> LineValues:
    """Return the logical values of the lines selected by values.mask."""
    buf = _ioctl(fd, _GET_LINE_VALUES_V2, values.pack())
    return LineValues.unpack(bytes(buf))


def set_line_values_v2(fd, values: LineValues) -> None:
    """Set the logical values of the lines selected by values.mask."""
    _ioctl(fd, _SET_LINE_VALUES_V2, values.pack())


def set_line_config_v2(fd, config: LineConfig) -> None:
    """Replace the configuration of a line request."""
    _ioctl(fd, _SET_LINE_CONFIG_V2, config.pack())


def watch_line_info_v2(fd, info: LineInfoV2) -> LineInfoV2:
    """Watch the line at info.offset and return its current info."""
    buf = _ioctl(fd, _WATCH_LINE_INFO_V2, info.pack())
    return LineInfoV2.unpack(bytes(buf))


def read_line_event(fd) -> LineEvent:
    """Read one edge event from a line request; blocks until one is ready."""
    return LineEvent.unpack(_read_exact(fd, LineEvent.SIZE))


def read_line_info_changed_v2(fd) -> LineInfoChangedV2:
    """Read one line info change from a chip; blocks until one is ready."""
    return LineInfoChangedV2.unpack(_read_exact(fd, LineInfoChangedV2.SIZE))