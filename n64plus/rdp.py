"""RDP command list fetching and parsing, and display viewport sizing."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag

DISPLAY_WIDTH = 320
DISPLAY_HEIGHT = 240
DEFAULT_INTERRUPT_DELAY = 5000
_MAX_DOUBLEWORDS_MASK = ~(0x0003FFFF >> 3)


class DpStatus(IntFlag):
    XBUS_DMA = 0x01
    FREEZE = 0x02
    FLUSH = 0x04
    START_GCLK = 0x008
    TMEM_BUSY = 0x010
    PIPE_BUSY = 0x020
    CMD_BUSY = 0x040
    CBUF_READY = 0x080
    DMA_BUSY = 0x100
    END_VALID = 0x200
    START_VALID = 0x400


class RdpOp(IntEnum):
    NOP = 0x00
    FILL_TRIANGLE = 0x08
    FILL_Z_BUFFER_TRIANGLE = 0x09
    TEXTURE_TRIANGLE = 0x0A
    TEXTURE_Z_BUFFER_TRIANGLE = 0x0B
    SHADE_TRIANGLE = 0x0C
    SHADE_Z_BUFFER_TRIANGLE = 0x0D
    SHADE_TEXTURE_TRIANGLE = 0x0E
    SHADE_TEXTURE_Z_BUFFER_TRIANGLE = 0x0F
    TEXTURE_RECTANGLE = 0x24
    TEXTURE_RECTANGLE_FLIP = 0x25
    SYNC_LOAD = 0x26
    SYNC_PIPE = 0x27
    SYNC_TILE = 0x28
    SYNC_FULL = 0x29
    SET_KEY_GB = 0x2A
    SET_KEY_R = 0x2B
    SET_CONVERT = 0x2C
    SET_SCISSOR = 0x2D
    SET_PRIM_DEPTH = 0x2E
    SET_OTHER_MODES = 0x2F
    LOAD_TLUT = 0x30
    SET_TILE_SIZE = 0x32
    LOAD_BLOCK = 0x33
    LOAD_TILE = 0x34
    SET_TILE = 0x35
    FILL_RECTANGLE = 0x36
    SET_FILL_COLOR = 0x37
    SET_FOG_COLOR = 0x38
    SET_BLEND_COLOR = 0x39
    SET_PRIM_COLOR = 0x3A
    SET_ENV_COLOR = 0x3B
    SET_COMBINE = 0x3C
    SET_TEXTURE_IMAGE = 0x3D
    SET_MASK_IMAGE = 0x3E
    SET_COLOR_IMAGE = 0x3F


_LENGTHS = {
    0x08: 4, 0x09: 6, 0x0A: 12, 0x0B: 14,
    0x0C: 12, 0x0D: 14, 0x0E: 20, 0x0F: 22,
    0x24: 2, 0x25: 2,
}


def command_length(command: int) -> int:
    """Length in 64-bit words of the RDP command with the given 6-bit opcode."""
    if not 0 <= command < 64:
        raise ValueError(f"RDP opcode out of range: {command:#x}")
    return _LENGTHS.get(command, 1)


def calculate_viewport(
    window_width: int, window_height: int, integer_scaling: bool
) -> tuple[float, float, float, float]:
    """Centred ``(x, y, width, height)`` of the 320x240 picture in a window."""
    if integer_scaling:
        scale = max(1, min(window_width // DISPLAY_WIDTH, window_height // DISPLAY_HEIGHT))
        width = float(DISPLAY_WIDTH * scale)
        height = float(DISPLAY_HEIGHT * scale)
    else:
        scale = min(window_width / DISPLAY_WIDTH, window_height / DISPLAY_HEIGHT)
        width = DISPLAY_WIDTH * scale
        height = DISPLAY_HEIGHT * scale
    return (window_width - width) / 2.0, (window_height - height) / 2.0, width, height


@dataclass
class DpcRegisters:
    """The command-buffer registers shared between the CPU side and the RDP."""

    start: int = 0
    end: int = 0
    current: int = 0
    status: int = 0


@dataclass
class CommandSink:
    """Receiver of complete RDP commands; records what it is given."""

    commands: list[tuple[int, ...]] = field(default_factory=list)
    full_syncs: int = 0

    def enqueue(self, words: tuple[int, ...]) -> None:
        self.commands.append(words)

    def sync_full(self) -> None:
        self.full_syncs += 1


class RdpCommandQueue:
    """Reads command words from RDRAM or DMEM and hands whole commands to a sink.

    RDRAM is read in little-endian word order, DMEM in big-endian order.
    A command split across two submissions is kept until its tail arrives.
    """

    def __init__(self, sink: CommandSink) -> None:
        self.sink = sink
        self.region = 0
        self._words: list[int] = []
        self._cursor = 0

    def _fetch(self, registers: DpcRegisters, rdram, dmem, offset: int, count: int) -> None:
        from_dmem = bool(registers.status & DpStatus.XBUS_DMA)
        for _ in range(count):
            try:
                if from_dmem:
                    offset &= 0xFF8
                    pair = struct.unpack_from(">II", dmem, offset)
                else:
                    offset &= 0xFFFFF8
                    pair = struct.unpack_from("<II", rdram, offset)
            except struct.error as exc:
                raise IndexError(f"command read past end of memory at {offset:#x}") from exc
            self._words.extend(pair)
            offset += 8

    def process(self, registers: DpcRegisters, rdram, dmem) -> int:
        """Consume commands between CURRENT and END; return the interrupt delay."""
        interrupt_timer = 0
        current = registers.current & 0x00FFFFF8
        end = registers.end & 0x00FFFFF8
        length = end - current
        if length <= 0:
            return interrupt_timer
        length >>= 3

        pending = len(self._words) // 2
        if (pending + length) & _MAX_DOUBLEWORDS_MASK:
            return interrupt_timer
        if not registers.status & DpStatus.XBUS_DMA and (end > 0x7FFFFFF or current > 0x7FFFFFF):
            return interrupt_timer

        self._fetch(registers, rdram, dmem, current, length)
        total = len(self._words) // 2

        while self._cursor < total:
            w1 = self._words[2 * self._cursor]
            w2 = self._words[2 * self._cursor + 1]
            command = (w1 >> 24) & 63
            size = command_length(command)

            if total - self._cursor < size:
                registers.start = registers.current = registers.end
                return interrupt_timer

            if command >= 8:
                begin = 2 * self._cursor
                self.sink.enqueue(tuple(self._words[begin:begin + 2 * size]))

            if command == RdpOp.SET_SCISSOR:
                upper_left_x = ((w1 >> 12) & 0xFFF) >> 2
                upper_left_y = (w1 & 0xFFF) >> 2
                lower_right_x = ((w2 >> 12) & 0xFFF) >> 2
                lower_right_y = (w2 & 0xFFF) >> 2
                self.region = (
                    (lower_right_x - upper_left_x) * (lower_right_y - upper_left_y)
                ) & 0xFFFFFFFF
            elif command == RdpOp.SYNC_FULL:
                self.sink.sync_full()
                interrupt_timer = self.region or DEFAULT_INTERRUPT_DELAY

            self._cursor += size

        self._words.clear()
        self._cursor = 0
        registers.current = registers.end
        return interrupt_timer