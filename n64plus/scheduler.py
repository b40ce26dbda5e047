"""Cycle-based event scheduler with one pending slot per event type."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntEnum

NEVER = 0xFFFF_FFFF_FFFF_FFFF


class EventType(IntEnum):
    VIDEO_INTERRUPT = 0
    PIF_EXECUTE_COMMAND = 1
    RSP_DMA_POP = 2
    RUN_RSP_PC = 3
    PI_DMA = 4
    COMPARE_COUNT = 5
    SI_DMA = 6
    AI_DMA = 7
    RDP_EVENT = 8
    NO_EVENT = 9


_NAMES = {
    EventType.VIDEO_INTERRUPT: "VideoInterrupt",
    EventType.PIF_EXECUTE_COMMAND: "PIFExecuteCommand",
    EventType.RSP_DMA_POP: "RspDmaPop",
    EventType.RUN_RSP_PC: "RunRspPc",
    EventType.PI_DMA: "PIDma",
    EventType.COMPARE_COUNT: "CompareCount",
    EventType.SI_DMA: "SIDma",
    EventType.AI_DMA: "AIDma",
    EventType.RDP_EVENT: "RDPEvent",
    EventType.NO_EVENT: "NoEvent",
}

_SLOTS = len(EventType) - 1


@dataclass
class Event:
    """An event due once the cycle counter reaches ``cycles``."""

    event_type: EventType = EventType.NO_EVENT
    cycles: int = NEVER

    def event_name(self) -> str:
        return _NAMES[self.event_type]


def _slot(event_type: EventType) -> int:
    if event_type == EventType.NO_EVENT:
        raise ValueError("NO_EVENT has no scheduler slot")
    return int(event_type)


class Scheduler:
    """Keeps at most one event per type and tracks the earliest one."""

    def __init__(self) -> None:
        self._events = [Event() for _ in range(_SLOTS)]
        self._time_to_next = NEVER
        self._next = EventType.NO_EVENT

    def add_event(self, event: Event) -> None:
        """Schedule an event, replacing any pending event of the same type."""
        self._events[_slot(event.event_type)] = replace(event)
        if event.cycles < self._time_to_next:
            self._time_to_next = event.cycles
            self._next = event.event_type

    def remove_event(self, event_type: EventType) -> None:
        self._events[_slot(event_type)] = Event()
        if event_type == self._next:
            self._next = EventType.NO_EVENT
            self._time_to_next = NEVER
            self.update_next_event()

    def update_next_event(self) -> None:
        """Lower the next-event mark to any earlier pending event."""
        for event in self._events:
            if event.cycles < self._time_to_next:
                self._time_to_next = event.cycles
                self._next = event.event_type

    def get_event(self, event_type: EventType) -> Event:
        return replace(self._events[_slot(event_type)])

    def has_next_event(self, cycles: int) -> bool:
        return cycles >= self._time_to_next and self._next != EventType.NO_EVENT

    def get_next_event(self) -> Event:
        """Remove and return the earliest pending event."""
        if self._next == EventType.NO_EVENT:
            raise LookupError("no event is pending")
        slot = _slot(self._next)
        event = self._events[slot]
        self._events[slot] = Event()
        self._time_to_next = NEVER
        self._next = EventType.NO_EVENT
        self.update_next_event()
        return event

    def time_to_next(self) -> int:
        return self._time_to_next

    def rebase_events(self, old_cycles: int, new_cycles: int) -> None:
        """Shift every slot from one cycle base to another, in 64-bit arithmetic."""
        for event in self._events:
            event.cycles = (event.cycles - old_cycles + new_cycles) & NEVER
        self.update_next_event()