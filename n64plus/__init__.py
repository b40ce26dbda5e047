"""Nintendo 64 emulator core: CPU instruction execution, disassembly, event scheduling and RDP command queueing."""

__version__ = "0.1.0"