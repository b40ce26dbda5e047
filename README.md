# n64plus

Building blocks for a Nintendo 64 emulator, in plain Python with no
third-party dependencies.

## What is inside

- `n64plus.cpu_state`: `CpuState` holds the 32 general registers
  (`registers`), `hi`/`lo`, `pc`/`next_pc`, the delay-slot flags, the
  `llbit`, a cycle counter (`add_cycles`) and the floating-point register
  views used in traces. `set_register` masks to 64 bits and ignores writes
  to register 0. `MemoryBus` is a big-endian flat memory (8 MiB by default)
  reached through the direct-mapped segments: `0x80000000–0x9FFFFFFF` is
  cached, `0xA0000000–0xBFFFFFFF` uncached, and any other address translates
  with `error` set in the returned `Translation`. Reads outside memory give
  zero and writes outside it are dropped. The module also has the field
  decoders `rs`, `rt`, `rd`, `shift_amount`, `immediate` and
  `signed_immediate`, and `InstructionError`.
- `n64plus.alu`: arithmetic, logic, shift, multiply and divide instructions
  (`execute_immediate`, `execute_special`). Multiply and divide add cycles to
  the CPU's counter.
- `n64plus.flow`: jumps and branches, including the "likely" forms that
  skip their delay slot when not taken (`execute_jump`, `execute_branch`,
  `execute_regimm`).
- `n64plus.memory`: loads and stores, including the unaligned left/right
  forms and `LL`/`SC` (`execute_load`, `execute_store`). A failed address
  translation leaves registers and memory unchanged.
- `n64plus.executor`: `execute(cpu, bus, instruction)` decodes one
  instruction word and runs it, including the `CACHE` instruction's
  operations on the bus's instruction and data cache lines.
- `n64plus.disasm_primary` and `n64plus.disassembler`: text rendering of
  instructions annotated with the register values they use.
  `disassemble(cpu, instruction, bus)` handles every opcode group;
  `format_primary`, `format_regimm`, `format_special`, `format_cop0` and
  `format_cop1` render one group each.
- `n64plus.scheduler`: `Scheduler`, `Event` and `EventType`, a timed event
  queue with one pending slot per event type, driven by the cycle count.
- `n64plus.rdp`: `RdpCommandQueue` reads command words from RDRAM
  (little-endian word order) or DMEM (big-endian, when the `DpStatus.XBUS_DMA`
  bit is set in `DpcRegisters.status`), splits them into whole commands
  using `command_length`, and hands them to a `CommandSink`. A command whose
  tail has not arrived yet is kept for the next call. `calculate_viewport`
  computes where the 320×240 picture sits, centred, in a window of a given
  size, with or without integer scaling.

Trap instructions, `SYSCALL`, `BREAK`, coprocessor instructions and the few
other instructions that are not modelled raise `InstructionError` when
executed.

## Installing

```
pip install .
```

For running the test suite:

```
pip install .[test]
pytest
```

## Examples

Executing and tracing an instruction:

```python
from n64plus.cpu_state import CpuState, MemoryBus
from n64plus.disassembler import disassemble
from n64plus.executor import execute

cpu = CpuState()
bus = MemoryBus()
word = 0x3C011234  # LUI r1, 0x1234
print(disassemble(cpu, word, bus))  # LUI r1, 0x1234 ; r1 = 0x0
execute(cpu, bus, word)
print(hex(cpu.registers[1]))  # 0x12340000
```

Scheduling events:

```python
from n64plus.scheduler import Event, EventType, Scheduler

scheduler = Scheduler()
scheduler.add_event(Event(EventType.VIDEO_INTERRUPT, 1000))
if scheduler.has_next_event(1200):
    event = scheduler.get_next_event()
    print(event.event_name())  # VideoInterrupt
```

Feeding the RDP command queue:

```python
import struct

from n64plus.rdp import CommandSink, DpcRegisters, RdpCommandQueue

rdram = bytearray(0x1000)
struct.pack_into("<II", rdram, 0, 0x29000000, 0)  # SYNC_FULL

sink = CommandSink()
queue = RdpCommandQueue(sink)
registers = DpcRegisters(current=0, end=8)
print(queue.process(registers, rdram, bytes(0x1000)))  # 5000
print(sink.commands, sink.full_syncs)  # [(687865856, 0)] 1
```

`process` returns the interrupt delay set by a `SYNC_FULL`: the area of the
last `SET_SCISSOR` rectangle, or 5000 if there was none.

## What this package does not do

It is a set of library pieces, not a runnable emulator. There is no command
to start, no ROM or save-file loading, no window, no rendering of RDP
commands (a `CommandSink` only records them), no audio and no controller
input. Coprocessor 0 and coprocessor 1 instructions can be disassembled but
not executed, and there is no TLB: only the direct-mapped segments translate.