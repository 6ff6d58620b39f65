# nemudiff

`nemudiff` collects the parts needed to test an instruction-set emulator
against a reference implementation, with QEMU as the reference, driven
through its GDB stub.

## Modules

- **`nemudiff.bits`**: `bitmask`, `bits` (like `x[hi:lo]` in Verilog),
  `sext` (sign-extend to an unsigned 64-bit value), `roundup`, `rounddown`
  and `format_word`, which prints a word as zero-padded hex (8 or 16 digits).
- **`nemudiff.decode`**: instruction pattern matching. `pattern_decode`
  takes strings of `0`, `1` and `?` (at most 64 characters) and
  `pattern_decode_hex` takes lower-case hex digits and `?` (at most 16).
  Spaces are ignored. Both return a `Pattern` with `key`, `mask`, `shift` and
  `matches(inst)`. A `PatternTable` tries its patterns in the order they were
  added. `dispatch(inst, *args)` calls the first matching action with `*args`
  and raises `LookupError` if no pattern matches.
- **`nemudiff.memory`**: `host_read` and `host_write` (little-endian; 1, 2 or
  4 bytes, and 8 bytes when `isa64` is set) and `PhysicalMemory`, a byte
  buffer mapped at `mbase`. It provides `in_pmem`, `guest_to_host`,
  `host_to_guest`, `read`, `write` and `reset_vector`. An access outside the
  range raises `IndexError`.
- **`nemudiff.log`**: `RunState` and `NemuState`, ANSI colour constants and
  `ansi_fmt`, a `LogSink` that writes blue log lines to a stream and, when
  enabled, to a log file, and `panic` / `check`, which raise `PanicError`.
- **`nemudiff.difftest_def`**: the copy `Direction` (`TO_DUT`, `TO_REF`),
  `reg_size(isa, rv64, rve)` for `x86`, `mips32`, `riscv` and `loongarch32r`,
  and `check_reg`. `check_reg` returns whether two register values agree. On
  a mismatch it logs the register, the pc, both values and their XOR.
- **`nemudiff.protocol`**: a GDB remote serial protocol client.
  - `encode_packet` frames a command as `$payload#XX`.
  - `read_packet` reads one packet, expands escapes and run-length encoding,
    and checks the checksum.
  - `GdbConnection` adds acknowledgements and resends, `start_noack` and TCP
    `connect`. `connect` returns `None` when the peer cannot be reached.
  - Hex helpers: `hex_encode`, `gdb_decode_hex`, `gdb_decode_hex_str`.
- **`nemudiff.gdbhost`**:
  - `isa_profile(isa, rv64)` gives the QEMU binary, its arguments and the
    register layout for each supported ISA.
  - `regs_from_reply` and `regs_to_payload` convert between `g`/`G` packets
    and raw register bytes.
  - `GdbHost` offers `memcpy_to_qemu` (sent in chunks of at most 1500 bytes),
    `getregs`, `setregs` and `step`. `GdbHost.connect` retries until the stub
    accepts.
- **`nemudiff.qemu_diff`**: `QemuDifftest`.
  - `init()` starts the matching `qemu-system-*` binary with `-S -gdb tcp::<port>`,
    connects, and registers `close` to run at exit. On x86 `init_isa` then loads
    boot code that switches the guest to protected mode.
  - `memcpy` (towards the reference only), `regcpy`, `exec` and `close` drive
    the reference.
- **`nemudiff.preprocess`**: a Kconfig-style `$(...)` expander.
  - Variables added with `variable_add` are simple, recursive or appending.
    `$(1)`, `$(2)`, … refer to call arguments.
  - Built-in functions: `error-if`, `filename`, `info`, `lineno`, `shell`,
    `warning-if`.
  - Names that are neither variables nor functions are looked up in the
    environment. `env_write_dep` writes make rules for the environment
    variables that were used.
  - `FileRegistry` keeps one record per file name.

The package uses only the standard library. `QemuDifftest.init` needs the
matching `qemu-system-*` binary on `PATH`.

## Examples

```python
from nemudiff.bits import bits, bitmask

assert bitmask(4) == 0xF
assert bits(0b1101_0000, 7, 4) == 0b1101
```

```python
from nemudiff.decode import PatternTable

table = PatternTable()
table.add("??????? ????? ????? ??? ????? 01101 11", lambda: "lui")
table.add("??????? ????? ????? ??? ????? ????? ??", lambda: "invalid")

print(table.dispatch(0x000012B7))  # lui
```

```python
from nemudiff.preprocess import Preprocessor, VariableFlavor

pp = Preprocessor()
pp.variable_add("ARCH", "riscv32", VariableFlavor.SIMPLE)
pp.variable_add("greet", "hello $(1)", VariableFlavor.RECURSIVE)

print(pp.expand_string("$(greet,$(ARCH))"))  # hello riscv32
```

## Errors

- `PanicError` is raised by `panic`, by a failed `check`, and by
  `QemuDifftest` when it has no connection, when a transfer fails or when
  `raise_intr` is called.
- `ProtocolError` is raised for an invalid address or a failed write.
  `ConnectionClosed`, a subclass of it, is raised when the remote end closes
  the connection.
- `PreprocessError` is raised for the following, with the current file and
  line in its message:
  - unterminated references
  - self-referencing recursive variables
  - too deep expansion
  - wrong argument counts to built-in functions
  - `error-if` with `y`

## What it does not do

The package contains no emulator CPU, no instruction set implementation and
no command-line program. It is a library to build such tools on. QEMU is the
only reference back end. Interrupts cannot be injected into it:
`QemuDifftest.raise_intr` always raises `PanicError`. QEMU memory can only be
written, not read back, through `QemuDifftest.memcpy`.