# rvos

A model of a small RISC-V teaching operating system: its formatted
console output, edited line input and `scanf`-style parsing, Sv39
page-table and ELF header helpers, trap decoding, a system call layer
over an in-memory file tree with a small process table, the user
programs `cat`, `echo`, `ls`, `touch`, `delete`, `hello` and `t`, and the
interactive shell that runs them.

No third-party libraries are needed.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## The shell

```
rvos-shell
```

(or `python -m rvos.shell`) starts the shell on your terminal. It prints a
banner and a `$ ` prompt, and stops at `exit` or at the end of input.

Built-in commands are `exit`, `help`, `pid`, `fork`, `sleep <n>` and
`clear`. Any other word is run as one of the user programs, with or
without a leading `/`:

```
$ echo hi note.txt
$ cat note.txt
hi
$ ls
FILE 3 note.txt
$ touch empty
$ delete note.txt
已删除: note.txt
$ hello
Hello, World!
```

Words are split on whitespace only; quotation marks are not treated
specially. Messages printed by the shell and the programs are in Chinese.

## Using the library

### Formatting (`rvos.fmt`)

`kformat` follows the kernel `printf` rules (`%d %i %x %X %p %c %s %%`),
`uformat` the user-space ones (`%d %i %u %x %X %c %s %%`); unknown
conversions are copied through. `itoa` renders integers in bases 2 to 16.

```python
from rvos.fmt import kformat, uformat, itoa, colored, Color

kformat("pid=%d addr=%p", 7, 0x80000000)   # 'pid=7 addr=0x80000000'
uformat("%u items", 3)                      # '3 items'
itoa(255, 16, False)                        # 'ff'
colored(Color.RED, "%s", "alert")          # '\x1b[31malert\x1b[0m'
```

`clear_screen`, `clear_line`, `goto_xy`, `set_text_color`,
`set_background_color` and `reset_colors` return the matching ANSI escape
sequences.

### Parsing input (`rvos.scan`)

`scan(fmt, text)` parses one line against `%d %u %x %X %s %c %%` and
returns a list with one entry per conversion attempted: the value, or
`None` where the input did not match.

```python
from rvos.scan import scan

scan("%d %x %s", "42 0x1f word")   # [42, 31, 'word']
```

### Console (`rvos.console`)

`Console(infile, outfile)` wraps two text streams (standard input and
output by default). `read_line(n)` reads with echo and backspace editing;
`translate_input` maps carriage return to newline and backspace/delete to
`BACKSPACE`.

### Paging and ELF (`rvos.memory`)

`pgroundup`, `pgrounddown`, `pa2pte`, `pte2pa`, `pte_flags`, `px`,
`make_satp` and the `PteFlag` bits; `ElfHeader.parse(data)` decodes a
little-endian ELF64 header (raising `ValueError` on a bad magic) and
`program_headers(data)` yields its `ProgramHeader`s.

### Traps (`rvos.traps`)

`decode_scause`, `devintr`, `usertrap_action` and a `TrapFrame` with its
memory image (`from_bytes`, `to_bytes`). `handle_syscall(frame, table)`
runs the call numbered in `a7`, stores the result in `a0` and steps past
the `ecall`; `handle_exception` steps over breakpoints, dispatches
environment calls and raises `KernelPanic` for every other cause.

### System calls (`rvos.syscalls`)

```python
from rvos.console import Console
from rvos.syscalls import System, OpenFlag

system = System({"readme": "hello\n"}, Console())
fd = system.open("note.txt", OpenFlag.CREATE | OpenFlag.WRONLY)
system.write(fd, b"hello\n")
system.close(fd)
```

`System` offers `getpid`, `fork`, `wait`, `exit`, `sleep`, `open`, `read`,
`write`, `close`, `fstat`, `unlink` and `mkdir`. Failed calls raise
`SyscallError`; `exit` raises `ProgramExit` carrying the status and pid.
`dispatch(num, *args)` calls by `SyscallNumber` and turns failures into
`-1`. A forked child becomes the current process until it exits.

### Programs and shell

`rvos.programs.run_program(system, name, argv)` runs one of the programs
in `PROGRAMS` in a forked child and returns its exit status.
`rvos.shell.Shell(system, programs)` runs command lines: `execute(argv)`
for one, `run()` for the interactive loop; `parse_line` splits a line.

## What it does not do

- The file tree lives in memory only: nothing is read from or written to
  a disk image, and files created in the shell are gone when it exits.
- Programs are the Python functions listed in `PROGRAMS`; no executable
  file is loaded, so the `EXEC` and `SBRK` system calls always fail.
- Processes run one after another (a forked child runs to completion
  before its parent resumes); there is no scheduler, timer or real
  concurrency.