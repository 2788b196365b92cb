"""Console, formatting, paging, trap, system call, user program and shell model of a small RISC-V teaching OS."""

__version__ = "0.1.0"

__all__ = ["console", "fmt", "memory", "programs", "scan", "shell", "syscalls", "traps"]