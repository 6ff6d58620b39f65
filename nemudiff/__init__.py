"""Differential-testing toolkit: bit helpers, pattern decoding, guest memory, logging, a GDB client driving QEMU and a macro preprocessor."""

__version__ = "0.1.0"