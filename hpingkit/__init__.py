"""Build, split and report on TCP/IP probe packets held as bytes."""

__version__ = "0.1.0"