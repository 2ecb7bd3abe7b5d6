"""A simulated teaching kernel: memory allocators, block storage, a logging file system, files, pipes, processes and devices."""

__version__ = "0.1.0"