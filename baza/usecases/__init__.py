"""Use-case layer for workflows built on top of the ports.

Each module coordinates domain objects and ports without performing transport
I/O directly.
"""
