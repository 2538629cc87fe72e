"""Adapter package for external I/O implementations.

Purpose:
    Hold the HTTP transport, the typed error taxonomy and the REST adapter
    that implements the domain ports against the remote service.

Dependencies:
    Submodules depend on ``requests`` and on the domain protocol definitions.

Call context:
    Imported by the package root for the public API and by tests for
    transport-level behavior verification.
"""
