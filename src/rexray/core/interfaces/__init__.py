"""Interfaces of the core.

Structural contracts (Protocol) implemented by concrete adapters, so the
services can be exercised with fakes in tests.
"""
