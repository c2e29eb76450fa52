"""
Utility modules for the statistics engine.

This package contains shared helpers used across the engine, currently the
laboratory-timezone datetime utilities.
"""
