"""
Environment adapters.

Provides:
- BaseAdapter: field aliasing and error handling defaults
- AdapterRegistry / adapter_registry: named adapters with auto-detection
- FlaskAdapter: flask.g and JWT bearer tokens
"""

from .base import BaseAdapter, AdapterRegistry, adapter_registry
from .flask import FlaskAdapter

__all__ = [
    'BaseAdapter',
    'AdapterRegistry',
    'adapter_registry',
    'FlaskAdapter',
]
