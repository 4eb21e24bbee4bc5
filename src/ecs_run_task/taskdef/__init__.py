"""Task definition parsing and templating."""

from .parser import container_names, interpolate, parse, parse_string

__all__ = ['container_names', 'interpolate', 'parse', 'parse_string']
