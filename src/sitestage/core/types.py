"""Core type definitions."""

from typing import NewType

# URL path for routing (e.g., "/log/2015/04/28/Play-Typed-Action")
# Distinct from filesystem Path to catch type mismatches
URLPath = NewType("URLPath", str)
