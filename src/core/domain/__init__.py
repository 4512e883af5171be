"""Domain models and value types.

Pure data structures (Pydantic v2 + frozen dataclasses): hosts, request
templates, outcomes and comparison options. No HTTP, no CLI.
"""
