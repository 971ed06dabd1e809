"""
Utilities package for File Tosser.

This package contains pure functions and utilities that support
the main application logic without side effects.
"""

from .path_template import expand_template, build_absolute_path

from .file_operations import (
    build_destination_path,
    create_temp_file_path,
)

__all__ = [
    # Path templates
    "expand_template",
    "build_absolute_path",
    # File operations
    "build_destination_path",
    "create_temp_file_path",
]
