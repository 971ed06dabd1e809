"""strftime-style time placeholders in directory templates (%Y/%m/%d ...)."""

import os
from datetime import datetime
from typing import Optional


def expand_template(template: str, when: datetime) -> str:
    """Expand time placeholders in a path template against a fixed timestamp."""
    if "%" not in template:
        return template
    return when.strftime(template)


def build_absolute_path(
    dir_template: str, filename: str = "", when: Optional[datetime] = None
) -> str:
    """
    Expand a directory template, join a file name and make the result absolute.

    An empty file name yields the absolute directory itself.
    """
    expanded = expand_template(dir_template, when or datetime.now())
    path = os.path.join(expanded, filename) if filename else expanded
    return os.path.abspath(path)
