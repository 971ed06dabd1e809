from datetime import datetime
from pathlib import Path
from typing import Optional

from .path_template import build_absolute_path


def build_destination_path(
    dst_template: str, filename: str, when: Optional[datetime] = None
) -> Path:
    return Path(build_absolute_path(dst_template, filename, when))


def create_temp_file_path(dest_path: Path) -> Path:
    return dest_path.with_suffix(dest_path.suffix + ".tmp")
