from .file_transfer import copy_file, move_file

__all__ = [
    "copy_file",
    "move_file",
]
