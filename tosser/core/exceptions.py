# tosser/core/exceptions.py


class ConfigError(Exception):
    """Raised when the configuration file cannot be read or validated."""

    def __init__(self, config_path: str, reason: str):
        self.config_path = config_path
        self.reason = reason
        super().__init__(f"Invalid configuration in {config_path}: {reason}")


class ConfigNotModifiedError(Exception):
    """Raised by a reload when the configuration file has not changed."""


class TransferError(Exception):
    """Raised when a move or copy cannot be completed."""

    def __init__(self, src: str, dst: str, message: str):
        self.src = src
        self.dst = dst
        super().__init__(f"{message}: {src} -> {dst}")


class SourceRemovalError(TransferError):
    """The file was copied to its destination but the source could not be removed."""

    def __init__(self, src: str, dst: str, cause: OSError):
        self.cause = cause
        super().__init__(src, dst, f"File copied but source removal failed ({cause})")
