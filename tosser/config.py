import fnmatch
from pathlib import Path
from typing import List, Tuple

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import ExistsPolicy, TransferMode


def match_any(filename: str, masks: List[str]) -> bool:
    """Case-insensitive shell-style match of a file name against a list of masks."""
    name = filename.lower()
    return any(fnmatch.fnmatch(name, mask.lower()) for mask in masks)


class RuleConfig(BaseModel):
    """Routing rule: which files go where, and how."""

    name: str = ""
    masks: List[str] = Field(default_factory=lambda: ["*"])
    exclude: List[str] = Field(default_factory=list)
    dst_dir: str
    mode: TransferMode = TransferMode.MOVE
    # Unknown values are skipped and reported, not rejected
    if_exists: str = ExistsPolicy.SKIP.value

    @property
    def exists_policy(self) -> ExistsPolicy:
        return ExistsPolicy.parse(self.if_exists)

    def matches(self, filename: str) -> bool:
        return match_any(filename, self.masks)

    def is_excluded(self, filename: str) -> bool:
        return match_any(filename, self.exclude)

    def describe(self) -> str:
        return self.name or f"{self.mode.value} -> {self.dst_dir}"


class ScanGroupConfig(BaseModel):
    """A named set of source directories sharing exclusions and a rule list."""

    name: str
    src_dirs: List[str] = Field(min_length=1)
    enabled: bool = True
    create_src: bool = False
    exclude: List[str] = Field(default_factory=list)
    rules: List[RuleConfig] = Field(default_factory=list)

    def is_excluded(self, filename: str) -> bool:
        return match_any(filename, self.exclude)


class Settings(BaseSettings):
    # Scan groups og globale exclusions
    scan_groups: List[ScanGroupConfig] = Field(default_factory=list)
    exclude: List[str] = Field(default_factory=list)

    # Parallel processing (læses kun ved opstart)
    max_scan_threads: int = Field(default=4, ge=1)
    max_transfer_threads: int = Field(default=4, ge=1)
    queue_size: int = Field(default=1000, ge=1)

    # Timing konfiguration
    rescan_interval: int = Field(default=10, ge=0)  # Seconds between scan passes

    # Filkopiering
    copy_chunk_size_kb: int = Field(default=1024, ge=1)

    # HTTP status page
    enable_http: bool = False
    listen: str = "127.0.0.1:8080"

    # Statistik
    stat_file: str = "tmp/stat.json"
    stat_save_interval: int = Field(default=10, ge=0)
    stat_queue_size: int = Field(default=100, ge=1)
    error_history_size: int = Field(default=20, ge=1)

    # Logging konfiguration
    log_level: str = "INFO"
    log_file_path: str = "logs/tosser.log"
    transfer_log_path: str = "logs/transfers.log"
    log_retention_days: int = 30

    model_config = SettingsConfigDict(env_prefix="TOSSER_")

    @field_validator("listen")
    @classmethod
    def _check_listen(cls, value: str) -> str:
        _, _, port = value.rpartition(":")
        if not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"listen must be host:port, got {value!r}")
        return value

    @property
    def log_directory(self) -> Path:
        """Returnerer log directory som Path objekt"""
        return Path(self.log_file_path).parent

    @property
    def enabled_scan_groups(self) -> List[ScanGroupConfig]:
        return [group for group in self.scan_groups if group.enabled]

    @property
    def copy_chunk_size(self) -> int:
        return self.copy_chunk_size_kb * 1024

    @property
    def listen_address(self) -> Tuple[str, int]:
        """Split `listen` into host and port; a bare ':8080' listens on all interfaces."""
        host, _, port = self.listen.rpartition(":")
        return host or "0.0.0.0", int(port)

    def is_excluded(self, filename: str) -> bool:
        return match_any(filename, self.exclude)
