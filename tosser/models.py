from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple, TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from .config import ScanGroupConfig, Settings


class TransferMode(str, Enum):
    """Hvordan en regel flytter filen til destinationen."""

    MOVE = "move"  # Fil flyttes, source forsvinder
    COPY = "copy"  # Fil kopieres, source bevares til næste regel


class ExistsPolicy(str, Enum):
    """
    Hvad der sker når destinationsfilen allerede findes.

    Policy værdien i konfigurationen er en fri streng; ukendte værdier
    mappes til UNKNOWN og behandles som skip, men logges som fejl.
    """

    REPLACE = "replace"
    SKIP = "skip"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> "ExistsPolicy":
        # Eksakt sammenligning: "Replace" eller " skip " er ukendte værdier
        if value == cls.REPLACE.value:
            return cls.REPLACE
        if value == cls.SKIP.value:
            return cls.SKIP
        return cls.UNKNOWN


@dataclass(frozen=True)
class ProcessingItem:
    """En fil fundet af scanneren, på vej gennem transfer workers."""

    src_file: str
    src_path: str
    scan_group: "ScanGroupConfig"
    size: int
    # Konfigurationen fra scan passet der fandt filen
    settings: Optional["Settings"] = None


@dataclass(frozen=True)
class TransferRecord:
    """Rapporteres til statistikken når mindst én regel lykkedes for et item."""

    item: ProcessingItem
    dst_dirs: Tuple[str, ...] = field(default_factory=tuple)


class DirStat(BaseModel):
    """Akkumuleret statistik for én destinationsmappe på én dag."""

    count: int = Field(default=0, ge=0, description="Antal overførte filer")
    bytes: int = Field(default=0, ge=0, description="Antal overførte bytes")


class StatSnapshot(BaseModel):
    """Persistent form af statistikken: dato -> destinationsmappe -> DirStat."""

    dates: Dict[str, Dict[str, DirStat]] = Field(default_factory=dict)


class DirStatEntry(BaseModel):
    dir: str
    count: int
    bytes: int


class ErrorHistoryEntry(BaseModel):
    time: datetime
    message: str


class StatusReport(BaseModel):
    """Data til statussiden og /api/stats."""

    stat_date: str
    version: str
    build_time: str
    started_at: datetime
    uptime_seconds: int
    dirs: List[DirStatEntry] = Field(default_factory=list)
    error_history: List[ErrorHistoryEntry] = Field(default_factory=list)

    @property
    def total_files(self) -> int:
        return sum(entry.count for entry in self.dirs)

    @property
    def total_bytes(self) -> int:
        return sum(entry.bytes for entry in self.dirs)
