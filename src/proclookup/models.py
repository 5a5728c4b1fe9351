"""Data models for proclookup."""

from dataclasses import dataclass, field
from enum import Enum


class MatchMode(Enum):
    """How a lookup token is compared against the process table."""

    ALL = "all"
    NAME = "name"
    PID = "pid"
    SUBSTRING = "substring"
    REGEX = "regex"


@dataclass(slots=True, frozen=True)
class ProcessSnapshot:
    """Immutable view of one process, taken during a single scan."""

    pid: int
    name: str
    ppid: int | None = None
    state: str | None = None  # 'R', 'S', 'Z', 'D', etc.
    uid: int | None = None  # Effective
    gid: int | None = None  # Effective
    priority: int | None = None
    nice: int | None = None
    cmdline: tuple[str, ...] | None = None  # None: not permitted
    environ: tuple[str, ...] | None = None  # Raw entries, None: not permitted


@dataclass(slots=True)
class LookupOptions:
    """Parsed command-line invocation."""

    tokens: list[str] = field(default_factory=list)
    show_all: bool = False
    forced_mode: MatchMode | None = None
    show_cmdline: bool = False
    show_environ: bool = False
    show_info: bool = False
