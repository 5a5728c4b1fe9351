"""Process table scanning for proclookup."""

import logging
import os
from collections.abc import Iterator
from pathlib import Path
from typing import NamedTuple

import psutil

from proclookup.models import ProcessSnapshot

log = logging.getLogger(__name__)

# psutil status strings to the single-letter codes used by ps(1). Keyed on the
# strings because not every psutil release exports every STATUS_* constant.
STATE_CODES = {
    "running": "R",
    "sleeping": "S",
    "disk-sleep": "D",
    "stopped": "T",
    "tracing-stop": "t",
    "zombie": "Z",
    "dead": "X",
    "wake-kill": "K",
    "waking": "W",
    "parked": "P",
    "idle": "I",
    "locked": "L",
}

PROC_ROOT = Path("/proc")

# Indexes into /proc/<pid>/stat, counted after the comm field
_STAT_STATE_INDEX = 0
_STAT_PRIORITY_INDEX = 15


class ScanError(Exception):
    """The process table could not be opened."""


class ProcStat(NamedTuple):
    """Fields of /proc/<pid>/stat that psutil does not expose as-is."""

    comm: str
    state: str
    priority: int


def state_code(status: str | None) -> str | None:
    """Translate a psutil status string into a one-letter state code."""
    if status is None:
        return None
    return STATE_CODES.get(status, "?")


def read_stat(pid: int, proc_root: Path | None = None) -> ProcStat | None:
    """
    Read the kernel command name, state and priority of a process.

    The command name is the kernel's comm, truncated to 15 characters, as
    ps(1) shows it. psutil's name() widens it from the command line instead.

    Args:
        pid: Process ID.
        proc_root: Mount point of procfs. Default PROC_ROOT.

    Returns:
        The parsed fields, or None if the stat file cannot be read.
    """
    stat_file = (proc_root or PROC_ROOT) / str(pid) / "stat"
    try:
        data = stat_file.read_text(errors="surrogateescape")
        # comm may contain spaces and parentheses, so split on the outer ones
        start = data.index("(")
        end = data.rindex(")")
        fields = data[end + 1 :].split()
        return ProcStat(
            comm=data[start + 1 : end],
            state=fields[_STAT_STATE_INDEX],
            priority=int(fields[_STAT_PRIORITY_INDEX]),
        )
    except (OSError, ValueError, IndexError):
        log.debug("Cannot read %s", stat_file)
        return None


def read_environ(pid: int, proc_root: Path | None = None) -> tuple[str, ...] | None:
    """
    Read the raw environment entries of a process from /proc/<pid>/environ.

    Entries are kept exactly as the kernel stores them, including duplicates
    and entries without '='.

    Returns:
        The entries, or None if the file cannot be read.
    """
    environ_file = (proc_root or PROC_ROOT) / str(pid) / "environ"
    try:
        data = environ_file.read_bytes()
    except OSError:
        log.debug("Cannot read %s", environ_file)
        return None
    return tuple(os.fsdecode(entry) for entry in data.split(b"\0") if entry)


class ProcessScanner:
    """
    Point-in-time scanner over the live process table.

    Every call to scan() opens a fresh snapshot with psutil.process_iter(),
    fetching only the attributes the lookup needs. Processes that exit during
    the scan are skipped; attributes the caller may not read come back as None.
    """

    def __init__(
        self,
        with_cmdline: bool = False,
        with_environ: bool = False,
        with_info: bool = False,
    ) -> None:
        """
        Initialize the ProcessScanner.

        Args:
            with_cmdline: Collect command line arguments.
            with_environ: Collect environment variables.
            with_info: Collect ppid, state, uid, gid, priority and nice.
        """
        self._with_cmdline = with_cmdline
        self._with_environ = with_environ
        self._with_info = with_info

    @property
    def attrs(self) -> list[str]:
        """psutil attribute names requested for each process."""
        attrs = ["pid", "name"]
        if self._with_info:
            attrs += ["ppid", "status", "nice"]
            if psutil.POSIX:
                attrs += ["uids", "gids"]
        if self._with_cmdline:
            attrs.append("cmdline")
        if self._with_environ:
            attrs.append("environ")
        return attrs

    def scan(self) -> Iterator[ProcessSnapshot]:
        """
        Yield a snapshot of every process currently in the table.

        Raises:
            ScanError: If the process table cannot be opened.
        """
        try:
            processes = list(psutil.process_iter(attrs=self.attrs, ad_value=None))
        except (psutil.Error, OSError) as exc:
            raise ScanError(f"Failed to open process table: {exc}") from exc

        log.debug("Opened process snapshot with %d entries", len(processes))
        try:
            for proc in processes:
                yield self._to_snapshot(proc.info)
        finally:
            log.debug("Closed process snapshot")

    def _to_snapshot(self, info: dict) -> ProcessSnapshot:
        """
        Build a ProcessSnapshot from a psutil info dict.

        Values read straight from procfs take precedence; psutil's values are
        the fallback where procfs is missing or unreadable.
        """
        pid = info["pid"]
        stat = read_stat(pid)
        name = stat.comm if stat is not None else info.get("name") or ""

        ppid = state = uid = gid = priority = nice = None
        if self._with_info:
            ppid = info.get("ppid")
            nice = info.get("nice")
            uids = info.get("uids")
            gids = info.get("gids")
            uid = uids.effective if uids else None
            gid = gids.effective if gids else None
            if stat is not None:
                state = stat.state
                priority = stat.priority
            else:
                state = state_code(info.get("status"))
                # Priority of a normal (non real-time) task
                priority = None if nice is None else 20 + nice

        cmdline = None
        if self._with_cmdline and info.get("cmdline") is not None:
            cmdline = tuple(info["cmdline"])

        environ = None
        if self._with_environ:
            environ = read_environ(pid)
            if environ is None and info.get("environ") is not None:
                environ = tuple(f"{key}={value}" for key, value in info["environ"].items())

        return ProcessSnapshot(
            pid=pid,
            name=name,
            ppid=ppid,
            state=state,
            uid=uid,
            gid=gid,
            priority=priority,
            nice=nice,
            cmdline=cmdline,
            environ=environ,
        )
