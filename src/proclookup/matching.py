"""Token classification and match predicates for proclookup."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from proclookup.models import MatchMode, ProcessSnapshot

log = logging.getLogger(__name__)

# Largest value representable by pid_t
MAX_PID = 2**31 - 1

_re_digits = re.compile(r"[0-9]+")


class InvalidTokenError(ValueError):
    """A lookup token cannot be turned into a matcher."""


@dataclass(slots=True, frozen=True)
class Matcher:
    """A match predicate bound to one lookup token."""

    mode: MatchMode
    token: str
    predicate: Callable[[ProcessSnapshot], bool]
    pid: int | None = None

    @property
    def single(self) -> bool:
        """Whether the scan can stop at the first match."""
        return self.mode is MatchMode.PID

    def matches(self, process: ProcessSnapshot) -> bool:
        """Test a process against this matcher."""
        return self.predicate(process)

    def not_found_message(self) -> str:
        """Message reported when the scan found nothing."""
        if self.mode is MatchMode.PID:
            return f"No process found by ID {self.pid}"
        if self.mode is MatchMode.ALL:
            return "No process found"
        return f"No process found by {self.mode.value} {self.token}"


def looks_like_pid(token: str) -> bool:
    """Return True if the token consists only of ASCII digits."""
    return _re_digits.fullmatch(token) is not None


def parse_pid(token: str) -> int:
    """
    Convert a token into a process ID.

    Raises:
        InvalidTokenError: If the token is not a decimal number in pid_t range.
    """
    if not looks_like_pid(token):
        raise InvalidTokenError(f"Invalid PID: {token}")
    pid = int(token)
    if pid > MAX_PID:
        raise InvalidTokenError(f"Invalid PID: {token}")
    return pid


def match_all() -> Matcher:
    """Matcher accepting every process."""
    return Matcher(mode=MatchMode.ALL, token="", predicate=lambda process: True)


def build_matcher(token: str, forced_mode: MatchMode | None = None) -> Matcher:
    """
    Build the matcher for a single lookup token.

    Without a forced mode a token made of digits is taken as a PID and
    anything else as an exact process name.

    Args:
        token: The command line argument to look up.
        forced_mode: Mode selected by -n, -p, -s or -r, if any.

    Raises:
        InvalidTokenError: For a malformed PID or an invalid regular expression.
    """
    mode = forced_mode
    if mode is None:
        mode = MatchMode.PID if looks_like_pid(token) else MatchMode.NAME
    log.debug("Token %r classified as %s", token, mode.value)

    if mode is MatchMode.PID:
        pid = parse_pid(token)
        return Matcher(
            mode=mode,
            token=token,
            predicate=lambda process: process.pid == pid,
            pid=pid,
        )

    if mode is MatchMode.NAME:
        return Matcher(mode=mode, token=token, predicate=lambda process: process.name == token)

    if mode is MatchMode.SUBSTRING:
        return Matcher(mode=mode, token=token, predicate=lambda process: token in process.name)

    if mode is MatchMode.REGEX:
        try:
            pattern = re.compile(token)
        except re.error as exc:
            raise InvalidTokenError(f"Invalid regex: {token} ({exc})") from exc
        return Matcher(
            mode=mode,
            token=token,
            predicate=lambda process: pattern.search(process.name) is not None,
        )

    return match_all()
