"""proclookup - look up live processes by name, ID, substring or regex."""

import argparse
import logging
import sys
from typing import TextIO

from proclookup.logging_config import setup_logging
from proclookup.matching import InvalidTokenError, Matcher, build_matcher, match_all
from proclookup.models import LookupOptions, MatchMode, ProcessSnapshot
from proclookup.scanner import ProcessScanner, ScanError

__version__ = "1.0.0"

PROG = "proclookup"

log = logging.getLogger(__name__)


def _value(value: object) -> str:
    return "?" if value is None else str(value)


def format_summary(process: ProcessSnapshot, show_info: bool = False) -> str:
    """Format the one-line summary of a process."""
    line = f"{process.name} - pid={process.pid}"
    if show_info:
        line += (
            f" ppid={_value(process.ppid)}"
            f" state={_value(process.state)}"
            f" uid={_value(process.uid)}"
            f" gid={_value(process.gid)}"
            f" priority={_value(process.priority)}"
            f" nice={_value(process.nice)}"
        )
    return line


def format_cmdline(cmdline: tuple[str, ...] | None) -> list[str]:
    """Format the command line section, one argument per line."""
    if cmdline is None:
        return ["cmdline: no permission"]
    return ["cmdline:"] + [f"  {index}: {arg}" for index, arg in enumerate(cmdline)]


def format_environ(environ: tuple[str, ...] | None) -> list[str]:
    """Format the environment section, one variable per line."""
    if environ is None:
        return ["environ: no permission"]
    return ["environ:"] + [f"  {entry}" for entry in environ]


def format_process(process: ProcessSnapshot, options: LookupOptions) -> str:
    """Format the full output block of a matching process."""
    lines = [format_summary(process, options.show_info)]
    if options.show_cmdline:
        lines += format_cmdline(process.cmdline)
    if options.show_environ:
        lines += format_environ(process.environ)
    if options.show_cmdline or options.show_environ:
        lines.append("")
    return "\n".join(lines) + "\n"


class _SingleUseFlag(argparse.Action):
    """Boolean flag that is an error when given more than once."""

    def __init__(self, option_strings, dest, const=True, **kwargs) -> None:
        super().__init__(option_strings, dest, nargs=0, const=const, default=None, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None) -> None:
        if getattr(namespace, self.dest) is not None:
            parser.error(f"argument {option_string}: may only be given once")
        setattr(namespace, self.dest, self.const)


class LookupArgumentParser(argparse.ArgumentParser):
    """ArgumentParser reporting usage errors with exit status 1."""

    def error(self, message: str):
        log.debug("Invalid usage: %s", message)
        self.exit(1, f"{self.prog}: {message}\nInvalid usage, try --help\n")


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = LookupArgumentParser(
        prog=PROG,
        description="Look up running processes by name or process ID.",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # -a ignores the match mode flags
    parser.add_argument(
        "-a", "--all", dest="show_all", action=_SingleUseFlag, help="Show all processes"
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "-n",
        "--name",
        dest="forced_mode",
        action=_SingleUseFlag,
        const=MatchMode.NAME,
        help="Force match by process name",
    )
    mode.add_argument(
        "-p",
        "--pid",
        dest="forced_mode",
        action=_SingleUseFlag,
        const=MatchMode.PID,
        help="Force match by process ID",
    )
    mode.add_argument(
        "-s",
        "--substring",
        dest="forced_mode",
        action=_SingleUseFlag,
        const=MatchMode.SUBSTRING,
        help="Match processes whose name contains the argument",
    )
    mode.add_argument(
        "-r",
        "--regex",
        dest="forced_mode",
        action=_SingleUseFlag,
        const=MatchMode.REGEX,
        help="Match processes whose name matches the regular expression",
    )

    parser.add_argument(
        "-c", "--cmdline", dest="show_cmdline", action=_SingleUseFlag, help="Show command line arguments"
    )
    parser.add_argument(
        "-e", "--environ", dest="show_environ", action=_SingleUseFlag, help="Show environment variables"
    )
    parser.add_argument(
        "-i", "--info", dest="show_info", action=_SingleUseFlag, help="Show extra info"
    )
    parser.add_argument(
        "tokens", nargs="*", metavar="PROCESS", help="Process name or ID, or the substring or regex to match"
    )
    return parser


def parse_options(argv: list[str] | None = None) -> LookupOptions:
    """Parse command line arguments into LookupOptions."""
    parser = build_parser()
    # Options may follow or separate process tokens, as with getopt_long
    args = parser.parse_intermixed_args(argv)

    options = LookupOptions(
        tokens=list(args.tokens),
        show_all=bool(args.show_all),
        forced_mode=args.forced_mode,
        show_cmdline=bool(args.show_cmdline),
        show_environ=bool(args.show_environ),
        show_info=bool(args.show_info),
    )
    if options.show_all and options.tokens:
        parser.error("--all does not take process names or IDs")
    if not options.show_all and not options.tokens:
        parser.error("at least one process name or ID is required")
    return options


class ProcessLookupApp:
    """Runs the lookups of one invocation and reports the results."""

    def __init__(
        self,
        options: LookupOptions,
        scanner: ProcessScanner | None = None,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        """
        Initialize the ProcessLookupApp.

        Args:
            options: Parsed invocation.
            scanner: Process table scanner; built from the options by default.
            out: Stream for matching processes. Default sys.stdout.
            err: Stream for lookup errors. Default sys.stderr.
        """
        self._options = options
        self._scanner = scanner or ProcessScanner(
            with_cmdline=options.show_cmdline,
            with_environ=options.show_environ,
            with_info=options.show_info,
        )
        self._out = out or sys.stdout
        self._err = err or sys.stderr

    def run(self) -> int:
        """
        Perform every lookup.

        Returns:
            0 if all lookups succeeded, 1 otherwise.
        """
        try:
            if self._options.show_all:
                self.lookup(match_all())
                return 0
            return self._lookup_tokens()
        except ScanError as exc:
            log.debug("%s", exc)
            print("Failed to open process table", file=self._err)
            return 1

    def _lookup_tokens(self) -> int:
        status = 0
        for token in self._options.tokens:
            try:
                matcher = build_matcher(token, self._options.forced_mode)
            except InvalidTokenError as exc:
                print(exc, file=self._err)
                status = 1
                continue

            if not self.lookup(matcher):
                print(matcher.not_found_message(), file=self._err)
                status = 1
        return status

    def lookup(self, matcher: Matcher) -> bool:
        """
        Scan a fresh snapshot and print every process the matcher accepts.

        Returns:
            True if at least one process matched.
        """
        found = False
        for process in self._scanner.scan():
            if not matcher.matches(process):
                continue
            found = True
            self._out.write(format_process(process, self._options))
            if matcher.single:
                break
        log.debug("Lookup %s %r found=%s", matcher.mode.value, matcher.token, found)
        return found


def main(argv: list[str] | None = None) -> int:
    """Entry point for proclookup."""
    setup_logging()
    options = parse_options(argv)
    return ProcessLookupApp(options).run()


if __name__ == "__main__":
    sys.exit(main())
