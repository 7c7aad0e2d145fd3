# ==============================================================================
# DMI HARVESTER - COMMAND LINE INTERFACE
# ==============================================================================
# Command-line front end for the DMI decoding and indexing engine.
#
# This provides a command-line interface with the following commands:
#   - scan:    Index every .dmi below the asset roots
#   - search:  Find icon states by file or state name
#   - states:  List all states of a file (delimiter-joined, for copying)
#   - info:    Show a file's geometry and state table
#   - export:  Save one direction of a state as an animated GIF
#   - extract: Save a single frame as PNG
#   - cache:   Show cache statistics or purge it
#   - config:  Show or change settings
#
# Usage:
#   dmi-harvester scan --root ~/ss13/icons
#   dmi-harvester search walk --page 2
#   dmi-harvester export icons/mob/human.dmi walk --dir north -o walk.gif
#   dmi-harvester cache purge --yes
# ==============================================================================

import os
import sys
import argparse
from typing import List, Optional

from . import __version__
from .core.config import Config, get_config, DEFAULT_CONFIG
from .core.errors import ConfigError, HarvesterError
from .core.library import IconLibrary
from .core.reports import ReportLog
from .session_log import SessionLog


# ==============================================================================
# COLOR HELPERS FOR TERMINAL OUTPUT
# ==============================================================================
class Colors:
    """ANSI color codes for terminal output."""
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    UNDERLINE = '\033[4m'
    END = '\033[0m'

    @classmethod
    def disable(cls):
        """Disable colors (for non-supporting terminals)."""
        cls.HEADER = ''
        cls.BLUE = ''
        cls.CYAN = ''
        cls.GREEN = ''
        cls.YELLOW = ''
        cls.RED = ''
        cls.BOLD = ''
        cls.UNDERLINE = ''
        cls.END = ''


def print_header(text: str):
    """Print a header."""
    print(f"\n{Colors.BOLD}{Colors.CYAN}{'=' * 60}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}  {text}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{'=' * 60}{Colors.END}\n")


def print_success(text: str):
    """Print a success message."""
    print(f"{Colors.GREEN}[OK] {text}{Colors.END}")


def print_error(text: str):
    """Print an error message."""
    print(f"{Colors.RED}[ERROR] {text}{Colors.END}")


def print_info(text: str):
    """Print an info message."""
    print(f"{Colors.BLUE}[INFO] {text}{Colors.END}")


def print_warning(text: str):
    """Print a warning message."""
    print(f"{Colors.YELLOW}[WARN] {text}{Colors.END}")


def progress_callback(current: int, total: int, filename: str):
    """Progress callback for long operations."""
    percent = (current / total) * 100 if total > 0 else 0
    bar_length = 30
    filled = int(bar_length * current / total) if total > 0 else 0
    bar = '#' * filled + '-' * (bar_length - filled)

    # Truncate filename if too long
    max_name_len = 40
    if len(filename) > max_name_len:
        filename = '...' + filename[-(max_name_len-3):]

    print(f"\r[{bar}] {percent:5.1f}% | {current}/{total} | {filename}", end='', flush=True)

    if current >= total:
        print()


def format_bytes(size: int) -> str:
    for unit in ('B', 'KB', 'MB', 'GB'):
        if size < 1024 or unit == 'GB':
            return f"{size:.0f} {unit}" if unit == 'B' else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size} B"


# ==============================================================================
# SESSION SETUP
# ==============================================================================
class Session:
    """Config, report channel, session log and library for one invocation."""

    def __init__(self, args):
        self.config = Config(args.config) if args.config else get_config()
        if args.config:
            self.config.load()
        for problem in self.config.load_errors:
            print_warning(problem)

        if args.root:
            self.config.asset_roots = args.root
        if args.cache_dir:
            self.config.cache_dir = args.cache_dir

        self.reports = ReportLog()
        self.log: Optional[SessionLog] = None
        if not args.no_log:
            self._open_log(args)

        self._library: Optional[IconLibrary] = None

    def _open_log(self, args):
        log = SessionLog(self.config.log_dir, self.config.max_log_files,
                         protected=self.config.asset_roots)
        try:
            log.open()
        except OSError as e:
            print_warning(f"Session log disabled: {e}")
            return

        self.log = log
        self.reports.listener = log.write
        log.line("INFO", f"dmi-harvester {args.command} (v{__version__})")
        try:
            log.prune()
        except ConfigError as e:
            self.reports.add_error(self.config.log_dir, e)
            print_warning(f"Not pruning session logs: {e}")
        except OSError as e:
            print_warning(f"Could not prune session logs: {e}")

    @property
    def library(self) -> IconLibrary:
        if self._library is None:
            self._library = IconLibrary(self.config, reporter=self.reports)
        return self._library

    def index(self, quiet: bool = False):
        """Scan and index the asset roots, printing a summary."""
        roots = self.config.asset_roots
        if not roots:
            raise ConfigError("No asset roots configured (use --root or 'config set asset_roots')")

        if not quiet:
            for root in roots:
                print_info(f"Root: {root}")
        summary = self.library.scan_and_index(
            progress_callback=None if quiet else progress_callback)

        if not quiet:
            print_success(f"Indexed {summary.indexed} of {summary.total} file(s)")
        if summary.failed:
            print_warning(f"{summary.failed} file(s) failed to decode")
        return summary

    def print_reports(self, limit: int = 20):
        records = self.reports.records()
        for report in records[:limit]:
            print_warning(f"{report.subject}: [{report.kind}] {report.message}")
        if len(records) > limit:
            print_warning(f"... and {len(records) - limit} more (see session log)")

    def close(self):
        if self.log is not None:
            self.log.close()
        if self._library is not None:
            self._library.cache.close()


# ==============================================================================
# INDEX COMMANDS
# ==============================================================================
def cmd_scan(session: Session, args):
    """Index every .dmi below the asset roots."""
    print_header("Scanning Asset Roots")

    summary = session.index()
    stats = session.library.index.stats()

    print(f"\nIndex Statistics:")
    print(f"  Files:    {stats['files']}")
    print(f"  States:   {stats['states']}")
    print(f"  Failures: {stats['failures']}")
    if summary.cancelled:
        print_warning("Scan was cancelled; results are partial")

    session.print_reports()
    return 0


def cmd_search(session: Session, args):
    """Search file and state names."""
    print_header(f"Search: {args.query}")

    session.index(quiet=True)
    library = session.library
    results = library.search(args.query)

    if not results:
        print_info("No matches")
        return 0

    pages = library.page_count(results)
    number = max(1, min(args.page, pages))
    print(f"{len(results)} match(es), page {number}/{pages}\n")

    for result in library.page(results, number - 1):
        marker = f"{Colors.GREEN}*{Colors.END}" if result.exact else ' '
        rel = os.path.relpath(result.path)
        print(f" {marker} {Colors.BOLD}{result.state or '(no name)'}{Colors.END}"
              f"  {rel} #{result.state_index}")

    failed = len(library.index.failures)
    if failed:
        print()
        print_warning(f"{failed} file(s) could not be searched (run 'scan' for details)")
    return 0


def cmd_states(session: Session, args):
    """Print all state names of a file, joined for copying."""
    print(session.library.states_text(args.path))
    return 0


def cmd_info(session: Session, args):
    """Show geometry and state table of one file."""
    dmi = session.library.info(args.path)
    print_header(os.path.basename(dmi.path))

    print(f"Path:        {dmi.path}")
    print(f"Version:     {dmi.version}")
    print(f"Image:       {dmi.width}x{dmi.height}")
    print(f"Icon size:   {dmi.cell_width}x{dmi.cell_height}")
    print(f"Grid:        {dmi.columns}x{dmi.rows} ({dmi.capacity} cells)")
    print(f"Fingerprint: {dmi.fingerprint}")
    print(f"States:      {len(dmi.states)}\n")

    print(f"  {'#':>3}  {'Name':<24} {'Dirs':>4} {'Frames':>6}  {'Loop':>4}  Flags   Delays")
    print(f"  {'-' * 72}")
    for i, state in enumerate(dmi.states):
        flags = ('R' if state.rewind else '-') + ('M' if state.movement else '-')
        delays = ','.join(f"{d:g}" for d in state.delays)
        loop = 'inf' if state.loop == 0 else str(state.loop)
        print(f"  {i:>3}  {state.name[:24]:<24} {state.dirs:>4} {state.frames:>6}"
              f"  {loop:>4}  {flags:<6}  {delays}")

    for warning in dmi.warnings:
        print_warning(warning)
    return 0


# ==============================================================================
# EXPORT COMMANDS
# ==============================================================================
def _default_output(path: str, state: str, suffix: str) -> str:
    stem = os.path.splitext(os.path.basename(path))[0]
    safe = ''.join(c if c.isalnum() or c in '-_' else '_' for c in state) or 'state'
    return f"{stem}_{safe}{suffix}"


def _write_output(output: str, data: bytes):
    directory = os.path.dirname(os.path.abspath(output))
    os.makedirs(directory, exist_ok=True)
    with open(output, 'wb') as f:
        f.write(data)


def cmd_export(session: Session, args):
    """Export one direction of a state as GIF."""
    data = session.library.export(args.path, args.state, args.dir, args.occurrence)
    output = args.output or _default_output(args.path, f"{args.state}_{args.dir}", '.gif')
    _write_output(output, data)
    print_success(f"Saved {output} ({format_bytes(len(data))})")
    return 0


def cmd_extract(session: Session, args):
    """Save a single frame as PNG (first state's first frame by default)."""
    state = args.state
    if state is None:
        dmi = session.library.info(args.path)
        if not dmi.states:
            print_error(f"{args.path} has no icon states")
            return 1
        state = dmi.states[0].name

    data = session.library.extract_png(args.path, state, args.dir, args.frame,
                                       args.occurrence, size=args.size)
    output = args.output or _default_output(args.path, state, '.png')
    _write_output(output, data)
    print_success(f"Saved {output} ({format_bytes(len(data))})")
    return 0


# ==============================================================================
# CACHE COMMANDS
# ==============================================================================
def cmd_cache_stats(session: Session, args):
    """Show artifact cache statistics."""
    print_header("Artifact Cache")

    stats = session.library.cache_stats()
    print(f"Directory:  {stats['root']}")
    print(f"Artifacts:  {stats['artifacts']}")
    print(f"Size:       {format_bytes(stats['total_bytes'])} of {format_bytes(stats['max_bytes'])}")
    for kind, info in sorted(stats['kinds'].items()):
        print(f"  {kind:<10} {info['count']:>6}  {format_bytes(info['bytes'])}")
    return 0


def cmd_cache_purge(session: Session, args):
    """Delete every cached artifact after validating the cache directory."""
    print_header("Purge Artifact Cache")

    cache_dir = session.library.cache.root
    print_info(f"Directory: {cache_dir}")
    if not args.yes:
        answer = input("Delete all cached artifacts? [y/N] ").strip().lower()
        if answer not in ('y', 'yes'):
            print_info("Cancelled")
            return 1

    try:
        removed = session.library.purge_cache()
    except ConfigError as e:
        print_error(str(e))
        return 2

    print_success(f"Removed {removed} entr{'y' if removed == 1 else 'ies'}")
    return 0


# ==============================================================================
# CONFIG COMMANDS
# ==============================================================================
def cmd_config_show(session: Session, args):
    """Show current settings."""
    print_header("Configuration")
    config = session.config
    print(f"File: {config.config_path}\n")
    for key in sorted(DEFAULT_CONFIG):
        value = getattr(config, key)
        print(f"  {key:<20} {value!r}")
    return 0


def cmd_config_set(session: Session, args):
    """Change one setting and save."""
    config = session.config
    try:
        config.set_from_string(args.key, args.value)
    except KeyError:
        print_error(f"Unknown setting: {args.key}")
        print_info("Settings: " + ", ".join(sorted(DEFAULT_CONFIG)))
        return 1
    except ValueError as e:
        print_error(str(e))
        return 1

    if not config.save():
        for problem in config.load_errors:
            print_error(problem)
        return 1
    print_success(f"{args.key} = {getattr(config, args.key)!r}")
    return 0


# ==============================================================================
# MAIN ARGUMENT PARSER
# ==============================================================================
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='dmi-harvester',
        description="DMI Harvester - search, preview and export BYOND icon files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s scan --root icons/                 Index all .dmi files
  %(prog)s search door                        Find states by name
  %(prog)s export icons/mob/human.dmi walk    Save an animated GIF
  %(prog)s cache purge                        Empty the artifact cache
        """
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    parser.add_argument('--config', help='Use this config file')
    parser.add_argument('--root', action='append', help='Asset root (repeatable, overrides config)')
    parser.add_argument('--cache-dir', help='Artifact cache directory (overrides config)')
    parser.add_argument('--no-color', action='store_true', help='Disable colored output')
    parser.add_argument('--no-log', action='store_true', help='Do not write a session log')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # -------------------------------------------------------------------------
    # INDEX commands
    # -------------------------------------------------------------------------
    scan_parser = subparsers.add_parser('scan', help='Index all .dmi files')
    scan_parser.set_defaults(func=cmd_scan)

    search_parser = subparsers.add_parser('search', help='Search file and state names')
    search_parser.add_argument('query', nargs='?', default='', help='Text to look for')
    search_parser.add_argument('--page', type=int, default=1, help='Result page (1-based)')
    search_parser.set_defaults(func=cmd_search)

    states_parser = subparsers.add_parser('states', help='List all states of a file')
    states_parser.add_argument('path', help='DMI file')
    states_parser.set_defaults(func=cmd_states)

    info_parser = subparsers.add_parser('info', help='Show file details')
    info_parser.add_argument('path', help='DMI file')
    info_parser.set_defaults(func=cmd_info)

    # -------------------------------------------------------------------------
    # EXPORT commands
    # -------------------------------------------------------------------------
    export_parser = subparsers.add_parser('export', help='Export a state as GIF')
    export_parser.add_argument('path', help='DMI file')
    export_parser.add_argument('state', help='State name')
    export_parser.add_argument('--dir', default='south', help='Direction (south, north, ne, ...)')
    export_parser.add_argument('--occurrence', type=int, default=0,
                               help='Which state to use when the name repeats')
    export_parser.add_argument('--output', '-o', help='Output file')
    export_parser.set_defaults(func=cmd_export)

    extract_parser = subparsers.add_parser('extract', help='Save a single frame as PNG')
    extract_parser.add_argument('path', help='DMI file')
    extract_parser.add_argument('state', nargs='?', help='State name (default: first state)')
    extract_parser.add_argument('--dir', default='south', help='Direction')
    extract_parser.add_argument('--frame', type=int, default=0, help='Frame number (0-based)')
    extract_parser.add_argument('--occurrence', type=int, default=0,
                                help='Which state to use when the name repeats')
    extract_parser.add_argument('--size', type=int, help='Scale into a size x size box')
    extract_parser.add_argument('--output', '-o', help='Output file')
    extract_parser.set_defaults(func=cmd_extract)

    # -------------------------------------------------------------------------
    # CACHE commands
    # -------------------------------------------------------------------------
    cache_parser = subparsers.add_parser('cache', help='Manage the artifact cache')
    cache_sub = cache_parser.add_subparsers(dest='subcommand')

    cache_stats = cache_sub.add_parser('stats', help='Show cache statistics')
    cache_stats.set_defaults(func=cmd_cache_stats)

    cache_purge = cache_sub.add_parser('purge', help='Delete all cached artifacts')
    cache_purge.add_argument('--yes', '-y', action='store_true', help='Do not ask for confirmation')
    cache_purge.set_defaults(func=cmd_cache_purge)

    # -------------------------------------------------------------------------
    # CONFIG commands
    # -------------------------------------------------------------------------
    config_parser = subparsers.add_parser('config', help='Show or change settings')
    config_sub = config_parser.add_subparsers(dest='subcommand')

    config_show = config_sub.add_parser('show', help='Show current settings')
    config_show.set_defaults(func=cmd_config_show)

    config_set = config_sub.add_parser('set', help='Change a setting')
    config_set.add_argument('key', help='Setting name')
    config_set.add_argument('value', help='New value (lists are comma separated)')
    config_set.set_defaults(func=cmd_config_set)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.no_color or not sys.stdout.isatty():
        Colors.disable()

    if not args.command:
        parser.print_help()
        return 0

    if not hasattr(args, 'func'):
        parser.error(f"'{args.command}' needs a subcommand")

    session = Session(args)
    try:
        return args.func(session, args)
    except HarvesterError as e:
        session.reports.add_error(getattr(e, 'path', None) or args.command, e)
        print_error(str(e))
        return 1
    except OSError as e:
        print_error(str(e))
        return 1
    except KeyboardInterrupt:
        print()
        print_warning("Interrupted")
        return 130
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
