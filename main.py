# ==============================================================================
# DMI HARVESTER - MAIN ENTRY POINT
# ==============================================================================
# This is the main entry point for the DMI Harvester application.
#
# Usage:
#   python main.py --version        # Show version
#   python main.py --check          # Check dependencies
#   python main.py --paths          # Show data paths
#   python main.py <command> ...    # Run a CLI command (see --help)
# ==============================================================================

import sys
import traceback


# ==============================================================================
# BANNER
# ==============================================================================

def print_banner():
    """Print the application banner."""
    banner = """
    +---------------------------------------------------------------+
    |                                                               |
    |     ____  __  __ ___   _   _                           _      |
    |    |  _ \\|  \\/  |_ _| | | | | __ _ _ ____   _____  ___| |_    |
    |    | | | | |\\/| || |  | |_| |/ _` | '__\\ \\ / / _ \\/ __| __|   |
    |    | |_| | |  | || |  |  _  | (_| | |   \\ V /  __/\\__ \\ |_    |
    |    |____/|_|  |_|___| |_| |_|\\__,_|_|    \\_/ \\___||___/\\__|   |
    |                                                               |
    |        BYOND icon search, preview and export toolkit          |
    |                                                               |
    +---------------------------------------------------------------+
    """
    print(banner)


# ==============================================================================
# DEPENDENCY CHECKS
# ==============================================================================

CORE_DEPENDENCIES = [
    ('sqlalchemy', 'SQLAlchemy'),
    ('PIL', 'Pillow'),
    ('numpy', 'numpy'),
]


def check_dependencies():
    """
    Check if required dependencies are installed.

    Returns:
        Tuple of (all_ok, missing_packages)
    """
    missing = []

    for module, package in CORE_DEPENDENCIES:
        try:
            __import__(module)
        except ImportError:
            missing.append(package)

    return (len(missing) == 0, missing)


# ==============================================================================
# ARGUMENT PARSING
# ==============================================================================

def parse_args(argv):
    """Pick out the launcher flags; everything else goes to the CLI."""
    return {
        'version': '--version' in argv or '-v' in argv,
        'check': '--check' in argv,
        'paths': '--paths' in argv,
    }


# ==============================================================================
# MAIN FUNCTION
# ==============================================================================

def main(argv=None):
    """
    Main entry point for DMI Harvester.

    Handles the launcher flags itself and hands everything else to the CLI.
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        args = parse_args(argv)

        if args['version']:
            from dmiharvester import __version__, __description__
            print(f"DMI Harvester v{__version__}")
            print(__description__)
            return 0

        if args['check']:
            print("Checking dependencies...")
            print(f"  Python: {sys.version}")

            all_ok, missing = check_dependencies()
            if all_ok:
                print("[OK] All core dependencies installed")
            else:
                print(f"[MISSING] {', '.join(missing)}")
            return 0 if all_ok else 1

        all_ok, missing = check_dependencies()
        if not all_ok:
            print(f"[ERROR] Missing required packages: {', '.join(missing)}")
            print("Install with: pip install " + ' '.join(missing))
            return 1

        if args['paths']:
            from dmiharvester.core.config import get_config
            from dmiharvester.core.paths import Paths

            config = get_config()
            print("DMI Harvester Paths:")
            print(f"  User Data:      {Paths.get_user_data_dir()}")
            print(f"  Config:         {config.config_path}")
            print(f"  Cache:          {config.cache_dir}")
            print(f"  Logs:           {config.log_dir}")
            for root in config.asset_roots:
                print(f"  Asset Root:     {root}")
            return 0

        if not argv:
            print_banner()

        from dmiharvester.cli import main as cli_main
        return cli_main(argv)

    except Exception as e:
        print(f"\n[FATAL ERROR] {e}")
        traceback.print_exc()
        return 1


# ==============================================================================
# SCRIPT ENTRY POINT
# ==============================================================================
if __name__ == "__main__":
    exit_code = main()
    sys.exit(exit_code)
