import argparse
import asyncio
import logging
import plistlib
import shutil
import subprocess
import sys
from pathlib import Path

from clipstash.config import LOG_PATH, Settings
from clipstash.menu import entry_label
from clipstash.models import ClipboardHistory, ItemType, SearchQuery
from clipstash.tracker import EntryTracker
from clipstash.utils import ensure_dirs

AGENT_LABEL = "com.clipstash.app"
PLIST_NAME = f"{AGENT_LABEL}.plist"
LAUNCHAGENT_DIR = Path.home() / "Library" / "LaunchAgents"
PLIST_PATH = LAUNCHAGENT_DIR / PLIST_NAME


def get_clipstash_command() -> list[str]:
    """Get the command line that starts clipstash."""
    clipstash_path = shutil.which("clipstash")
    if clipstash_path:
        return [clipstash_path]
    return [sys.executable, "-m", "clipstash"]


def create_plist(command: list[str]) -> bytes:
    """Generate the LaunchAgent plist content."""
    return plistlib.dumps({
        "Label": AGENT_LABEL,
        "ProgramArguments": command,
        "RunAtLoad": True,
        "KeepAlive": True,
        "StandardOutPath": str(LOG_PATH),
        "StandardErrorPath": str(LOG_PATH),
    })


def install_launchagent() -> int:
    """Install and start the LaunchAgent."""
    ensure_dirs()

    command = get_clipstash_command()
    print(f"Installing LaunchAgent for: {' '.join(command)}")

    LAUNCHAGENT_DIR.mkdir(parents=True, exist_ok=True)

    # Unload existing if present
    if PLIST_PATH.exists():
        subprocess.run(["launchctl", "unload", str(PLIST_PATH)], capture_output=True)

    PLIST_PATH.write_bytes(create_plist(command))
    print(f"Created: {PLIST_PATH}")

    result = subprocess.run(["launchctl", "load", str(PLIST_PATH)], capture_output=True, text=True)

    if result.returncode == 0:
        print("clipstash is now running in the background.")
        print("It will start automatically on login.")
        return 0
    print(f"Failed to load LaunchAgent: {result.stderr}")
    return 1


def uninstall_launchagent() -> int:
    """Stop and remove the LaunchAgent."""
    if not PLIST_PATH.exists():
        print("LaunchAgent not installed.")
        return 0

    subprocess.run(["launchctl", "unload", str(PLIST_PATH)], capture_output=True)
    PLIST_PATH.unlink()
    print("LaunchAgent uninstalled.")
    print("clipstash will no longer start on login.")
    return 0


def check_status() -> int:
    """Check if clipstash is running."""
    result = subprocess.run(["launchctl", "list", AGENT_LABEL], capture_output=True, text=True)

    if result.returncode == 0:
        print("clipstash is running.")
        if PLIST_PATH.exists():
            print(f"LaunchAgent: {PLIST_PATH}")
        return 0

    print("clipstash is not running.")
    if PLIST_PATH.exists():
        print(f"LaunchAgent installed but not loaded: {PLIST_PATH}")
    else:
        print("LaunchAgent not installed. Run: clipstash install")
    return 1


async def _list_history(settings: Settings, query: SearchQuery, limit: int) -> int:
    tracker = EntryTracker(settings)
    await tracker.init()
    try:
        results = tracker.search(query)[:limit]
        if not results:
            print("(No clipboard history)")
        for entry in results:
            marker = "*" if entry.pinned else " "
            print(f"{entry.id:>6} {marker} {entry.type.value:<9} {entry_label(entry)}")
    finally:
        await tracker.destroy()
    return 0


async def _clear_history(settings: Settings, policy: ClipboardHistory) -> int:
    tracker = EntryTracker(settings)
    await tracker.init()
    try:
        deleted = await tracker.clear(policy)
    finally:
        await tracker.destroy()
    print(f"Removed {len(deleted)} entries.")
    return 0


def list_history(query: str = "", item_type: str | None = None, pinned: bool = False, limit: int = 20) -> int:
    search = SearchQuery(query=query, pinned=pinned, type=ItemType(item_type) if item_type else None)
    return asyncio.run(_list_history(Settings.from_env(), search, limit))


def clear_history(keep_pinned: bool = False) -> int:
    policy = ClipboardHistory.KEEP_PINNED_AND_TAGGED if keep_pinned else ClipboardHistory.CLEAR
    return asyncio.run(_clear_history(Settings.from_env(), policy))


def run_app():
    """Run the clipstash menu bar application."""
    ensure_dirs()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(LOG_PATH),
            logging.StreamHandler(sys.stderr),
        ],
    )

    from clipstash.app import ClipstashApp

    app = ClipstashApp()
    app.run()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipstash",
        description="clipstash - Clipboard history manager for macOS",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  clipstash                   # Run in foreground
  clipstash install           # Install and start as background service
  clipstash list -t Link url  # Show saved links containing "url"
  clipstash clear --keep-pinned
""",
    )
    commands = parser.add_subparsers(dest="command", metavar="command")
    commands.add_parser("install", help="Install as LaunchAgent (runs on login)")
    commands.add_parser("uninstall", help="Remove LaunchAgent")
    commands.add_parser("status", help="Check if clipstash is running")

    list_parser = commands.add_parser("list", help="Print clipboard history")
    list_parser.add_argument("query", nargs="?", default="", help="Only show entries containing this text")
    list_parser.add_argument("-t", "--type", choices=[t.value for t in ItemType], help="Only show entries of this type")
    list_parser.add_argument("-p", "--pinned", action="store_true", help="Only show pinned entries")
    list_parser.add_argument("-n", "--limit", type=int, default=20, help="Maximum number of entries")

    clear_parser = commands.add_parser("clear", help="Clear clipboard history")
    clear_parser.add_argument("--keep-pinned", action="store_true", help="Keep pinned and tagged entries")
    return parser


def main():
    args = build_parser().parse_args()

    if args.command == "install":
        sys.exit(install_launchagent())
    elif args.command == "uninstall":
        sys.exit(uninstall_launchagent())
    elif args.command == "status":
        sys.exit(check_status())
    elif args.command == "list":
        sys.exit(list_history(args.query, args.type, args.pinned, args.limit))
    elif args.command == "clear":
        sys.exit(clear_history(args.keep_pinned))
    else:
        run_app()


if __name__ == "__main__":
    main()
