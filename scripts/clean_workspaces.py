#!/usr/bin/env python3
"""Clean old project workspaces under projects/ so disk stays small.

Only workspaces whose project is finished (completed or failed) in the JSON
store, or that have no store entry at all, are candidates.

Usage:
  python scripts/clean_workspaces.py                      # delete every finished workspace
  python scripts/clean_workspaces.py --keep 5             # keep the 5 most recent, delete the rest
  python scripts/clean_workspaces.py --older-than-days 7  # delete workspaces older than 7 days
"""

import argparse
import shutil
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from contracts import TERMINAL_STATUSES  # noqa: E402
from orchestrator.store import JsonFileProjectStore  # noqa: E402
from config import settings  # noqa: E402


def workspace_dirs(workspace_root: Path, store: JsonFileProjectStore):
    """Yield (path, mtime) for each finished or orphaned project workspace."""
    if not workspace_root.exists():
        return
    state_dir = store.state_dir.resolve()
    for p in workspace_root.iterdir():
        if not p.is_dir() or p.name.startswith(".") or p.resolve() == state_dir:
            continue
        state = store.get(p.name)
        if state is not None and state.status not in TERMINAL_STATUSES:
            continue
        try:
            mtime = p.stat().st_mtime
        except OSError:
            continue
        yield p, mtime


def main():
    ap = argparse.ArgumentParser(description="Clean finished project workspaces")
    ap.add_argument("--keep", type=int, default=None, help="Keep this many most recent workspaces")
    ap.add_argument("--older-than-days", type=float, default=None, help="Delete workspaces older than this many days")
    ap.add_argument("--dry-run", action="store_true", help="Only print what would be deleted")
    ap.add_argument("--forget", action="store_true", help="Also remove the project from the store")
    args = ap.parse_args()

    store = JsonFileProjectStore(settings.get_state_path())
    dirs = list(workspace_dirs(settings.get_workspace_path(), store))
    if not dirs:
        print("No finished workspaces to clean.")
        return

    dirs.sort(key=lambda x: x[1], reverse=True)

    if args.keep is not None:
        to_delete = [p for p, _ in dirs[args.keep:]]
    elif args.older_than_days is not None:
        cutoff = time.time() - (args.older_than_days * 24 * 3600)
        to_delete = [p for p, m in dirs if m < cutoff]
    else:
        to_delete = [p for p, _ in dirs]

    if not to_delete:
        print("Nothing to delete.")
        return

    if args.dry_run:
        print("Would delete:")
        for p in to_delete:
            print(f"  {p}")
        return

    for p in to_delete:
        try:
            shutil.rmtree(p)
            if args.forget:
                store.delete(p.name)
            print(f"Deleted {p}")
        except OSError as e:
            print(f"Error deleting {p}: {e}")


if __name__ == "__main__":
    main()
