from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from .config import SyncConfig
from .engine import AlignmentEngine
from .errors import PersistenceError, ResultsFormatError, StoreError
from .io import load_match_from_folder, load_match_from_paths, load_match_from_zip
from .process import process_match
from .results import dumps_results, export_filename, loads_results
from .store import DirectoryResultsStore, Record, clear_all, load_match, save_match


def _cmd_load(args: argparse.Namespace, store: DirectoryResultsStore, cfg: SyncConfig) -> int:
    sources = [bool(args.folder), bool(args.zip), bool(args.tracking or args.events)]
    if sum(sources) != 1:
        raise SystemExit("Provide exactly one of --folder, --zip or --tracking/--events")

    if args.folder:
        mf = load_match_from_folder(args.folder)
    elif args.zip:
        mf = load_match_from_zip(Path(args.zip).read_bytes())
    else:
        if not (args.tracking and args.events):
            raise SystemExit("--tracking and --events must be given together")
        mf = load_match_from_paths(args.tracking, args.events)

    pm = process_match(mf, cfg)
    save_match(store, pm)

    print(f"✅ Saved session to: {store.root}")
    print(f"game:          {pm.metadata.game_uuid}")
    print(f"teams:         {pm.metadata.team_ids}")
    print(f"tracking rows: {pm.tracking.num_rows:,}")
    print(f"events:        {pm.events.num_rows:,}")
    return 0


def _cmd_status(args: argparse.Namespace, store: DirectoryResultsStore, cfg: SyncConfig) -> int:
    engine = AlignmentEngine.from_store(store, config=cfg)
    pm = load_match(store)
    game = pm.metadata.game_uuid if pm is not None else "unknown"

    print(f"game:     {game}")
    print(f"events:   {engine.num_events:,}")
    print(f"synced:   {engine.synced_count:,}")
    if engine.is_complete:
        print("cursor:   all events processed")
    else:
        print(f"cursor:   event {engine.current_event_index} (id {engine.current_event_id()})")
        print(f"offset:   {engine.frame_offset}")
    return 0


def _cmd_export(args: argparse.Namespace, store: DirectoryResultsStore, cfg: SyncConfig) -> int:
    pm = load_match(store)
    results = store.load(Record.RESULTS) or {}
    out = Path(args.out) if args.out else Path(export_filename(pm.metadata if pm else None))
    out.write_text(dumps_results(results), encoding="utf-8")
    print(f"✅ Exported {len(results):,} results to: {out}")
    return 0


def _cmd_import(args: argparse.Namespace, store: DirectoryResultsStore, cfg: SyncConfig) -> int:
    engine = AlignmentEngine.from_store(store, config=cfg)
    try:
        results = loads_results(Path(args.path).read_text(encoding="utf-8"))
        engine.import_results(results)
    except ResultsFormatError as e:
        print(f"❌ Failed to import results: {e}")
        return 1
    except PersistenceError as e:
        print(f"❌ {e}")
        return 1
    print(f"✅ Imported {engine.synced_count:,} results; next event: {engine.current_event_index}")
    return 0


def _cmd_reset(args: argparse.Namespace, store: DirectoryResultsStore, cfg: SyncConfig) -> int:
    clear_all(store)
    print(f"✅ Cleared session in: {store.root}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="eventsync", description="Sync football events to tracking data.")
    ap.add_argument("--store", default=None, help="Session folder (default: $EVENTSYNC_STORE_DIR or data/store).")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("load", help="Process raw parquet files into a new session.")
    p.add_argument("--folder", default=None, help="Folder containing tracking_*.parquet and events_*.parquet.")
    p.add_argument("--zip", default=None, help="Zip containing the two parquet files.")
    p.add_argument("--tracking", default=None, help="Tracking parquet file.")
    p.add_argument("--events", default=None, help="Events parquet file.")
    p.set_defaults(func=_cmd_load)

    p = sub.add_parser("status", help="Show progress of the stored session.")
    p.set_defaults(func=_cmd_status)

    p = sub.add_parser("export", help="Write synced results to JSON.")
    p.add_argument("--out", default=None, help="Output path (default: sync_results_<game>.json).")
    p.set_defaults(func=_cmd_export)

    p = sub.add_parser("import", help="Replace synced results with a JSON file.")
    p.add_argument("path")
    p.set_defaults(func=_cmd_import)

    p = sub.add_parser("reset", help="Delete the stored session.")
    p.set_defaults(func=_cmd_reset)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = SyncConfig.from_env()
    store = DirectoryResultsStore(args.store or cfg.store_dir)
    try:
        return args.func(args, store, cfg)
    except (ValueError, FileNotFoundError, StoreError) as e:
        print(f"❌ {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
