"""Command-line entrypoints for inspecting and steering crawl state."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

import tomllib
from dotenv import load_dotenv

from relcrawl.errors import RelcrawlError
from relcrawl.observability.log import configure_logging
from relcrawl.orchestrator.checkpoint import (
    list_checkpoints,
    load_checkpoint,
    save_checkpoint,
)
from relcrawl.orchestrator.state import CrawlState, parse_target_id, prompt_target_id
from relcrawl.orchestrator.window import MAX_CALLS, WINDOW_MS, now_ms
from relcrawl.quality.dedup import ProfileMatcher
from relcrawl.quality.similarity import (
    longest_common_substring,
    phonetic_code,
    set_similarity_ratio,
    string_similarity_ratio,
)
from relcrawl.storage.models import Profile
from relcrawl.storage.repository import JsonlRepository

DEFAULT_SETTINGS = Path("config/settings.toml")
DEFAULT_LOGGING = Path("config/logging.yaml")


def load_settings(path: Path) -> Dict[str, object]:
    """Read the TOML configuration file, returning an empty mapping when absent."""
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _checkpoint_root(settings: Dict[str, object], override: Optional[str]) -> Path:
    if override:
        return Path(override)
    return Path(settings.get("storage", {}).get("checkpoint_dir", "data/checkpoints"))


def _window_options(settings: Dict[str, object]) -> Dict[str, int]:
    window = settings.get("window", {})
    return {
        "max_calls": int(window.get("max_calls", MAX_CALLS)),
        "window_ms": int(window.get("window_seconds", WINDOW_MS // 1000)) * 1000,
    }


def _parse_token(raw: str) -> object:
    try:
        return int(raw)
    except ValueError:
        return raw


def _split_items(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="relcrawl", description="Rate-limited relation crawl state")
    parser.add_argument("--settings", default=str(DEFAULT_SETTINGS), help="Path to settings TOML")
    parser.add_argument("--checkpoints", help="Override the checkpoint directory")
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Register a new crawl profile for a target")
    init.add_argument("--target", help="Target user ID (prompted for when omitted)")
    init.add_argument("--force", action="store_true", help="Overwrite an existing checkpoint")

    status = sub.add_parser("status", help="Describe saved crawl state")
    status.add_argument("--target", help="Target user ID (all targets when omitted)")

    record = sub.add_parser("record-call", help="Account for a remote call made just now")
    record.add_argument("--target", required=True)

    cursor = sub.add_parser("set-cursor", help="Store the pagination cursor of the last fetch")
    cursor.add_argument("--target", required=True)
    cursor.add_argument("--cursor", required=True)

    advance = sub.add_parser("advance-subset", help="Move the crawl to the next subset")
    advance.add_argument("--target", required=True)

    compare = sub.add_parser("compare", help="Similarity heuristics for two strings or lists")
    compare.add_argument("first")
    compare.add_argument("second")
    compare.add_argument("--lists", action="store_true", help="Treat inputs as comma separated lists")

    phonetic = sub.add_parser("phonetic", help="Phonetic codes of the given words")
    phonetic.add_argument("words", nargs="+")

    dedup = sub.add_parser("dedup", help="Report likely duplicate profiles among stored records")
    dedup.add_argument("--profiles", help="Override the profiles directory")
    dedup.add_argument("--limit", type=int, default=1000, help="Maximum number of profiles to load")

    return parser


def _status_payload(state: CrawlState) -> Dict[str, object]:
    now = now_ms()
    snap = state.snapshot()
    return {
        "target_id": snap.target_id,
        "subset": snap.subset,
        "cursor": snap.cursor,
        "calls": len(snap.calls),
        "can_make_call": state.can_make_call(now),
        "wait_seconds": state.wait_seconds(now),
        "report": state.window_report(now),
    }


def _require_state(root: Path, raw_target: str, settings: Dict[str, object]) -> CrawlState:
    target = parse_target_id(raw_target)
    state = load_checkpoint(root, target, **_window_options(settings))
    if state is None:
        raise SystemExit(f"No crawl profile registered for target {target}")
    return state


def cmd_init(args: argparse.Namespace, settings: Dict[str, object]) -> None:
    root = _checkpoint_root(settings, args.checkpoints)
    if args.target is None:
        target = prompt_target_id(lambda: sys.stdin.readline() or None, write=lambda text: print(text, file=sys.stderr))
    else:
        target = parse_target_id(args.target)
    if not args.force and load_checkpoint(root, target) is not None:
        raise SystemExit(f"Crawl profile for target {target} already exists (use --force)")
    state = CrawlState.create(target, **_window_options(settings))
    path = save_checkpoint(root, state)
    print(json.dumps({"target_id": target, "path": str(path)}, indent=2))


def cmd_status(args: argparse.Namespace, settings: Dict[str, object]) -> None:
    root = _checkpoint_root(settings, args.checkpoints)
    if args.target is not None:
        state = _require_state(root, args.target, settings)
        print(json.dumps(_status_payload(state), indent=2))
        return
    summary = []
    for target in list_checkpoints(root):
        state = load_checkpoint(root, target, **_window_options(settings))
        if state is not None:
            summary.append(_status_payload(state))
    print(json.dumps(summary, indent=2))


def cmd_record_call(args: argparse.Namespace, settings: Dict[str, object]) -> None:
    root = _checkpoint_root(settings, args.checkpoints)
    state = _require_state(root, args.target, settings)
    now = now_ms()
    within_quota = state.can_make_call(now)
    state.register_call(now)
    save_checkpoint(root, state)
    print(json.dumps({"within_quota": within_quota, **_status_payload(state)}, indent=2))


def cmd_set_cursor(args: argparse.Namespace, settings: Dict[str, object]) -> None:
    root = _checkpoint_root(settings, args.checkpoints)
    state = _require_state(root, args.target, settings)
    state.set_cursor(_parse_token(args.cursor))
    save_checkpoint(root, state)
    print(json.dumps(_status_payload(state), indent=2))


def cmd_advance_subset(args: argparse.Namespace, settings: Dict[str, object]) -> None:
    root = _checkpoint_root(settings, args.checkpoints)
    state = _require_state(root, args.target, settings)
    state.advance_subset()
    state.reset_cursor()
    save_checkpoint(root, state)
    print(json.dumps(_status_payload(state), indent=2))


def cmd_compare(args: argparse.Namespace) -> None:
    if args.lists:
        result = {"set_similarity": set_similarity_ratio(_split_items(args.first), _split_items(args.second))}
    else:
        result = {
            "longest_common_substring": longest_common_substring(args.first, args.second),
            "string_similarity": string_similarity_ratio(args.first, args.second),
            "phonetic": [phonetic_code(args.first), phonetic_code(args.second)],
        }
    print(json.dumps(result, indent=2))


def cmd_phonetic(args: argparse.Namespace) -> None:
    print(json.dumps({word: phonetic_code(word) for word in args.words}, indent=2))


def cmd_dedup(args: argparse.Namespace, settings: Dict[str, object]) -> None:
    storage = settings.get("storage", {})
    matching = settings.get("matching", {})
    root = Path(args.profiles or storage.get("profiles_dir", "data/profiles"))
    repository = JsonlRepository(root, Profile)
    matcher = ProfileMatcher(
        name_threshold=float(matching.get("name_threshold", 0.2)),
        overlap_threshold=float(matching.get("overlap_threshold", 0.5)),
    )
    duplicates = []
    profiles = repository.load(args.limit)
    for profile in profiles:
        match = matcher.find_match(profile)
        if match is not None and match.user_id != profile.user_id:
            duplicates.append({"user_id": profile.user_id, "matches": match.user_id, "key": matcher.key_for(profile)})
        matcher.remember(profile)
    print(json.dumps({"loaded": len(profiles), "duplicates": duplicates}, indent=2))


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    load_dotenv()
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    settings = load_settings(Path(args.settings))
    configure_logging(DEFAULT_LOGGING)

    try:
        if args.command == "init":
            cmd_init(args, settings)
        elif args.command == "status":
            cmd_status(args, settings)
        elif args.command == "record-call":
            cmd_record_call(args, settings)
        elif args.command == "set-cursor":
            cmd_set_cursor(args, settings)
        elif args.command == "advance-subset":
            cmd_advance_subset(args, settings)
        elif args.command == "compare":
            cmd_compare(args)
        elif args.command == "phonetic":
            cmd_phonetic(args)
        elif args.command == "dedup":
            cmd_dedup(args, settings)
    except RelcrawlError as exc:
        raise SystemExit(str(exc)) from exc


if __name__ == "__main__":
    main()
