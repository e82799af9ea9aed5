"""LOCAL-only CLI to scan a project and print its detected conventions."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(ROOT.parent / "src"))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Scan a JavaScript/TypeScript project for its conventions.",
    )
    parser.add_argument(
        "root",
        type=Path,
        help="Project directory to scan (read-only).",
    )
    parser.add_argument(
        "--include",
        action="append",
        default=[],
        help="Glob or path prefix to restrict scanning to; repeatable.",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        help="Glob or path prefix to skip; repeatable.",
    )
    parser.add_argument("--max-files", type=int, help="Override the file ceiling.")
    parser.add_argument("--concurrency", type=int, help="Worker thread count.")
    parser.add_argument(
        "--timeout", type=float, help="Overall scan timeout in seconds."
    )
    parser.add_argument(
        "--cache-file",
        type=Path,
        help="Persist extracted evidence here between runs.",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Log scan progress to stderr."
    )
    return parser.parse_args()


def build_request(args: argparse.Namespace) -> dict[str, object]:
    request: dict[str, object] = {"root": str(args.root)}
    if args.include:
        request["include"] = args.include
    if args.exclude:
        request["exclude"] = args.exclude
    if args.max_files is not None:
        request["max_files"] = args.max_files
    if args.concurrency is not None:
        request["concurrency"] = args.concurrency
    if args.timeout is not None:
        request["timeout_seconds"] = args.timeout
    return request


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    from mcp_patternscout.mcp.server import ProjectScanResource
    from mcp_patternscout.services.evidence_cache import EvidenceCache
    from mcp_patternscout.services.project_scanner import ProjectScanner

    cache = EvidenceCache(store_path=args.cache_file)
    cache.load()
    resource = ProjectScanResource(ProjectScanner(cache=cache))
    response = resource.scan(build_request(args))
    cache.flush()

    sys.stdout.write(json.dumps(response, ensure_ascii=False, indent=2))
    sys.stdout.write("\n")
    return 1 if response.get("status") == "error" else 0


if __name__ == "__main__":
    sys.exit(main())
