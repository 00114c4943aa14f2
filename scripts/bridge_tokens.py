#!/usr/bin/env python3
"""Run one symbridge batch over a JSONL token stream and emit the report."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from symbridge.config import BridgeConfig, load_config
from symbridge.errors import BridgeError
from symbridge.io_utils import load_token_records, save_json
from symbridge.pipeline import bridge_result_to_dict, run_bridge

log = logging.getLogger("bridge_tokens")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Confidence-gated token stream to syntax forest bridge")
    parser.add_argument("--tokens", type=Path, required=True, help="JSONL token stream")
    parser.add_argument("--config", type=Path, default=None, help="JSON batch config")
    parser.add_argument(
        "--report-out",
        type=Path,
        default=ROOT / "artifacts" / "bridge_report.json",
    )
    parser.add_argument("--deadline-ms", type=float, default=None)
    parser.add_argument("--no-minimize", action="store_true")
    parser.add_argument("--json", action="store_true", help="Print the full report")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(args.config) if args.config is not None else BridgeConfig()
        records = load_token_records(args.tokens)
        result = run_bridge(
            records,
            config,
            deadline_ms=args.deadline_ms,
            minimize=not args.no_minimize,
        )
    except BridgeError as exc:
        log.error("batch failed: %s", exc)
        return 2

    report = bridge_result_to_dict(result)
    save_json(report, args.report_out)
    if args.json:
        print(json.dumps(report, indent=2))
    else:
        diagnostics = report["diagnostics"]
        print(
            json.dumps(
                {
                    "run_id": report["run_id"],
                    "status_counts": diagnostics["status_counts"],
                    "node_count": diagnostics["node_count"],
                    "manual_review": len(result.manual_review),
                    "intent_mismatches": len(result.intent_mismatches),
                    "report_out": str(args.report_out),
                },
                indent=2,
            ),
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
