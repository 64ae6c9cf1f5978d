from __future__ import annotations

import argparse
import json
from pathlib import Path

from farepass.config.settings import get_settings
from farepass.core.env import resolve_project_path
from farepass.stops.qr import stops_with_payloads


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Print (or write) the QR payload text for every configured bus stop.")
    p.add_argument("--out", type=str, default=None, help="Write a JSON file instead of printing lines.")
    args = p.parse_args(argv)

    stops = stops_with_payloads(get_settings())
    if not stops:
        print("No stops configured (see `stops:` in the settings YAML).")
        return 2

    if args.out:
        out_path: Path = resolve_project_path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps({"stops": stops}, ensure_ascii=False, indent=2), encoding="utf-8")
        print(f"Wrote {len(stops)} stop payloads to {out_path}")
        return 0

    for stop in stops:
        print(f"{stop['name']}\t{stop['qr_payload']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
