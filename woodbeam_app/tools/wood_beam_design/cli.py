from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from woodbeam_app.core.logging import configure_logging

from .tool import TOOL


def _load_inputs(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return TOOL.default_inputs()
    if path == "-":
        return json.loads(sys.stdin.read())
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _print_summary(res: Dict[str, Any]) -> None:
    result = res["result"]
    print(f"{result['label']} ({result['method']}): {'PASS' if result['pass'] else 'FAIL'}")
    for name, g in result["governing"].items():
        print(
            f"  {name:<10} unity {g['unity']:.3f}  demand {g['demand']:.4g} {g['units']}  "
            f"capacity {g['capacity']:.4g} {g['units']}  [{g['combination']}, span {g['span'] + 1}]"
        )
    for w in result["warnings"]:
        print(f"  warning: {w}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Wood beam design (NDS 2018 / ASCE 7-16)")
    parser.add_argument("inputs", nargs="?", help="Input JSON file ('-' for stdin); defaults to the sample joist.")
    parser.add_argument("--out", help="Write the run log and trace.json to this directory.")
    parser.add_argument("--json", action="store_true", help="Print the full result dict as JSON.")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    inputs = _load_inputs(args.inputs)
    res = TOOL.run_batch(inputs, out_dir=Path(args.out)) if args.out else TOOL.run(inputs)

    if args.json:
        print(json.dumps(res, indent=2, default=str))
    elif res["ok"]:
        _print_summary(res)
    else:
        err = res["error"]
        print(f"{err['code']}: {err['message']}", file=sys.stderr)

    if not res["ok"]:
        return 2
    return 0 if res["result"]["pass"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
