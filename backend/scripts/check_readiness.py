#!/usr/bin/env python3
"""Run readiness checks (config, packages, redis, push gateways). Exit 0 when the required ones pass."""
import sys
from pathlib import Path

# Ensure backend package is on path when run as script
_backend = Path(__file__).resolve().parent.parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

from pushhub.readiness import is_ready, run_all_checks


def main() -> int:
    checks = run_all_checks()
    ready, summary = is_ready(checks)
    for name, msg in summary.items():
        status = "OK" if checks[name][0] else "FAIL"
        print(f"  {name:<9} {status:<5} {msg}")
    print("")
    print("Readiness: READY" if ready else "Readiness: NOT READY (config, packages and redis are required)")
    return 0 if ready else 1


if __name__ == "__main__":
    sys.exit(main())
