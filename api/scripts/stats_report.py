import argparse
import json

from fitmatch.database import SessionLocal
from fitmatch.services.stats import compute_admin_stats


def main() -> None:
    parser = argparse.ArgumentParser(description="Print platform statistics as JSON")
    parser.add_argument("--indent", type=int, default=2)
    args = parser.parse_args()

    with SessionLocal() as db:
        report = compute_admin_stats(db)

    print(json.dumps(report, indent=args.indent))


if __name__ == "__main__":
    main()
