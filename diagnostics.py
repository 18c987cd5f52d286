"""
Diagnostic: run feed parsing + extraction only (no network, no writes).
Reports which columns each field resolved from, stock and gender coverage,
and how many rows carry an image candidate.
"""

import argparse
from collections import Counter
from pathlib import Path

from config import Settings
from extractor import FIELD_COLUMNS, build_item
from parser import first_column, image_candidates, parse_feed, pick_image_column


def diagnose_feed(text: str, settings: Settings | None = None) -> dict:
    rows = parse_feed(text)
    settings = settings or Settings()

    report: dict = {
        "rows": len(rows),
        "columns": list(rows[0].keys()) if rows else [],
        "field_sources": {},
        "in_stock": 0,
        "genders": Counter(),
        "with_image": 0,
        "image_columns": Counter(),
    }

    # Which header supplied each field, per row
    for field, names in FIELD_COLUMNS.items():
        sources: Counter = Counter()
        for row in rows:
            sources[first_column(row, names) or "(missing)"] += 1
        report["field_sources"][field] = sources

    for row in rows:
        item = build_item(row, settings)
        if item.in_stock:
            report["in_stock"] += 1
            report["genders"][item.gender.value] += 1
        if pick_image_column(row):
            report["with_image"] += 1
        for name, _value in image_candidates(row):
            report["image_columns"][name] += 1

    return report


def print_diagnosis(report: dict) -> None:
    print(f"{'=' * 70}")
    print(f"  {report['rows']} rows, {len(report['columns'])} columns")
    print(f"{'=' * 70}")
    print(f"  Columns: {report['columns']}")

    print("\n  Field sources:")
    for field, sources in report["field_sources"].items():
        summary = ", ".join(f"{name}={count}" for name, count in sources.most_common())
        print(f"    {field:<10} {summary}")

    rows = report["rows"] or 1
    print(f"\n  In stock:   {report['in_stock']}/{report['rows']} ({report['in_stock'] / rows * 100:.0f}%)")
    print(f"  With image: {report['with_image']}/{report['rows']} ({report['with_image'] / rows * 100:.0f}%)")
    if report["image_columns"]:
        print(f"  Image columns seen: {dict(report['image_columns'])}")

    print("\n  Genders (in-stock only):")
    for gender, count in report["genders"].most_common():
        print(f"    {gender:<12} {count}")


def main():
    ap = argparse.ArgumentParser(description="Offline report on a vendor CSV feed.")
    ap.add_argument("feed", type=Path, nargs="?", help="CSV file (default: the configured fallback feed)")
    args = ap.parse_args()

    settings = Settings.from_env()
    path = args.feed or settings.feed_file
    print(f"Diagnosing {path} (parser + extraction only, NO network)\n")
    print_diagnosis(diagnose_feed(path.read_text(encoding="utf-8-sig"), settings))


if __name__ == "__main__":
    main()
