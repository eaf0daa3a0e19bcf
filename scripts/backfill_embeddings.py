#!/usr/bin/env python3
"""
Embedding backfill utility.
Generates embeddings for posts and user profile fields that have text but no usable vector.
"""

import argparse
import json
import sys

from socialmatch.core.config import validate_match_config
from socialmatch.core.db import init_db
from socialmatch.core.maintenance import backfill_embeddings
from socialmatch.core.schema import POST, USER


def main(argv=None):
    parser = argparse.ArgumentParser(description="Backfill missing post and user embeddings")
    parser.add_argument("--kind", choices=["post", "user", "all"], default="all",
                        help="Which entities to process (default: all)")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    args = parser.parse_args(argv)

    issues = validate_match_config()
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        return 1

    init_db()

    kinds = (POST, USER) if args.kind == "all" else (args.kind,)
    print(f"Starting embedding backfill for: {', '.join(kinds)}")

    report = backfill_embeddings(kinds=kinds)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(f"✓ Posts: examined {report.posts_examined}, created {report.posts_created}")
        print(f"✓ Users: examined {report.users_examined}, created {report.users_created}")
        print("Backfill complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
