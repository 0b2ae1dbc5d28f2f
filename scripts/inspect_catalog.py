#!/usr/bin/env python3
"""CLI script to inspect the partition and postcode catalogs of a dataset."""
import argparse
import json
import sys

from geosdk import GeoSDK, GeoSDKError
from geosdk.core.config import DATA_URL, LOG_LEVEL
from geosdk.utils.logging import setup_logging


def main(argv=None):
    parser = argparse.ArgumentParser(description="Inspect dataset catalogs")
    parser.add_argument("--data-url", default=DATA_URL, help="Dataset base URL or directory")
    parser.add_argument("--layout", choices=["tiles", "regions"], default=None)
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Log level")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("stats", help="Catalog summary")

    postcodes = sub.add_parser("postcodes", help="List postcodes")
    postcodes.add_argument("--prefix", default=None, help="Leading digits, e.g. 138")
    postcodes.add_argument("--limit", type=int, default=50)

    partitions = sub.add_parser("partitions", help="List partitions")
    partitions.add_argument("--region", default=None, help="Region name (Arabic or English)")

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        with GeoSDK(data_url=args.data_url, layout=args.layout, enable_ranked_search=False) as sdk:
            if args.command == "stats":
                result = sdk.get_stats().to_dict()
                result["regions"] = sorted({
                    d.primary_region.ar for d in sdk.get_partitions() if d.primary_region and d.primary_region.ar
                })
            elif args.command == "postcodes":
                result = [e.to_dict() for e in sdk.get_postcodes(args.prefix, args.limit)]
            else:
                found = sdk.get_partitions_by_region(args.region) if args.region else sdk.get_partitions()
                result = [d.to_dict() for d in found]
    except GeoSDKError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
