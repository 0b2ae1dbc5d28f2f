#!/usr/bin/env python3
"""CLI script to run geocoding queries against the address dataset."""
import argparse
import json
import sys
import warnings

from geosdk import GeoSDK, GeoSDKError, UnscopedSearchWarning
from geosdk.core.config import DATA_URL, LOG_LEVEL, SENTRY_DSN
from geosdk.utils.error_tracking import setup_error_tracking
from geosdk.utils.logging import setup_logging


def _bbox(text):
    values = [float(v) for v in text.split(",")]
    if len(values) != 4:
        raise argparse.ArgumentTypeError("bbox must be minLat,minLon,maxLat,maxLon")
    return values


def _report_progress(step, status, elapsed_ms, details):
    if status != "started":
        print(f"  {step}: {status} ({elapsed_ms:.0f} ms)", file=sys.stderr)


def _print(sdk, records):
    payload = []
    for record in records:
        row = record.to_dict()
        row["address"] = sdk.format_address(record)
        payload.append(row)
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def main(argv=None):
    parser = argparse.ArgumentParser(description="Geocode Saudi national addresses")
    parser.add_argument("--data-url", default=DATA_URL, help="Dataset base URL or directory")
    parser.add_argument("--layout", choices=["tiles", "regions"], default=None,
                       help="Partition layout (default: GEOSDK_LAYOUT or tiles)")
    parser.add_argument("--no-fts", action="store_true", help="Disable BM25 ranked search")
    parser.add_argument("--language", choices=["ar", "en"], default=None, help="Language of printed addresses")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Log level")
    sub = parser.add_subparsers(dest="command", required=True)

    forward = sub.add_parser("forward", help="Free-text address search")
    forward.add_argument("address")
    forward.add_argument("--limit", type=int, default=10)
    forward.add_argument("--bbox", type=_bbox, help="minLat,minLon,maxLat,maxLon")
    forward.add_argument("--region", help="Region name (Arabic or English)")

    reverse = sub.add_parser("reverse", help="Nearest addresses to a point")
    reverse.add_argument("lat", type=float)
    reverse.add_argument("lon", type=float)
    reverse.add_argument("--limit", type=int, default=10)
    reverse.add_argument("--radius", type=float, default=1000.0, help="Search radius in meters")
    reverse.add_argument("--detail", choices=["minimal", "postcode", "region", "full"], default="full")
    reverse.add_argument("--neighbors", action="store_true", help="Include neighbouring tiles")

    postcode = sub.add_parser("postcode", help="Addresses in a postcode")
    postcode.add_argument("postcode")
    postcode.add_argument("--limit", type=int, default=50)
    postcode.add_argument("--number", help="House number")

    number = sub.add_parser("number", help="Addresses with a house number")
    number.add_argument("number")
    number.add_argument("--limit", type=int, default=20)
    number.add_argument("--region")
    number.add_argument("--bbox", type=_bbox)

    for name in ("country", "admin"):
        point = sub.add_parser(name, help=f"{name.title()} containing a point")
        point.add_argument("lat", type=float)
        point.add_argument("lon", type=float)

    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    setup_error_tracking(SENTRY_DSN)

    sdk = GeoSDK(
        data_url=args.data_url,
        language=args.language,
        layout=args.layout,
        enable_ranked_search=False if args.no_fts else None,
    )
    try:
        sdk.initialize(on_progress=_report_progress)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", UnscopedSearchWarning)
            if args.command == "forward":
                _print(sdk, sdk.geocode(args.address, limit=args.limit, bbox=args.bbox, region=args.region))
            elif args.command == "reverse":
                _print(sdk, sdk.reverse_geocode(
                    args.lat, args.lon,
                    limit=args.limit,
                    radius_meters=args.radius,
                    detail_level=args.detail,
                    include_neighbors=args.neighbors,
                ))
            elif args.command == "postcode":
                _print(sdk, sdk.search_by_postcode(args.postcode, limit=args.limit, number=args.number))
            elif args.command == "number":
                _print(sdk, sdk.search_by_number(args.number, limit=args.limit, region=args.region, bbox=args.bbox))
            elif args.command == "country":
                country = sdk.detect_country(args.lat, args.lon)
                print(json.dumps(country.to_dict() if country else None, ensure_ascii=False, indent=2))
            elif args.command == "admin":
                print(json.dumps(sdk.get_admin_hierarchy(args.lat, args.lon).to_dict(), ensure_ascii=False, indent=2))
        for warning in caught:
            print(f"Warning: {warning.message}", file=sys.stderr)
    except GeoSDKError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        sdk.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
