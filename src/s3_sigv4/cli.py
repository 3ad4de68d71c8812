"""List buckets or objects of an S3 endpoint.

Usage:
    s3-sigv4 buckets [--endpoint aws|custom]
    s3-sigv4 objects BUCKET [--prefix PREFIX] [--endpoint aws|custom]

Environment Variables:
    AWS_PROFILE           - AWS profile for credentials (default: aws)
    AWS_REGION            - Region of the aws endpoint (default: us-east-1)
    S3_ENDPOINT           - Custom S3 endpoint URL
    S3_ACCESS_KEY_ID      - Access key for the custom endpoint
    S3_SECRET_ACCESS_KEY  - Secret key for the custom endpoint
"""

import argparse
import logging
import sys
from typing import Optional

from s3_sigv4.client import S3ClientFactory
from s3_sigv4.errors import ProtocolError, S3SigV4Error


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="List buckets or objects of an S3-compatible endpoint"
    )
    parser.add_argument(
        "--endpoint", "-e",
        default="aws",
        choices=["aws", "custom"],
        help="Endpoint to list (default: aws)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log signed requests and page fetches",
    )
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("buckets", help="List all buckets")
    objects = commands.add_parser("objects", help="List objects of a bucket")
    objects.add_argument("bucket", help="Bucket name")
    objects.add_argument("--prefix", "-p", help="Only list keys under this prefix")
    return parser


def main(argv: Optional[list[str]] = None, factory: Optional[S3ClientFactory] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    factory = factory or S3ClientFactory()
    try:
        if args.command == "buckets":
            for bucket in factory.list_buckets(args.endpoint):
                created = bucket.creation_date.isoformat() if bucket.creation_date else "-"
                print(f"{created}  {bucket.name}")
        else:
            for summary in factory.list_objects(args.bucket, args.prefix, args.endpoint):
                print(f"{summary.size:>12}  {summary.key}")
    except ProtocolError as exc:
        print(f"Error: {exc.code}: {exc.message}", file=sys.stderr)
        return 1
    except S3SigV4Error as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
