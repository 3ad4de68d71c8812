"""Item readers for ListBuckets and ListObjectsV2 responses."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from urllib.parse import quote
from xml.etree.ElementTree import Element

import requests
from botocore.utils import parse_timestamp

from s3_sigv4.paginator import Paginator
from s3_sigv4.signing import Signer
from s3_sigv4.utils import find_elements, find_text

BUCKET_CONTINUATION = "ContinuationToken"
OBJECT_CONTINUATION = "NextContinuationToken"


@dataclass(frozen=True)
class Bucket:
    """A bucket entry of a ListBuckets response."""

    name: str
    creation_date: Optional[datetime] = None
    region: str = ""
    arn: str = ""

    @classmethod
    def from_element(cls, element: Element) -> "Bucket":
        created = find_text(element, "CreationDate")
        return cls(
            name=find_text(element, "Name"),
            creation_date=parse_timestamp(created) if created else None,
            region=find_text(element, "BucketRegion"),
            arn=find_text(element, "BucketArn"),
        )


@dataclass(frozen=True)
class ObjectSummary:
    """A ``Contents`` entry of a ListObjectsV2 response."""

    key: str
    last_modified: Optional[datetime] = None
    etag: str = ""
    size: int = 0
    storage_class: str = ""

    @classmethod
    def from_element(cls, element: Element) -> "ObjectSummary":
        modified = find_text(element, "LastModified")
        return cls(
            key=find_text(element, "Key"),
            last_modified=parse_timestamp(modified) if modified else None,
            etag=find_text(element, "ETag").strip('"'),
            size=int(find_text(element, "Size") or 0),
            storage_class=find_text(element, "StorageClass"),
        )


def measure_buckets(document: Element) -> int:
    return sum(1 for _ in find_elements(document, "Bucket"))


def read_bucket(document: Element, index: int) -> Bucket:
    return Bucket.from_element(list(find_elements(document, "Bucket"))[index])


def measure_objects(document: Element) -> int:
    return sum(1 for _ in find_elements(document, "Contents"))


def read_object(document: Element, index: int) -> ObjectSummary:
    return ObjectSummary.from_element(list(find_elements(document, "Contents"))[index])


def bucket_url(endpoint_url: str, bucket: str, virtual_host: bool = False) -> str:
    """URL of a bucket, path-style or virtual-hosted."""
    endpoint_url = endpoint_url.rstrip("/")
    if virtual_host:
        return endpoint_url.replace("://", f"://{bucket}.", 1) + "/"
    return f"{endpoint_url}/{quote(bucket, safe='')}"


def list_buckets(
    signer: Signer,
    session: requests.Session,
    endpoint_url: str,
    **kwargs,
) -> Paginator[Bucket]:
    """Paginate ListBuckets, 1000 buckets per page."""
    request = requests.Request("GET", endpoint_url.rstrip("/") + "/").prepare()
    return Paginator(
        signer,
        session,
        request,
        BUCKET_CONTINUATION,
        measure_buckets,
        read_bucket,
        limit_param="max-buckets",
        limit=1000,
        **kwargs,
    )


def list_objects(
    signer: Signer,
    session: requests.Session,
    endpoint_url: str,
    bucket: str,
    prefix: Optional[str] = None,
    virtual_host: bool = False,
    **kwargs,
) -> Paginator[ObjectSummary]:
    """Paginate ListObjectsV2 of a bucket, 1000 keys per page."""
    params = {"list-type": "2"}
    if prefix:
        params["prefix"] = prefix
    request = requests.Request(
        "GET", bucket_url(endpoint_url, bucket, virtual_host), params=params
    ).prepare()
    return Paginator(
        signer,
        session,
        request,
        OBJECT_CONTINUATION,
        measure_objects,
        read_object,
        limit_param="max-keys",
        limit=1000,
        **kwargs,
    )
