#!/usr/bin/env python3
"""
Reconcile pre-signed upload records against the storage bucket.

Confirmation trusts the client, so a presigned ledger record only means
the client claimed success. This sweep HEADs every object referenced by
presigned records and reports the ones that are missing, and the ones
it could not check. It never modifies the ledger or the bucket.

Usage:
    # From inside the Docker container:
    docker exec -it upload-relay python reconcile_uploads.py

    # Limit to the newest N records, exit non-zero when something is missing:
    python reconcile_uploads.py --limit 500 --strict
"""
import argparse
import asyncio
import sys
from typing import List, Tuple
from botocore.exceptions import BotoCoreError, ClientError

from upload_relay.database import AsyncSessionLocal, engine
from upload_relay.models.upload_record import UploadPathway, UploadRecord
from upload_relay.repositories.upload_ledger import UploadLedger
from upload_relay.storage.s3_client import S3Client, get_s3_client


def check_records(
    client: S3Client,
    records: List[UploadRecord]
) -> Tuple[List[Tuple[str, str]], List[Tuple[str, str]]]:
    """
    HEAD every object referenced by the records.

    Returns:
        (missing, unknown) lists of (record_id, url) pairs. missing holds
        objects storage reported as absent, plus URLs outside the bucket.
        unknown holds objects whose HEAD failed for another reason
        (permissions, throttling, connection errors).
    """
    missing = []
    unknown = []
    for record in records:
        for url in record.urls:
            key = client.key_from_public_url(url)
            if key is None:
                missing.append((record.id, url))
                continue
            try:
                exists = client.check_object_exists(key)
            except (ClientError, BotoCoreError) as e:
                print(f"  ! could not check {key}: {e}")
                unknown.append((record.id, url))
                continue
            if not exists:
                missing.append((record.id, url))
    return missing, unknown


async def load_presigned_records(limit):
    async with AsyncSessionLocal() as db:
        return await UploadLedger(db).list_records(
            pathway=UploadPathway.PRESIGNED, limit=limit
        )


async def run(limit):
    client = get_s3_client()
    if not client.is_configured:
        print("ERROR: Storage not configured!")
        print("Required environment variables:")
        print("  - S3_BUCKET")
        print("  - S3_ACCESS_KEY")
        print("  - S3_SECRET_KEY")
        sys.exit(1)

    try:
        records = await load_presigned_records(limit)
    finally:
        await engine.dispose()

    total_urls = sum(len(record.urls) for record in records)
    print(f"Checking {total_urls} objects from {len(records)} presigned records "
          f"in bucket '{client.bucket}'...")

    return await asyncio.to_thread(check_records, client, records)


def main():
    parser = argparse.ArgumentParser(
        description='Check that confirmed presigned uploads exist in storage'
    )
    parser.add_argument('--limit', type=int, default=None,
                        help='Only check the newest N records')
    parser.add_argument('--strict', action='store_true',
                        help='Exit with status 2 when objects are missing or could not be checked')
    args = parser.parse_args()

    missing, unknown = asyncio.run(run(args.limit))

    print(f"\n{'='*50}")
    print("SUMMARY:")
    print(f"  Missing objects: {len(missing)}")
    print(f"  Unknown (check failed): {len(unknown)}")
    print(f"{'='*50}")
    for record_id, url in missing[:20]:
        print(f"  - record {record_id}: {url}")
    if len(missing) > 20:
        print(f"  ... and {len(missing) - 20} more")
    for record_id, url in unknown[:20]:
        print(f"  ? record {record_id}: {url}")
    if len(unknown) > 20:
        print(f"  ... and {len(unknown) - 20} more unchecked")

    if (missing or unknown) and args.strict:
        sys.exit(2)


if __name__ == '__main__':
    main()
