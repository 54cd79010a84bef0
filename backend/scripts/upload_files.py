#!/usr/bin/env python3
"""
Command-line uploader for a running Priory server.

Uploads the given files through the UploadCoordinator, with the same
validation, bounded concurrency and retry behaviour as the web client.

Run with: python backend/scripts/upload_files.py --server http://localhost:2009 photo.png notes.txt
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add backend to Python path
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from priory.config import settings
from priory.uploader import (
    FileHandle,
    HttpxUploadTransport,
    RetryPolicy,
    UploadCoordinator,
    UploadProgress,
    UploadStatus,
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Upload files to a Priory server")
    parser.add_argument("paths", nargs="+", type=Path, help="Files to upload")
    parser.add_argument("--server", default=settings.SITE_URL, help="Server base URL")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=settings.UPLOAD_CONCURRENCY,
        help="Maximum simultaneous uploads",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=settings.UPLOAD_MAX_ATTEMPTS,
        help="Attempts per file before giving up",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.UPLOAD_TIMEOUT,
        help="Timeout per attempt in seconds",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args()


def print_progress(record: UploadProgress) -> None:
    if record.status is UploadStatus.UPLOADING and record.progress not in (0, 100):
        return
    suffix = f" ({record.error})" if record.error else ""
    print(f"   {record.status.value:>9} {record.progress:3d}%  {record.file.name}{suffix}")


async def run(args: argparse.Namespace) -> int:
    handles = []
    for path in args.paths:
        if not path.is_file():
            print(f"   ✗ Not a file: {path}")
            return 1
        handles.append(FileHandle.from_path(path))

    def on_complete(results):
        print(f"\n✓ {len(results)} file(s) uploaded:")
        for result in results:
            print(f"   - {result['originalFilename']} -> {args.server.rstrip('/')}{result['url']}")

    async with HttpxUploadTransport(base_url=args.server) as transport:
        coordinator = UploadCoordinator(
            transport,
            max_file_size=settings.MAX_UPLOAD_SIZE,
            concurrency=args.concurrency,
            retry_policy=RetryPolicy(
                max_attempts=args.max_attempts,
                base_delay=settings.UPLOAD_BASE_DELAY,
                max_delay=settings.UPLOAD_MAX_DELAY,
                jitter=settings.UPLOAD_JITTER,
            ),
            timeout=args.timeout,
            on_progress=print_progress,
            on_complete=on_complete,
        )
        coordinator.submit(handles)
        try:
            await coordinator.wait()
        finally:
            await coordinator.close()

    failed = [r for r in coordinator.records.values() if r.status is not UploadStatus.COMPLETED]
    if failed:
        print(f"\n✗ {len(failed)} file(s) failed")
        return 1
    return 0


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print(f"Uploading {len(args.paths)} file(s) to {args.server}")
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
