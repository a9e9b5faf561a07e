#!/usr/bin/env python3
"""
Install the offline asset cache for the upload page, or resolve URLs through it.
- Downloads every asset into the current versioned cache (all or nothing).
- Deletes caches left over from older versions once the new one is complete.
- With `--fetch URL` (repeatable), serves each URL cache-first and reports where it came from.
- Supports `--dry-run` to show what would be cached without touching the network.

Usage examples:
  python warm_offline_cache.py --base-url https://example.org/evg/ --cache-dir ./.asset-cache
  python warm_offline_cache.py --base-url https://example.org/evg/ --fetch ./index.html
  python warm_offline_cache.py --base-url https://example.org/evg/ --dry-run

"""
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from offline_cache import CACHE_NAME, CacheStorage, InstallError, OfflineAssetCache


def parse_args(argv: Optional[List[str]] = None):
    p = argparse.ArgumentParser()
    p.add_argument("--base-url", required=True, help="URL of the page the relative assets belong to")
    p.add_argument("--cache-dir", default="./.asset-cache", help="Cache storage directory")
    p.add_argument("--cache-name", default=CACHE_NAME, help="Versioned cache name")
    p.add_argument("--fetch", action="append", default=[], metavar="URL", help="Resolve URL cache-first")
    p.add_argument("--dry-run", action="store_true", help="Don't fetch anything; just print targets")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    storage = CacheStorage(Path(args.cache_dir))
    cache = OfflineAssetCache(storage, base_url=args.base_url, cache_name=args.cache_name)

    if args.dry_run:
        print("Dry run mode. No network calls will be made.")
        for url in cache.asset_urls():
            print(f"Would cache: {url}")
        stale = [name for name in storage.keys() if name != args.cache_name]
        for name in stale:
            print(f"Would delete stale cache: {name}")
        return 0

    if args.fetch:
        for url in args.fetch:
            hit = storage.match(cache.resolve(url)) is not None
            resp = cache.fetch(url)
            source = "cache" if hit else "network"
            print(f"{resp.status} {resp.url} ({source}, {len(resp.body)} bytes)")
        return 0

    print(f"Installing {args.cache_name} into {args.cache_dir}...")
    try:
        installed = cache.install()
    except InstallError as e:
        print(f"Install failed: {e}")
        return 2

    for url in installed.keys():
        print(f"Cached: {url}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
