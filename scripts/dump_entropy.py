#!/usr/bin/env python3
"""Script to page through the entropy data of a Solr core."""

import argparse
import asyncio
import base64
import sys
from typing import Optional

import structlog

from libs.common.config import SolrConfig, get_config
from libs.common.logging import configure_logging
from libs.solr.client import SolrClient
from libs.solr.entropy import EntropyPager
from libs.solr.errors import SolrError

logger = structlog.get_logger("dump_entropy")


def format_pair(pair) -> str:
    key, digest = pair
    return f"{key!r} {base64.b64encode(digest).decode('ascii')}"


async def dump_entropy(
    core: str,
    partition: Optional[int] = None,
    limit: Optional[int] = None,
    before: Optional[str] = None,
    config: Optional[SolrConfig] = None
) -> int:
    """Print every entropy pair of ``core`` and return how many there were."""
    if not config:
        config = SolrConfig()

    total = 0
    async with SolrClient.from_config(config) as client:
        pager = EntropyPager(client, core, before=before, limit=limit, partition=partition)
        while not pager.exhausted:
            page = await pager.fetch_page()
            for pair in page.pairs:
                print(format_pair(pair))
            total += len(page.pairs)
            logger.info(
                "Entropy page fetched",
                core=core,
                page=pager.pages_fetched,
                entries=len(page.pairs),
                more=page.more
            )

    return total


def main():
    """Main function for CLI."""
    parser = argparse.ArgumentParser(description="Dump entropy data of a Solr core")
    parser.add_argument("--core", required=True, help="Core (index) name")
    parser.add_argument("--partition", type=int, help="Only this logical partition")
    parser.add_argument("--limit", type=int, default=1000, help="Entries per page")
    parser.add_argument("--before", help="ISO-8601 timestamp upper bound")

    args = parser.parse_args()

    config = get_config("solr")
    # stdout carries the pairs
    configure_logging("dump_entropy", config.yz_log_level, "console", stream=sys.stderr)

    try:
        total = asyncio.run(dump_entropy(
            core=args.core,
            partition=args.partition,
            limit=args.limit,
            before=args.before,
            config=config
        ))
    except SolrError as e:
        logger.error("Entropy dump failed", core=args.core, operation=e.operation, error=str(e))
        sys.exit(1)

    logger.info("Entropy dump completed", core=args.core, total=total)


if __name__ == "__main__":
    main()
