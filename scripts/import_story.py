# scripts/import_story.py
"""Import an exported story snapshot (YAML or JSON) under fresh ids."""

from __future__ import annotations

import argparse
import asyncio

from petstory.canon.db import dispose_engine, ensure_schema
from petstory.core.logging import get_logger, init_logging
from petstory.engine.consistency import import_snapshot_file

logger = get_logger(__name__)


async def main(path: str, create_schema: bool) -> None:
    try:
        if create_schema:
            await ensure_schema()
        plot_id = await import_snapshot_file(path)
        logger.info("Imported %s as plot %s", path, plot_id)
    finally:
        await dispose_engine()


if __name__ == "__main__":  # pragma: no cover - CLI execution
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("path", help="snapshot file produced by the export endpoint")
    parser.add_argument("--create-schema", action="store_true")
    args = parser.parse_args()
    init_logging()
    asyncio.run(main(args.path, args.create_schema))
