"""Demonstration entry point: drain a burst of submissions."""

import asyncio
import random
from typing import Sequence

import structlog

from batchwise.config.settings import get_settings
from batchwise.factory import batch_queue_lifespan
from batchwise.logging.setup import setup_logging

logger = structlog.get_logger()

PROTEIN_GRAMS_PER_KG = 1.6


async def protein_targets(weights_kg: list[float]) -> Sequence[float]:
    """Batch executor with a flaky backend in front of a trivial formula."""
    await asyncio.sleep(0.01)
    if random.random() < 0.3:
        raise ConnectionError("calculation backend unavailable")
    return [round(w * PROTEIN_GRAMS_PER_KG, 1) for w in weights_kg]


async def run_demo(count: int = 25) -> None:
    async with batch_queue_lifespan(protein_targets) as queue:
        futures = [queue.submit(60.0 + i) for i in range(count)]
        results = await asyncio.gather(*futures, return_exceptions=True)

    failed = sum(isinstance(r, Exception) for r in results)
    logger.info("demo_complete", submitted=count, failed=failed)


def main() -> None:
    """Run the demonstration."""
    settings = get_settings()

    json_format = not settings.is_development
    setup_logging(
        log_level=settings.log_level,
        json_format=json_format,
        component_levels=settings.app.logging.component_levels,
    )

    asyncio.run(run_demo())


if __name__ == "__main__":
    main()
