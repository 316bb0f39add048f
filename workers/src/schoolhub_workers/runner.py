"""Worker runner entrypoint.

Usage:
  python -m schoolhub_workers.runner <component-name>
  COMPONENT=directory-access python -m schoolhub_workers.runner

The CLI argument takes precedence over the COMPONENT environment variable.
The worker polls the component's task queue until interrupted.
"""

import asyncio
import logging
import os
import sys

from schoolhub_shared.temporal_client import connect
from temporalio.worker import Worker

from schoolhub_workers.registry import COMPONENTS

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def resolve_component(argv: list[str]) -> str:
    """Component name from argv[1], falling back to COMPONENT."""
    if len(argv) >= 2:
        return argv[1]
    return os.environ.get("COMPONENT", "")


async def run_worker(component_name: str) -> None:
    """Start a Temporal worker for the specified component."""
    if component_name not in COMPONENTS:
        available = ", ".join(sorted(COMPONENTS.keys()))
        logger.error(f"Unknown component '{component_name}'. Available: {available}")
        sys.exit(1)

    config = COMPONENTS[component_name]
    client = await connect()

    logger.info(
        f"Starting worker for '{component_name}' on queue '{config.task_queue}' "
        f"({len(config.activities)} activities)"
    )

    worker = Worker(client, task_queue=config.task_queue, activities=config.activities)
    await worker.run()


def main() -> None:
    component_name = resolve_component(sys.argv)

    if not component_name:
        print("Usage: python -m schoolhub_workers.runner <component>")
        print("  or: COMPONENT=<component> python -m schoolhub_workers.runner")
        print(f"Components: {', '.join(sorted(COMPONENTS.keys()))}")
        sys.exit(1)

    asyncio.run(run_worker(component_name))


if __name__ == "__main__":
    main()
