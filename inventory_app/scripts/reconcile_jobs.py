"""
Retries WFM synchronization for jobs still pending.

    python -m inventory_app.scripts.reconcile_jobs [--limit 50]

Meant to run on a schedule. A job that already exists in WFM (matched by
ClientOrderNumber) is adopted rather than created again.
"""
import argparse
import asyncio
import logging

from inventory_app.core.db import close_db, init_db
from inventory_app.core.errors import ExternalSyncError
from inventory_app.core.log import configure_logging
from inventory_app.integrations.config_provider import SsmConfigProvider
from inventory_app.integrations.wfm_client import WfmClient
from inventory_app.services.job_service import reconcile_pending_jobs
from inventory_app.store import KeyedStore

log = logging.getLogger(__name__)


async def main(limit: int) -> int:
    configure_logging()
    await init_db(generate_schemas=False)
    provider = SsmConfigProvider()
    wfm = WfmClient(provider)
    try:
        summary = await reconcile_pending_jobs(KeyedStore(), wfm, provider, limit=limit)
    except ExternalSyncError as exc:
        log.error(f"Reconciliation aborted, WFM not usable: {exc.code}: {exc.message}")
        return 1
    finally:
        await wfm.aclose()
        await close_db()
    return 0 if summary["still_pending"] == 0 else 2


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Sync pending jobs with WorkflowMax")
    parser.add_argument("--limit", type=int, default=50, help="Maximum pending jobs to process")
    args = parser.parse_args()
    raise SystemExit(asyncio.run(main(args.limit)))
