# jobs/payment_reconcile_job.py

import traceback

from core.config import settings
from core.logging_config import logger
from core.notifications import send_webhook_message
from core.supabase_client import get_supabase_client
from dependencies.services import build_grant_access_engine


def run_payment_reconcile(engine=None) -> dict:
    """
    Re-drive payment intents whose webhook never arrived.
    Runs from the scheduler, or standalone as a cron job.
    """
    try:
        if engine is None:
            client = get_supabase_client()
            if not client:
                raise RuntimeError("Supabase not configured")
            engine = build_grant_access_engine(client)

        return engine.sweep_stale_intents(settings.PAYMENT_RECONCILE_STALE_MINUTES)

    except Exception as e:
        logger.error(f"Payment reconcile sweep failed: {e}", exc_info=True)
        send_webhook_message(f"Payment reconcile sweep failed: {e}\n\n{traceback.format_exc()}")
        return {"error": 1}


if __name__ == "__main__":
    run_payment_reconcile()
