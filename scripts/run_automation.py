"""Runs the confirmed -> processing automation once (schedule it from cron)."""
import logging
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from order_lifecycle.config import settings  # noqa: E402
from order_lifecycle.database import db  # noqa: E402
from order_lifecycle.services.notifications import notifier  # noqa: E402
from order_lifecycle.services.order_status import OrderStatusService  # noqa: E402

logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

service = OrderStatusService(db, notifier=notifier)
result = service.process_automated_status_updates()
notifier.shutdown(wait=True)

print(f"Processed {len(result['processed'])} orders, {len(result['errors'])} errors")
for err in result["errors"]:
    print(f"  {err['order_id']}: {err['error']}")
sys.exit(1 if result["errors"] else 0)
