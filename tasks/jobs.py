"""
Job bodies for the periodic booking tasks.

Each job runs inside its own app context so it gets a fresh DB session,
and writes one audit row when it changed something.
"""
import logging

from models import db
from services.expiry import run_expiry_sweep
from services.reconciler import run_status_reconciliation
from utils.audit import log_event

logger = logging.getLogger(__name__)


def expire_reservations(app, clock):
    with app.app_context():
        summary = run_expiry_sweep(db.session, clock)
        if summary["expired"] or summary["failed"]:
            log_event("EXPIRY_SWEEP_RUN", entity="reservation", metadata=summary)
        return summary


def reconcile_offerings(app, clock):
    with app.app_context():
        summary = run_status_reconciliation(db.session, clock)
        if summary["changed"] or summary["failed"]:
            log_event("STATUS_RECONCILE_RUN", entity="offering", metadata=summary)
        return summary
