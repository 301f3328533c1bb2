"""
Celery tasks for Meetspace.
Ticket and payment emails, plus the ticket reconciliation sweep.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from ..db.database import db_manager
from ..db.repositories import OrderRepository
from ..core.config import config
from ..services.order_service import order_service
from .celery_app import celery_app
from .email import email_service
from .logging import log_email_result, log_task_error, log_task_start, log_task_success

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 60
RECONCILE_BATCH_SIZE = 100


def _ensure_database():
    if not db_manager._initialized:
        db_manager.initialize_sync(
            asyncio.run(config.get_database_url()),
            asyncio.run(config.get_database_config())
        )


def render_ticket_confirmation(order_data: Dict[str, Any]) -> Dict[str, str]:
    """Subject, HTML and text bodies for a confirmation email."""
    event_title = order_data.get("event_title", "Event")
    first_name = order_data.get("first_name") or "there"
    ticket_ids = order_data.get("ticket_ids") or []
    amount = order_data.get("amount", 0)
    currency = order_data.get("currency", "")

    if order_data.get("is_virtual"):
        access_line = (
            f"Join online: {order_data['meeting_link']}"
            if order_data.get("meeting_link")
            else "The meeting link will be available on the event page."
        )
    else:
        access_line = f"Your ticket IDs: {', '.join(ticket_ids)}" if ticket_ids else "Your tickets are on the way."

    price_line = "Free" if not amount else f"{amount} {currency}"

    subject = f"You're registered - {event_title}"
    html_content = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #2c3e50;">Registration Confirmed!</h2>
            <p>Hello {first_name},</p>
            <p>Your registration for <strong>{event_title}</strong> is confirmed.</p>
            <div style="background-color: #f8f9fa; padding: 20px; border-radius: 5px; margin: 20px 0;">
                <p><strong>Order:</strong> {order_data.get('order_id')}</p>
                <p><strong>Date:</strong> {order_data.get('event_date') or 'TBA'}</p>
                <p><strong>Price:</strong> {price_line}</p>
                <p>{access_line}</p>
            </div>
            <p>See you there!<br>The Meetspace Team</p>
        </div>
    </body>
    </html>
    """
    text_content = (
        f"Registration Confirmed!\n\n"
        f"Hello {first_name},\n\n"
        f"Your registration for {event_title} is confirmed.\n"
        f"Order: {order_data.get('order_id')}\n"
        f"Date: {order_data.get('event_date') or 'TBA'}\n"
        f"Price: {price_line}\n"
        f"{access_line}\n\n"
        f"See you there!\nThe Meetspace Team\n"
    )
    return {"subject": subject, "html_content": html_content, "text_content": text_content}


def render_payment_failed(order_data: Dict[str, Any]) -> Dict[str, str]:
    event_title = order_data.get("event_title", "Event")
    subject = f"Payment not completed - {event_title}"
    html_content = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #e74c3c;">Payment Not Completed</h2>
            <p>Hello {order_data.get('first_name') or 'there'},</p>
            <p>We could not confirm your payment for <strong>{event_title}</strong>
            (order {order_data.get('order_id')}). No tickets were issued and you have not been charged
            by Meetspace. You can try again from the event page.</p>
            <p>The Meetspace Team</p>
        </div>
    </body>
    </html>
    """
    text_content = (
        f"Payment Not Completed\n\n"
        f"We could not confirm your payment for {event_title} (order {order_data.get('order_id')}).\n"
        f"No tickets were issued. You can try again from the event page.\n"
    )
    return {"subject": subject, "html_content": html_content, "text_content": text_content}


def _send(task, task_name: str, order_data: Dict[str, Any], rendered: Dict[str, str]) -> Dict[str, Any]:
    to_email = order_data.get("email")
    if not to_email:
        logger.error(f"{task_name}: order {order_data.get('order_id')} has no email address")
        return {
            "success": False,
            "error": "Recipient email missing",
            "order_id": order_data.get("order_id"),
            "timestamp": datetime.now().isoformat(),
        }

    sent = email_service.send_email(to_email=to_email, **rendered)
    log_email_result(to_email, rendered["subject"], task_name, sent)

    if not sent and task.request.retries < MAX_RETRIES:
        logger.info(f"Retrying {task_name} (attempt {task.request.retries + 1}/{MAX_RETRIES})")
        raise task.retry(countdown=RETRY_DELAY_SECONDS)

    return {
        "success": sent,
        "order_id": order_data.get("order_id"),
        "email": to_email,
        "timestamp": datetime.now().isoformat(),
    }


@celery_app.task(bind=True, name="meetspace.workers.tasks.send_ticket_confirmation")
def send_ticket_confirmation(self, order_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Send the registration/ticket confirmation email.

    Args:
        order_data: Order summary (email, names, event details, ticket ids)

    Returns:
        Task result dictionary
    """
    task_name = "meetspace.workers.tasks.send_ticket_confirmation"
    log_task_start(task_name, self.request.id, order_id=order_data.get("order_id"))
    result = _send(self, task_name, order_data, render_ticket_confirmation(order_data))
    log_task_success(task_name, self.request.id, result)
    return result


@celery_app.task(bind=True, name="meetspace.workers.tasks.send_payment_failed")
def send_payment_failed(self, order_data: Dict[str, Any]) -> Dict[str, Any]:
    task_name = "meetspace.workers.tasks.send_payment_failed"
    log_task_start(task_name, self.request.id, order_id=order_data.get("order_id"))
    result = _send(self, task_name, order_data, render_payment_failed(order_data))
    log_task_success(task_name, self.request.id, result)
    return result


@celery_app.task(bind=True, name="meetspace.workers.tasks.reconcile_missing_tickets")
def reconcile_missing_tickets(self, order_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Issue tickets that COMPLETED paid orders are missing.

    Runs for a single order when ``order_id`` is given (queued after a failed
    ticket insert), otherwise sweeps a batch of affected orders.
    """
    task_name = "meetspace.workers.tasks.reconcile_missing_tickets"
    log_task_start(task_name, self.request.id, order_id=order_id)

    try:
        _ensure_database()
        orders_checked = 0
        tickets_created = 0

        with db_manager.get_session() as session:
            repository = OrderRepository(session)
            if order_id is not None:
                order = repository.get_by_id(order_id)
                candidates = [order] if order is not None else []
            else:
                candidates = repository.find_completed_with_missing_tickets(RECONCILE_BATCH_SIZE)

            for order in candidates:
                orders_checked += 1
                tickets_created += order_service.backfill_missing_tickets(session, order)

        result = {
            "success": True,
            "orders_checked": orders_checked,
            "tickets_created": tickets_created,
            "timestamp": datetime.now().isoformat(),
        }
        log_task_success(task_name, self.request.id, result)
        return result

    except Exception as e:
        log_task_error(task_name, self.request.id, str(e), self.request.retries)
        if self.request.retries < MAX_RETRIES:
            raise self.retry(countdown=RETRY_DELAY_SECONDS, exc=e)
        return {
            "success": False,
            "error": str(e),
            "order_id": order_id,
            "timestamp": datetime.now().isoformat(),
        }
