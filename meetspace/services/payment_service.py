"""
Payment Service for Meetspace.
Drives the order -> payment -> ticket flow around the Chapa gateway.

Payment states: initiated -> pending -> success | failed | verification_failed
Order states:   pending_payment -> COMPLETED | payment_failed

Only the provider's verification endpoint can complete an order. The order
transition is a conditional UPDATE on ``status = 'pending_payment'`` so a
repeated callback never issues tickets twice.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from ..core.config import config
from ..core.exceptions import (
    ConflictError, MeetspaceError, PermissionDenied, ProviderError,
    ResourceNotFound, ValidationFailed
)
from ..core.validators import is_valid_email, is_valid_url
from ..db.repositories import EventRepository, OrderRepository, PaymentRepository
from ..models.base import utcnow
from ..models.order import (
    Order, OrderLineItem, OrderStatus, OrderPaymentStatus, OrderType
)
from ..models.payment import Payment, PaymentState
from .chapa_client import chapa_client
from .notification_service import notification_service
from .order_service import build_tickets, order_summary
from .visibility import can_view, viewer_id

logger = logging.getLogger(__name__)


@dataclass
class InitiationResult:
    order_id: int
    tx_ref: str
    checkout_url: Optional[str]
    provider_status: Optional[str]


@dataclass
class CallbackResult:
    redirect_url: str
    outcome: str
    order_id: Optional[int] = None
    tickets_issued: int = 0
    details: Dict[str, Any] = field(default_factory=dict)


class PaymentService:
    """
    Payment initiation, provider callback handling and status lookups.
    """

    def __init__(self, client=None):
        self.client = client or chapa_client

    def _generate_request_id(self) -> str:
        return str(uuid.uuid4())

    def _generate_tx_ref(self, order_id: int) -> str:
        return f"CHAPA-{order_id}-{int(time.time() * 1000)}"

    def _validate_initiation(self, payload: Dict[str, Any], supported_currencies: List[str]):
        if not is_valid_email(payload.get("email")):
            raise ValidationFailed("Invalid email address", code="INVALID_EMAIL")

        amount = payload.get("amount")
        if amount is None or float(amount) <= 0:
            raise ValidationFailed("Amount must be greater than zero", code="INVALID_AMOUNT")

        currency = payload.get("currency")
        if currency not in supported_currencies:
            raise ValidationFailed(
                f"Unsupported currency '{currency}'",
                code="UNSUPPORTED_CURRENCY",
                details={"supported": supported_currencies}
            )

        if not is_valid_url(payload.get("callback_url")):
            raise ValidationFailed("A valid callback_url is required", code="INVALID_CALLBACK_URL")

        if payload.get("return_url") and not is_valid_url(payload["return_url"]):
            raise ValidationFailed("return_url must be a valid URL", code="INVALID_RETURN_URL")

        tickets = payload.get("tickets") or []
        if not tickets:
            raise ValidationFailed("At least one ticket is required", code="MISSING_TICKETS")
        for ticket in tickets:
            if int(ticket.get("quantity", 0)) <= 0 or float(ticket.get("price", -1)) < 0:
                raise ValidationFailed(
                    "Each ticket needs a positive quantity and a non-negative price",
                    code="INVALID_TICKET",
                    details={"ticket": ticket}
                )

    async def initiate_payment(
        self,
        session: Session,
        payload: Dict[str, Any],
        user: Dict[str, Any],
        request_id: Optional[str] = None
    ) -> InitiationResult:
        """
        Create a pending order and payment and open a provider checkout.

        Args:
            session: Database session
            payload: Payment request (event_id, email, amount, currency,
                callback_url, return_url, tickets, names, phone, customization)
            user: Authenticated user payload
            request_id: Correlation id echoed in X-Request-ID

        Returns:
            InitiationResult with the checkout URL

        Raises:
            ValidationFailed: invalid payment data
            ResourceNotFound: unknown event
            ConflictError: tx_ref collision
            ProviderError: provider rejected or could not be reached
        """
        request_id = request_id or self._generate_request_id()
        payment_config = await config.get_payment_config()
        self._validate_initiation(payload, payment_config["supported_currencies"])

        event = EventRepository(session).get_by_id(payload["event_id"])
        if event is None:
            raise ResourceNotFound("Event not found", code="EVENT_NOT_FOUND")
        if not can_view(event, user):
            raise PermissionDenied("You do not have access to this event")

        user_id = viewer_id(user)
        name_parts = (user.get("name") or "").split(" ")
        first_name = payload.get("first_name") or name_parts[0] or "Guest"
        last_name = payload.get("last_name") or " ".join(name_parts[1:]) or "User"

        orders = OrderRepository(session)
        payments = PaymentRepository(session)

        order = Order(
            user_id=user_id,
            event_id=event.id,
            first_name=first_name,
            last_name=last_name,
            email=payload["email"],
            phone=payload.get("phone") or None,
            amount=payload["amount"],
            currency=payload["currency"],
            status=OrderStatus.PENDING_PAYMENT.value,
            payment_status=OrderPaymentStatus.UNPAID.value,
            order_type=OrderType.PAID_EVENT.value,
            payment_method="chapa",
        )
        order.line_items = [
            OrderLineItem(
                ticket_type_id=ticket.get("ticket_id"),
                name=ticket.get("name") or "General Admission",
                price=ticket["price"],
                quantity=int(ticket["quantity"]),
            )
            for ticket in payload["tickets"]
        ]
        orders.create(order)
        logger.info(f"[{request_id}] Created order {order.id} with status 'pending_payment'")

        tx_ref = self._generate_tx_ref(order.id)
        if payments.exists(tx_ref):
            logger.warning(f"[{request_id}] Duplicate tx_ref generated: {tx_ref}")
            raise ConflictError(
                "This transaction reference already exists, please try again.",
                code="DUPLICATE_TX_REF"
            )

        base_url = await config.get_base_url()
        return_url = payload.get("return_url") or f"{base_url}/payments/success?orderId={order.id}"
        customization = payload.get("customization") or {}
        metadata = {
            **(payload.get("metadata") or {}),
            "order_id": order.id,
            "event_id": event.id,
            "user_id": user_id,
        }

        payment = Payment(
            tx_ref=tx_ref,
            order_id=order.id,
            user_id=user_id,
            event_id=event.id,
            amount=payload["amount"],
            currency=payload["currency"],
            email=payload["email"],
            payment_metadata=metadata,
            request_id=request_id,
            callback_url=payload["callback_url"],
            return_url=return_url,
        )
        payment.record_status(PaymentState.INITIATED.value, "Payment initialization started")
        payments.create(payment)
        # Records must be visible before the checkout can call back
        session.commit()

        provider_payload = {
            "amount": str(payload["amount"]),
            "currency": payload["currency"],
            "email": payload["email"],
            "first_name": first_name,
            "last_name": last_name,
            "phone_number": payload.get("phone") or "",
            "tx_ref": tx_ref,
            "callback_url": payload["callback_url"],
            "return_url": return_url,
            "customization": {
                "title": customization.get("title") or "Event Ticket Payment",
                "description": customization.get("description") or f"Payment for order {order.id}",
            },
            "meta": metadata,
        }

        try:
            response = await self.client.initialize_transaction(provider_payload)
        except MeetspaceError as e:
            logger.error(f"[{request_id}] Payment initialization failed for {tx_ref}: {e.message}")
            payment.record_status(PaymentState.FAILED_INITIALIZATION.value, e.message)
            payment.failure_reason = e.message
            payments.record_failed_initialization(request_id, e.message, tx_ref)
            session.commit()
            raise

        checkout_url = (response.get("data") or {}).get("checkout_url")
        payment.checkout_url = checkout_url
        payment.record_status(PaymentState.PENDING.value, "Payment initialized with Chapa, user redirected.")
        session.commit()

        logger.info(f"[{request_id}] Payment initialized. Order ID: {order.id}, tx_ref: {tx_ref}")
        return InitiationResult(
            order_id=order.id,
            tx_ref=tx_ref,
            checkout_url=checkout_url,
            provider_status=response.get("status"),
        )

    def _redirect(self, base_url: str, path: str, params: Dict[str, Any]) -> str:
        query = urlencode({key: value for key, value in params.items() if value is not None})
        return f"{base_url}{path}?{query}"

    async def handle_callback(self, session: Session, tx_ref: Optional[str]) -> CallbackResult:
        """
        Process the provider callback for ``tx_ref``.

        Returns:
            CallbackResult whose redirect_url is the page to send the user to

        Raises:
            ValidationFailed: missing reference
            ConfigurationError: provider secret not configured
            ResourceNotFound: no payment with this reference
            ProviderError: verification call failed (payment marked
                verification_failed)
            ConflictError: order not in a state that can be completed
        """
        if not tx_ref:
            raise ValidationFailed("Missing transaction reference (trx_ref)", code="MISSING_TX_REF")

        await self.client.ensure_configured()
        base_url = await config.get_base_url()

        try:
            return await self._process_callback(session, tx_ref, base_url)
        except MeetspaceError:
            raise
        except Exception as e:
            logger.error(f"Unexpected error in payment callback for {tx_ref}: {e}", exc_info=True)
            session.rollback()
            return CallbackResult(
                redirect_url=self._redirect(base_url, "/payments/failure", {
                    "error": "An unexpected error occurred during payment processing.",
                    "tx_ref": tx_ref,
                }),
                outcome="error",
            )

    async def _process_callback(self, session: Session, tx_ref: str, base_url: str) -> CallbackResult:
        payments = PaymentRepository(session)
        orders = OrderRepository(session)

        payment = payments.get_by_tx_ref(tx_ref)
        if payment is None:
            raise ResourceNotFound("Payment not found", code="PAYMENT_NOT_FOUND")

        now = utcnow()
        try:
            verification = await self.client.verify_transaction(tx_ref)
        except ProviderError as e:
            payment.record_status(PaymentState.VERIFICATION_FAILED.value, e.message)
            payment.failure_reason = e.message
            payment.last_verified = now
            session.commit()
            raise ProviderError(
                "Payment verification with provider failed",
                code="VERIFICATION_FAILED",
                details={"tx_ref": tx_ref}
            )

        data = verification.get("data") or {}
        succeeded = verification.get("status") == "success" and data.get("status") == "success"

        payment.last_verified = now
        payment.verification_response = verification
        if succeeded:
            payment.amount_confirmed = str(data.get("amount"))
            payment.currency_confirmed = data.get("currency")
            payment.chapa_transaction_id = data.get("transaction_id") or data.get("reference")
            payment.payment_date = now
            payment.record_status(PaymentState.SUCCESS.value, f"Chapa verification: {data.get('status')}")
        else:
            payment.failure_reason = verification.get("message") or "Verification indicated failure or data mismatch"
            payment.record_status(PaymentState.FAILED.value, f"Chapa verification: {data.get('status') or 'N/A'}")
        session.commit()

        order_id = (payment.payment_metadata or {}).get("order_id")

        if not succeeded:
            return await self._fail_order(session, payment, order_id, base_url)

        if not order_id:
            logger.error(f"Payment {tx_ref} succeeded but metadata has no order_id: {payment.payment_metadata}")
            raise MeetspaceError("Order linking failed after successful payment.", code="ORDER_LINK_FAILED")

        order_id = int(order_id)
        updated = orders.mark_completed_if_pending(order_id, tx_ref)
        session.commit()

        if updated == 0:
            existing = orders.get_by_id(order_id)
            if existing is not None:
                session.refresh(existing)
            if existing is not None and existing.status == OrderStatus.COMPLETED.value:
                logger.info(f"Order {order_id} already completed, callback for {tx_ref} ignored")
                return CallbackResult(
                    redirect_url=self._redirect(base_url, "/payments/success", {
                        "orderId": order_id,
                        "tx_ref": tx_ref,
                        "status": "success",
                        "info": "already_processed",
                    }),
                    outcome="already_processed",
                    order_id=order_id,
                )
            logger.warning(f"Order {order_id} not pending for successful payment {tx_ref}")
            raise ConflictError(
                "Order update failed after successful payment. Please contact support.",
                code="ORDER_NOT_PENDING"
            )

        order = orders.get_by_id(order_id)
        session.refresh(order)
        event = order.event

        tickets = []
        try:
            tickets = orders.add_tickets(build_tickets(order, event))
            session.commit()
        except Exception as e:
            session.rollback()
            tickets = []
            logger.error(f"Failed to insert tickets for completed order {order_id}: {e}")
            await notification_service.schedule_ticket_reconciliation(order_id)

        try:
            await notification_service.send_ticket_confirmation(order_summary(order, event, tickets))
        except Exception as e:
            logger.error(f"Failed to queue confirmation for order {order_id}: {e}")

        logger.info(f"Order {order_id} completed via {tx_ref} with {len(tickets)} ticket(s)")

        if event is not None and event.is_virtual:
            url = self._redirect(base_url, "/payments/meeting", {
                "source": "payment_success",
                "eventId": order.event_id,
                "orderId": order_id,
            })
        elif (await config.get_payment_config())["direct_ticket_redirect"]:
            url = self._redirect(base_url, "/payments/ticket", {
                "orderId": order_id,
                "source": "payment_success",
            })
        else:
            url = self._redirect(base_url, "/payments/success", {
                "orderId": order_id,
                "tx_ref": tx_ref,
                "status": "success",
                "eventType": "location",
                "source": "payment_success",
            })

        return CallbackResult(
            redirect_url=url,
            outcome="completed",
            order_id=order_id,
            tickets_issued=len(tickets),
        )

    async def _fail_order(
        self,
        session: Session,
        payment: Payment,
        order_id: Optional[Any],
        base_url: str
    ) -> CallbackResult:
        orders = OrderRepository(session)
        reason = payment.failure_reason or "Payment was not successful with the provider."

        if order_id:
            changed = orders.mark_failed_if_pending(int(order_id), reason)
            session.commit()
            if changed:
                order = orders.get_by_id(int(order_id))
                try:
                    await notification_service.send_payment_failed(order_summary(order, order.event))
                except Exception as e:
                    logger.error(f"Failed to queue payment failure notice for order {order_id}: {e}")

        logger.info(f"Payment {payment.tx_ref} failed: {reason}")
        return CallbackResult(
            redirect_url=self._redirect(base_url, "/payments/failure", {
                "tx_ref": payment.tx_ref,
                "reason": reason,
                "orderId": order_id,
            }),
            outcome="failed",
            order_id=int(order_id) if order_id else None,
        )

    async def get_payment_status(self, session: Session, tx_ref: str, user: Dict[str, Any]) -> Dict[str, Any]:
        """
        Payment lookup for the payer. Non-final payments are re-verified;
        verification problems are reported in the payload.
        """
        payment = PaymentRepository(session).get_by_tx_ref(tx_ref)
        if payment is None:
            raise ResourceNotFound("Payment not found", code="PAYMENT_NOT_FOUND")
        if payment.user_id != viewer_id(user):
            raise PermissionDenied("You do not have permission to view this payment")

        if payment.status not in (PaymentState.INITIATED.value, PaymentState.PENDING.value):
            return {"payment": payment.to_dict(), "verified": True}

        try:
            verification = await self.client.verify_transaction(tx_ref)
        except MeetspaceError as e:
            logger.warning(f"Could not verify payment {tx_ref}: {e.message}")
            return {
                "payment": payment.to_dict(),
                "verified": False,
                "verification_error": "Could not verify payment status with provider",
            }

        data = verification.get("data") or {}
        provider_status = data.get("status")
        payment.last_verified = utcnow()
        payment.verification_response = verification
        payment.chapa_transaction_id = data.get("transaction_id") or payment.chapa_transaction_id
        payment.amount_confirmed = str(data["amount"]) if data.get("amount") is not None else payment.amount_confirmed
        payment.currency_confirmed = data.get("currency") or payment.currency_confirmed
        if provider_status == "success":
            payment.record_status(PaymentState.SUCCESS.value, "Verified on status lookup")
        elif provider_status == "failed":
            payment.record_status(PaymentState.FAILED.value, "Verified on status lookup")
        session.commit()

        return {"payment": payment.to_dict(), "verified": True}


# Global payment service instance
payment_service = PaymentService()
