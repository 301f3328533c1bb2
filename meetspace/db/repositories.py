"""
Repositories for Meetspace models.
Each repository wraps a request-scoped session; callers own the transaction.
"""

from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from ..models.base import utcnow
from ..models.event import Event, EventAccessGrant, EventLike, TicketTier
from ..models.order import Order, OrderLineItem, OrderStatus, OrderPaymentStatus, OrderType, Ticket
from ..models.payment import Payment, PaymentState, FailedPaymentInitialization
from ..models.subscription import Subscription, SubscriptionPlan, SubscriptionStatus


class EventRepository:
    """
    Repository for Event model operations.
    """

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        event_data: dict,
        restricted_to: Iterable[str] = (),
        ticket_tiers: Iterable[dict] = ()
    ) -> Event:
        event = Event(**event_data)
        event.access_grants = [EventAccessGrant(email=email) for email in restricted_to]
        event.ticket_tiers = [TicketTier(**tier) for tier in ticket_tiers]
        self.session.add(event)
        self.session.flush()
        return event

    def get_by_id(self, event_id: int) -> Optional[Event]:
        return self.session.query(Event).filter(Event.id == event_id).first()

    def get_many(self, event_ids: List[int]) -> List[Event]:
        if not event_ids:
            return []
        return self.session.query(Event).filter(Event.id.in_(event_ids)).all()

    def update(self, event: Event, event_data: dict) -> Event:
        for key, value in event_data.items():
            if hasattr(event, key):
                setattr(event, key, value)
        self.session.flush()
        return event

    def replace_access_grants(self, event: Event, restricted_to: Iterable[str]):
        event.access_grants = [EventAccessGrant(email=email) for email in restricted_to]
        self.session.flush()

    def replace_ticket_tiers(self, event: Event, ticket_tiers: Iterable[dict]):
        event.ticket_tiers = [TicketTier(**tier) for tier in ticket_tiers]
        self.session.flush()

    def delete(self, event: Event):
        self.session.delete(event)
        self.session.flush()

    def count_by_organizer(self, organizer_id: int) -> int:
        return self.session.query(Event).filter(Event.organizer_id == organizer_id).count()

    def list(
        self,
        predicates: List[Any],
        order_by: List[Any],
        skip: int = 0,
        limit: int = 12
    ) -> Tuple[List[Event], int]:
        """Apply predicates, return one page and the total match count."""
        query = self.session.query(Event)
        for predicate in predicates:
            query = query.filter(predicate)
        total = query.count()
        items = query.order_by(*order_by).offset(skip).limit(limit).all()
        return items, total

    def increment_counter(self, event_id: int, column: str, amount: int = 1) -> int:
        """Atomic counter update; returns the number of rows changed."""
        counter = getattr(Event, column)
        result = self.session.execute(
            update(Event)
            .where(Event.id == event_id)
            .values({counter: counter + amount})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def get_like(self, event_id: int, user_id: int) -> Optional[EventLike]:
        return self.session.query(EventLike).filter(
            EventLike.event_id == event_id,
            EventLike.user_id == user_id
        ).first()

    def add_like(self, event_id: int, user_id: int) -> EventLike:
        like = EventLike(event_id=event_id, user_id=user_id)
        self.session.add(like)
        self.session.flush()
        return like

    def remove_like(self, like: EventLike):
        self.session.delete(like)
        self.session.flush()


class OrderRepository:
    """
    Repository for orders and the tickets they own.
    """

    def __init__(self, session: Session):
        self.session = session

    def create(self, order: Order) -> Order:
        self.session.add(order)
        self.session.flush()
        return order

    def get_by_id(self, order_id: int) -> Optional[Order]:
        return self.session.query(Order).filter(Order.id == order_id).first()

    def find_completed(self, event_id: int, user_id: int) -> Optional[Order]:
        return self.session.query(Order).filter(
            Order.event_id == event_id,
            Order.user_id == user_id,
            Order.status == OrderStatus.COMPLETED.value
        ).order_by(Order.created_at.desc()).first()

    def count_completed_for_event(self, event_id: int) -> int:
        return self.session.query(Order).filter(
            Order.event_id == event_id,
            Order.status == OrderStatus.COMPLETED.value
        ).count()

    def delete_for_event(self, event_id: int) -> int:
        """
        Remove every order of an event together with its line items and
        tickets. Payment rows stay for the audit trail, detached from the
        order they paid for.

        Returns:
            Number of orders deleted
        """
        orders = self.session.query(Order).filter(Order.event_id == event_id).all()
        if not orders:
            return 0

        order_ids = [order.id for order in orders]
        for payment in self.session.query(Payment).filter(Payment.order_id.in_(order_ids)):
            payment.order_id = None
        self.session.flush()

        for order in orders:
            self.session.delete(order)
        self.session.flush()
        return len(orders)

    def mark_completed_if_pending(self, order_id: int, tx_ref: str) -> int:
        """
        Conditional transition pending_payment -> COMPLETED.
        Returns the number of rows updated (0 or 1).
        """
        now = utcnow()
        result = self.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == OrderStatus.PENDING_PAYMENT.value)
            .values(
                status=OrderStatus.COMPLETED.value,
                payment_status=OrderPaymentStatus.PAID.value,
                chapa_tx_ref=tx_ref,
                paid_at=now,
                updated_at=now
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def mark_failed_if_pending(self, order_id: int, reason: str) -> int:
        result = self.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == OrderStatus.PENDING_PAYMENT.value)
            .values(
                status=OrderStatus.PAYMENT_FAILED.value,
                payment_status=OrderPaymentStatus.FAILED.value,
                failure_reason=reason,
                updated_at=utcnow()
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def get_tickets(self, order_id: int) -> List[Ticket]:
        return self.session.query(Ticket).filter(
            Ticket.order_id == order_id
        ).order_by(Ticket.created_at).all()

    def count_tickets(self, order_id: int) -> int:
        return self.session.query(Ticket).filter(Ticket.order_id == order_id).count()

    def add_tickets(self, tickets: List[Ticket]) -> List[Ticket]:
        self.session.add_all(tickets)
        self.session.flush()
        return tickets

    def find_completed_with_missing_tickets(self, limit: int = 100) -> List[Order]:
        """
        COMPLETED paid orders whose issued tickets are fewer than purchased
        units. Virtual RSVP orders carry no tickets and are not candidates.
        """
        purchased = (
            self.session.query(
                OrderLineItem.order_id.label("order_id"),
                func.sum(OrderLineItem.quantity).label("units")
            )
            .group_by(OrderLineItem.order_id)
            .subquery()
        )
        issued = (
            self.session.query(
                Ticket.order_id.label("order_id"),
                func.count(Ticket.id).label("issued")
            )
            .group_by(Ticket.order_id)
            .subquery()
        )
        return (
            self.session.query(Order)
            .join(purchased, purchased.c.order_id == Order.id)
            .outerjoin(issued, issued.c.order_id == Order.id)
            .filter(
                Order.status == OrderStatus.COMPLETED.value,
                Order.order_type == OrderType.PAID_EVENT.value,
                func.coalesce(issued.c.issued, 0) < purchased.c.units
            )
            .order_by(Order.id)
            .limit(limit)
            .all()
        )


class PaymentRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, payment: Payment) -> Payment:
        self.session.add(payment)
        self.session.flush()
        return payment

    def get_by_tx_ref(self, tx_ref: str) -> Optional[Payment]:
        return self.session.query(Payment).filter(Payment.tx_ref == tx_ref).first()

    def exists(self, tx_ref: str) -> bool:
        return self.session.query(Payment.id).filter(Payment.tx_ref == tx_ref).first() is not None

    def find_successful_for_email(self, event_id: int, email: str) -> Optional[Payment]:
        return self.session.query(Payment).filter(
            Payment.event_id == event_id,
            func.lower(Payment.email) == email.lower(),
            Payment.status == PaymentState.SUCCESS.value
        ).first()

    def record_failed_initialization(
        self,
        request_id: str,
        error: str,
        tx_ref: Optional[str] = None
    ) -> FailedPaymentInitialization:
        record = FailedPaymentInitialization(request_id=request_id, error=error, tx_ref=tx_ref)
        self.session.add(record)
        self.session.flush()
        return record


class SubscriptionRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_current(self, user_id: int, now: Optional[datetime] = None) -> Optional[Subscription]:
        """Latest active subscription that has not ended."""
        now = now or utcnow()
        return self.session.query(Subscription).filter(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.end_date > now
        ).order_by(Subscription.created_at.desc(), Subscription.id.desc()).first()

    def get_history(self, user_id: int) -> List[Subscription]:
        return self.session.query(Subscription).filter(
            Subscription.user_id == user_id
        ).order_by(Subscription.created_at.desc()).all()

    def get_plan_by_name(self, name: str) -> Optional[SubscriptionPlan]:
        return self.session.query(SubscriptionPlan).filter(SubscriptionPlan.name == name).first()

    def list_plans(self) -> List[SubscriptionPlan]:
        return self.session.query(SubscriptionPlan).order_by(SubscriptionPlan.price).all()
