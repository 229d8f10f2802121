"""Keeps payment rows in step with booking transitions."""

import logging
from typing import Protocol

import stripe
from sqlalchemy.orm import Session

from backend.core import config
from backend.core.exceptions import (
    ConflictException,
    NotFoundException,
    UpstreamPaymentException,
    ValidationException,
)
from backend.database import transaction
from backend.models.payment import (
    METHOD_STRIPE,
    PAYMENT_PAID,
    PAYMENT_REFUNDED,
    PAYMENT_STATUSES,
    Payment,
)
from backend.services import pack_ledger

logger = logging.getLogger(__name__)


class RefundProvider(Protocol):
    def refund(self, payment: Payment, provider_ref: str) -> None: ...

    def lookup_payment_intent(self, session_id: str) -> str | None: ...


class NullRefundProvider:
    """Used when no payment provider is configured."""

    def refund(self, payment: Payment, provider_ref: str) -> None:
        logger.info('No refund provider configured, skipping provider refund for payment %s', payment.id)

    def lookup_payment_intent(self, session_id: str) -> str | None:
        return None


class StripeRefundProvider:
    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    def refund(self, payment: Payment, provider_ref: str) -> None:
        # Keyed per payment so a retried transition gets the same refund back.
        try:
            stripe.Refund.create(
                payment_intent=provider_ref,
                reason='requested_by_customer',
                metadata={'bookingRefund': 'true', 'paymentId': str(payment.id)},
                api_key=self.api_key,
                idempotency_key=refund_idempotency_key(payment.id),
            )
        except stripe.StripeError as exc:
            logger.exception('Stripe refund failed for payment %s', payment.id)
            raise UpstreamPaymentException(
                'Refund could not be issued by the payment provider.',
                code='RefundFailed',
                details={'payment_id': payment.id},
            ) from exc

    def lookup_payment_intent(self, session_id: str) -> str | None:
        """Payment intent behind a checkout session, or None if Stripe cannot tell."""
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.StripeError:
            logger.warning('Could not retrieve checkout session %s', session_id, exc_info=True)
            return None

        intent = getattr(session, 'payment_intent', None)
        if isinstance(intent, str):
            return intent or None
        return getattr(intent, 'id', None)


def refund_idempotency_key(payment_id: int) -> str:
    return f'booking-refund:{payment_id}'


def build_refund_provider() -> RefundProvider:
    if config.STRIPE_SECRET_KEY:
        return StripeRefundProvider(config.STRIPE_SECRET_KEY)
    return NullRefundProvider()


class PaymentBridge(Protocol):
    def mark_paid(self, payment_id: int) -> Payment | None: ...

    def refund(self, payment_id: int, reason: str | None = None) -> Payment | None: ...


class DatabasePaymentBridge:
    """Payment bridge writing through the caller's session.

    Both operations are no-ops when the payment already sits in the target
    state, and neither commits.
    """

    def __init__(self, db: Session, refund_provider: RefundProvider | None = None) -> None:
        self.db = db
        self.refund_provider = refund_provider or build_refund_provider()

    def mark_paid(self, payment_id: int) -> Payment | None:
        payment = self.db.query(Payment).filter(Payment.id == payment_id).first()
        if payment is None:
            return None
        if payment.status in (PAYMENT_PAID, PAYMENT_REFUNDED):
            return payment

        payment.status = PAYMENT_PAID
        self.db.flush()
        pack_ledger.activate_from_payment(self.db, payment.id)
        logger.info('Marked payment %s as paid', payment.id)
        return payment

    def refund(self, payment_id: int, reason: str | None = None) -> Payment | None:
        payment = self.db.query(Payment).filter(Payment.id == payment_id).first()
        if payment is None:
            return None
        if payment.status == PAYMENT_REFUNDED:
            return payment

        # Only money actually captured by the provider goes back through it.
        if payment.method == METHOD_STRIPE and payment.status == PAYMENT_PAID:
            provider_ref = self._resolve_provider_ref(payment)
            if not provider_ref:
                raise ConflictException(
                    'Payment has no provider reference to refund.',
                    code='PaymentReferenceMissing',
                    details={'payment_id': payment.id},
                )
            self.refund_provider.refund(payment, provider_ref)

        payment.status = PAYMENT_REFUNDED
        if reason:
            payment.notes = f'{reason} • {payment.notes}' if payment.notes else reason
        self.db.flush()
        logger.info('Refunded payment %s', payment.id)
        return payment

    def _resolve_provider_ref(self, payment: Payment) -> str | None:
        """Stored reference, then metadata intent, then the checkout session."""
        if payment.provider_ref:
            return payment.provider_ref

        metadata = pack_ledger.read_payment_metadata(payment.metadata_json)
        intent = metadata.get('paymentIntent')
        if isinstance(intent, str) and intent:
            return intent

        session_id = metadata.get('sessionId')
        if not isinstance(session_id, str) or not session_id:
            return None
        intent = self.refund_provider.lookup_payment_intent(session_id)
        if intent:
            payment.provider_ref = intent
        return intent


def update_payment_status(db: Session, payment_id: int, status: str, notes: str | None = None) -> Payment:
    """Coach-side payment status change; activates the pack once paid."""
    normalized = (status or '').strip().upper()
    if normalized not in PAYMENT_STATUSES:
        raise ValidationException('Invalid payment status.', details={'status': status})

    with transaction(db):
        payment = db.query(Payment).filter(Payment.id == payment_id).with_for_update().first()
        if payment is None:
            raise NotFoundException('Payment not found.', code='PaymentInvalid', details={'payment_id': payment_id})

        if notes:
            payment.notes = f'{payment.notes}\n{notes}' if payment.notes else notes
        payment.status = normalized
        db.flush()

        if normalized == PAYMENT_PAID:
            pack_ledger.activate_from_payment(db, payment.id)

    db.refresh(payment)
    logger.info('Payment %s moved to %s', payment.id, normalized)
    return payment

