from __future__ import annotations

import logging

from ..domain.repositories import ChargeResult, PaymentGateway, RefundResult

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Payment processing is not configured"


class UnconfiguredPaymentGateway(PaymentGateway):
    """
    Used when no processor is wired in. Every call fails cleanly so booking state changes
    still go through and the payment is left for manual reconciliation.
    """

    async def refund(
        self,
        charge_reference: str,
        amount_cents: int,
        *,
        metadata: dict[str, str] | None = None,
    ) -> RefundResult:
        logger.warning("refund of %s cents for %s skipped: %s", amount_cents, charge_reference, NOT_CONFIGURED)
        return RefundResult(succeeded=False, error=NOT_CONFIGURED)

    async def charge(
        self,
        customer_reference: str,
        payment_method_reference: str,
        amount_cents: int,
        *,
        metadata: dict[str, str] | None = None,
    ) -> ChargeResult:
        logger.warning("charge of %s cents for %s skipped: %s", amount_cents, customer_reference, NOT_CONFIGURED)
        return ChargeResult(succeeded=False, error=NOT_CONFIGURED)
