"""Quote and sales-order state machine.

Quotes: draft -> sent -> accepted (then converted into a sales order), with
draft/sent -> expired when ``valid_until`` passes and -> rejected by the user.
Orders: Pending -> Processing -> Dispatched -> Delivered, cancellable until
delivery.
"""

from bizabode_automation.domain.enums import OrderStatus, QuoteStatus


class InvalidTransitionError(Exception):
    """Raised when a quote or order state transition is not allowed."""

    def __init__(self, current_status, target_status, reason: str):
        self.current_status = current_status
        self.target_status = target_status
        self.reason = reason
        super().__init__(
            f"Invalid transition from {current_status.value} to {target_status.value}: {reason}"
        )


Q = QuoteStatus
O = OrderStatus  # noqa: E741

QUOTE_TRANSITIONS: dict[QuoteStatus, set[QuoteStatus]] = {
    Q.DRAFT: {Q.SENT, Q.ACCEPTED, Q.REJECTED, Q.EXPIRED},
    Q.SENT: {Q.ACCEPTED, Q.REJECTED, Q.EXPIRED},
    Q.ACCEPTED: set(),
}

ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    O.PENDING: {O.PROCESSING, O.DISPATCHED, O.CANCELLED},
    O.PROCESSING: {O.DISPATCHED, O.CANCELLED},
    O.DISPATCHED: {O.DELIVERED, O.CANCELLED},
}

TERMINAL_QUOTE_STATES: set[QuoteStatus] = {Q.ACCEPTED, Q.REJECTED, Q.EXPIRED}
TERMINAL_ORDER_STATES: set[OrderStatus] = {O.DELIVERED, O.CANCELLED}

# Quotes past valid_until in these states are expired by the workflow job
EXPIRABLE_QUOTE_STATES: tuple[str, ...] = (Q.DRAFT.value, Q.SENT.value)


class WorkflowStateMachine:
    """Validates quote and order transitions."""

    def validate_quote_transition(self, current_status: QuoteStatus, target_status: QuoteStatus) -> bool:
        """Return True if allowed, raise InvalidTransitionError otherwise.

        ``accepted`` is terminal for the quote itself; conversion creates a
        sales order and leaves the quote unchanged.
        """
        current_status = QuoteStatus(current_status)
        target_status = QuoteStatus(target_status)
        if current_status in TERMINAL_QUOTE_STATES:
            raise InvalidTransitionError(current_status, target_status, "quote is in a terminal state")
        if target_status not in QUOTE_TRANSITIONS.get(current_status, set()):
            raise InvalidTransitionError(current_status, target_status, "transition not in quote lifecycle")
        return True

    def validate_order_transition(self, current_status: OrderStatus, target_status: OrderStatus) -> bool:
        """Return True if allowed, raise InvalidTransitionError otherwise."""
        current_status = OrderStatus(current_status)
        target_status = OrderStatus(target_status)
        if current_status in TERMINAL_ORDER_STATES:
            raise InvalidTransitionError(current_status, target_status, "order is in a terminal state")
        if target_status not in ORDER_TRANSITIONS.get(current_status, set()):
            raise InvalidTransitionError(current_status, target_status, "transition not in order lifecycle")
        return True

    def can_transition_quote(self, current_status: QuoteStatus, target_status: QuoteStatus) -> bool:
        try:
            return self.validate_quote_transition(current_status, target_status)
        except InvalidTransitionError:
            return False

    def can_transition_order(self, current_status: OrderStatus, target_status: OrderStatus) -> bool:
        try:
            return self.validate_order_transition(current_status, target_status)
        except InvalidTransitionError:
            return False
