from typing import Dict, FrozenSet

from fastapi import HTTPException

from storefront.models.order import OrderStatus

S = OrderStatus

# payment_pending only moves forward through payment confirmation
NORMAL_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    S.PAYMENT_PENDING: frozenset({S.CANCELLED}),
    S.PROCESSING: frozenset({S.SHIPPED, S.CANCELLED}),
    S.SHIPPED: frozenset({S.DELIVERED}),
    S.DELIVERED: frozenset(),
    S.CANCELLED: frozenset(),
}

# Extra moves an admin may force with is_critical, on top of the normal ones
CRITICAL_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    S.PAYMENT_PENDING: frozenset(),
    S.PROCESSING: frozenset({S.DELIVERED}),
    S.SHIPPED: frozenset({S.PROCESSING, S.CANCELLED}),
    S.DELIVERED: frozenset({S.PROCESSING, S.SHIPPED, S.CANCELLED}),
    S.CANCELLED: frozenset(),
}

def allowed_transitions(current: OrderStatus, is_critical: bool = False) -> FrozenSet[OrderStatus]:
    allowed = NORMAL_TRANSITIONS[current]
    if is_critical:
        allowed = allowed | CRITICAL_TRANSITIONS[current]
    return allowed

def ensure_transition(current: OrderStatus, target: OrderStatus, is_critical: bool = False) -> None:
    if current == target:
        raise HTTPException(status_code=400, detail=f"Order is already {target.value}")
    if target not in allowed_transitions(current, is_critical):
        hint = "" if is_critical or target not in allowed_transitions(current, True) else " without a critical override"
        raise HTTPException(
            status_code=400,
            detail=f"Cannot change order status from {current.value} to {target.value}{hint}"
        )
