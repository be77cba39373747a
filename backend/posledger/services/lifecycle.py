# Overview: State machines for purchase orders and count sessions.

"""
Document lifecycles

STATE MACHINES:
    PurchaseOrder:     pending -> received   (terminal)
                       pending -> cancelled  (terminal)

    InventorySession:  in_progress -> completed -> reconciled (terminal)
                       in_progress -> reconciled

RULES:
1. Terminal states have no outgoing transitions.
2. Every status change goes through an ensure_*_transition() check; services never
   compare raw strings to decide whether a transition is legal.
"""

from __future__ import annotations

from ..errors import InvalidState, AlreadyReconciled
from ..models.enums import PurchaseOrderStatus, SessionStatus


PURCHASE_ORDER_TRANSITIONS = {
    PurchaseOrderStatus.PENDING: {PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED},
    PurchaseOrderStatus.RECEIVED: set(),
    PurchaseOrderStatus.CANCELLED: set(),
}

SESSION_TRANSITIONS = {
    SessionStatus.IN_PROGRESS: {SessionStatus.COMPLETED, SessionStatus.RECONCILED},
    SessionStatus.COMPLETED: {SessionStatus.RECONCILED},
    SessionStatus.RECONCILED: set(),
}


def can_transition(table: dict, from_status: str, to_status: str) -> bool:
    enum_cls = type(next(iter(table)))
    try:
        current = enum_cls(from_status)
        target = enum_cls(to_status)
    except ValueError:
        return False
    return target in table[current]


def ensure_purchase_order_transition(order_id: int, from_status: str, to_status: str) -> None:
    if not can_transition(PURCHASE_ORDER_TRANSITIONS, from_status, to_status):
        raise InvalidState(
            f"Purchase order {order_id} cannot move from {from_status} to {to_status}",
            details={"order_id": order_id, "status": from_status},
        )


def ensure_session_transition(session_id: int, from_status: str, to_status: str) -> None:
    if from_status == SessionStatus.RECONCILED:
        raise AlreadyReconciled(
            f"Inventory session {session_id} is already reconciled",
            details={"session_id": session_id},
        )
    if not can_transition(SESSION_TRANSITIONS, from_status, to_status):
        raise InvalidState(
            f"Inventory session {session_id} cannot move from {from_status} to {to_status}",
            details={"session_id": session_id, "status": from_status},
        )


def sources_of(table: dict, to_status) -> list[str]:
    """Statuses that may legally transition into to_status (for guarded updates)."""
    return [src.value for src, targets in table.items() if to_status in targets]
