"""
Reconciliation Module

Turns a user's intended quantity (or a quick +/- adjustment) into calls to the
add/deduct inventory procedures. Baselines are always re-read from the backend
right before the delta is computed, and every mutation carries a reason code.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from constants.inventory import (
    ADD_INVENTORY_RPC,
    COUNT_ADJUSTMENT,
    DEDUCT_INVENTORY_RPC,
    REASON_CODES,
)
from utils.supabase_gateway import GatewayError

logger = logging.getLogger(__name__)

APPLIED = "applied"
UNCHANGED = "unchanged"
FAILED = "failed"


class AdjustmentValidationError(ValueError):
    """Raised for bad local input; nothing has been sent to the backend."""


class ItemReconciliation(BaseModel):
    """Outcome of reconciling one item against its counted quantity"""

    item_id: str
    desired: int
    status: str
    baseline: Optional[int] = None
    delta: int = 0
    procedure: Optional[str] = None
    new_quantity: Optional[int] = None
    error: Optional[str] = None


class BatchResult(BaseModel):
    """Outcome of a cycle count submission"""

    applied: List[ItemReconciliation] = Field(default_factory=list)
    unchanged: List[ItemReconciliation] = Field(default_factory=list)
    failed: List[ItemReconciliation] = Field(default_factory=list)
    # Intents that must stay on screen for a retry
    remaining_counts: Dict[str, int] = Field(default_factory=dict)

    @property
    def completed(self) -> List[ItemReconciliation]:
        return self.applied + self.unchanged

    @property
    def ok(self) -> bool:
        return not self.failed


def parse_count_input(raw: Any) -> Optional[int]:
    """
    Parse what the user typed into a quantity field.

    Blank input means "no entry" and returns None; it is never treated as 0.
    Negative numbers are clamped to 0.

    Raises:
        AdjustmentValidationError: if the text is not a whole number
    """
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise AdjustmentValidationError(f"'{raw}' is not a whole number")
    if isinstance(raw, int):
        return max(0, raw)
    if isinstance(raw, float):
        if raw != raw:  # NaN from an empty editor cell
            return None
        if not raw.is_integer():
            raise AdjustmentValidationError(f"'{raw}' is not a whole number")
        return max(0, int(raw))

    text = str(raw).strip()
    if text == "":
        return None
    try:
        value = int(text)
    except ValueError:
        raise AdjustmentValidationError(f"'{text}' is not a whole number")
    return max(0, value)


def validate_reason(reason: Optional[str]) -> str:
    """Return the reason code, or raise if it is missing or not a known code."""
    code = (reason or "").strip()
    if not code:
        raise AdjustmentValidationError("Please select a reason.")
    if code not in REASON_CODES:
        raise AdjustmentValidationError(f"Unknown reason code '{code}'")
    return code


def compute_delta(desired: int, baseline: int) -> int:
    return desired - baseline


def count_variance(counted: Optional[int], system_qty: int) -> Optional[int]:
    """Counted minus system quantity, or None when nothing was entered."""
    if counted is None:
        return None
    return counted - system_qty


def dispatch_delta(gateway, item_id: str, delta: int, reason: str) -> Optional[str]:
    """
    Send a signed delta to the matching procedure.

    Args:
        gateway: SupabaseGateway (or compatible) handle
        item_id: Item key
        delta: Signed change; 0 sends nothing
        reason: Validated reason code

    Returns:
        Name of the procedure called, or None for a zero delta
    """
    if delta == 0:
        return None
    if delta > 0:
        gateway.add_inventory(item_id, delta, reason)
        return ADD_INVENTORY_RPC
    gateway.deduct_inventory(item_id, abs(delta), reason)
    return DEDUCT_INVENTORY_RPC


def quick_adjust(gateway, item_id: str, delta: int, reason: Optional[str]) -> str:
    """
    Inline +/- adjustment from the listing or detail view.

    The caller may bump its displayed quantity by ``delta`` afterwards; that value
    is display only and is replaced by the next fresh read.

    Raises:
        AdjustmentValidationError: missing reason or zero delta
        GatewayError: the procedure call failed
    """
    code = validate_reason(reason)
    if not isinstance(delta, int) or isinstance(delta, bool) or delta == 0:
        raise AdjustmentValidationError("Enter a quantity greater than zero.")
    return dispatch_delta(gateway, item_id, delta, code)


def reconcile_item(gateway, item_id: str, desired: int, reason: Optional[str]) -> ItemReconciliation:
    """
    Bring one item's quantity to ``desired``.

    Re-reads the baseline, computes the delta, calls at most one procedure and
    re-reads the resulting quantity.

    Raises:
        AdjustmentValidationError: missing reason or negative desired quantity
        GatewayError: a read or procedure call failed, or the item no longer exists
    """
    code = validate_reason(reason)
    if desired is None or desired < 0:
        raise AdjustmentValidationError("Counted quantity must be zero or more.")

    baseline = gateway.get_item_quantity(item_id)
    if baseline is None:
        raise GatewayError(f"Item {item_id} could not be re-read")

    delta = compute_delta(desired, baseline)
    if delta == 0:
        logger.info(f"Item {item_id}: count matches system quantity {baseline}, nothing to send")
        return ItemReconciliation(
            item_id=item_id,
            desired=desired,
            status=UNCHANGED,
            baseline=baseline,
            new_quantity=baseline,
        )

    procedure = dispatch_delta(gateway, item_id, delta, code)
    try:
        new_quantity = gateway.get_item_quantity(item_id)
    except GatewayError as e:
        # The adjustment went through; only the refresh is missing
        logger.warning(f"Item {item_id}: adjusted but refresh failed: {e}")
        new_quantity = None
    logger.info(f"Item {item_id}: {baseline} -> {desired} via {procedure} ({delta:+d})")

    return ItemReconciliation(
        item_id=item_id,
        desired=desired,
        status=APPLIED,
        baseline=baseline,
        delta=delta,
        procedure=procedure,
        new_quantity=new_quantity,
    )


def reconcile_counts(
    gateway, counts: Dict[str, Optional[int]], reason: Optional[str] = COUNT_ADJUSTMENT
) -> BatchResult:
    """
    Submit a cycle count.

    Each entered count is reconciled on its own; a failure on one item is
    recorded and the rest still run. Items without an entry (None) are ignored.

    Args:
        gateway: SupabaseGateway (or compatible) handle
        counts: item id -> counted quantity, None for no entry
        reason: Reason code attached to every adjustment

    Returns:
        BatchResult; ``remaining_counts`` holds the intents that failed

    Raises:
        AdjustmentValidationError: the reason is missing, before anything is sent
    """
    code = validate_reason(reason)
    result = BatchResult()

    for item_id, counted in counts.items():
        if counted is None:
            continue

        try:
            outcome = reconcile_item(gateway, item_id, counted, code)
        except (GatewayError, AdjustmentValidationError) as e:
            logger.warning(f"⚠️ Cycle count for item {item_id} failed: {e}")
            result.failed.append(
                ItemReconciliation(item_id=item_id, desired=counted, status=FAILED, error=str(e))
            )
            result.remaining_counts[item_id] = counted
            continue

        if outcome.status == APPLIED:
            result.applied.append(outcome)
        else:
            result.unchanged.append(outcome)

    logger.info(
        f"Cycle count submitted: {len(result.applied)} adjusted, "
        f"{len(result.unchanged)} unchanged, {len(result.failed)} failed"
    )
    return result
