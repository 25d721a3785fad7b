"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Stock history must be reproducible.  Once a BOM is fixed, a month's prices
are fixed, or a month's inventory snapshot is closed, later reports depend on
those records never changing.  The transaction log is append-only: a logged
movement is corrected by deleting the whole transaction or by a new
ADJUSTMENT, never by editing rows in place.

Services check these rules first and raise domain errors (BomFixedError,
SnapshotClosedError, ...).  This module is the backstop that catches any
code path that goes straight to the ORM.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_insert/update/delete] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable                     | Allowed transition
--------------------|------------------------------------|----------------------------
Transaction         | ALWAYS (append-only)               | delete (whole transaction)
TxLine              | ALWAYS (append-only)               | delete with its header
BomHeader           | After is_fixed = True              | is_fixed False -> True
BomLine             | When parent header is fixed        | none
MonthlyPrice        | When the month's prices are fixed  | none
MonthlyPriceStatus  | After is_fixed = True              | is_fixed False -> True
InventorySnapshot   | After status = CLOSED              | COUNTING -> CLOSED
SnapshotLine        | When parent snapshot is CLOSED     | none

updated_at changes are always allowed; they are audit metadata.

Checks that depend on a parent row read it through the flush connection, so
they see the committed-or-flushed state rather than whatever happens to be
loaded in the identity map.

===============================================================================
USAGE
===============================================================================

    from erp_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    from erp_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect, text
from sqlalchemy.orm.attributes import get_history

from erp_kernel.exceptions import ImmutabilityViolationError
from erp_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = ("updated_at",)


def _block(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    extra = {
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "operation": operation,
    }
    if field is not None:
        extra["field"] = field
    logger.error("immutability_violation_blocked", extra=extra)
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _changed_fields(target, allowed: tuple[str, ...] = ()) -> list[str]:
    """Attribute keys with pending changes, excluding audit and allowed fields."""
    changed = []
    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS or attr.key in allowed:
            continue
        if attr.history.has_changes():
            changed.append(attr.key)
    return changed


def _old_value(target, key: str):
    """Value before this flush: the replaced value if changing, else current."""
    hist = get_history(target, key)
    if hist.deleted:
        return hist.deleted[0]
    return getattr(target, key)


def _bom_header_is_fixed(connection, bom_header_id) -> bool:
    result = connection.execute(
        text("SELECT is_fixed FROM bom_headers WHERE id = :id"),
        {"id": str(bom_header_id)},
    )
    return bool(result.scalar())


def _price_month_is_fixed(connection, month) -> bool:
    result = connection.execute(
        text("SELECT is_fixed FROM monthly_price_status WHERE month = :month"),
        {"month": month},
    )
    return bool(result.scalar())


def _snapshot_is_closed(connection, snapshot_id) -> bool:
    result = connection.execute(
        text("SELECT status FROM inventory_snapshots WHERE id = :id"),
        {"id": str(snapshot_id)},
    )
    return result.scalar() == "CLOSED"


# Transaction log


def _check_transaction_immutability(mapper, connection, target):
    """Block every field change on a logged transaction."""
    from erp_kernel.models.transaction import Transaction

    if not isinstance(target, Transaction):
        return

    changed = _changed_fields(target, allowed=("lines", "partner"))
    if changed:
        _block(
            "Transaction",
            target.id,
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on a logged transaction",
            field=changed[0],
        )


def _check_tx_line_immutability(mapper, connection, target):
    """Block every field change on a logged transaction line."""
    from erp_kernel.models.transaction import TxLine

    if not isinstance(target, TxLine):
        return

    changed = _changed_fields(target, allowed=("transaction",))
    if changed:
        _block(
            "TxLine",
            target.id,
            "UPDATE",
            f"Cannot modify field '{changed[0]}' on a logged transaction line",
            field=changed[0],
        )


# BOM


def _check_bom_header_immutability(mapper, connection, target):
    """
    Allow only is_fixed False -> True; nothing changes after that.

    The fixing flush itself may touch is_fixed and nothing else.
    """
    from erp_kernel.models.bom import BomHeader

    if not isinstance(target, BomHeader):
        return

    was_fixed = bool(_old_value(target, "is_fixed"))

    if was_fixed:
        changed = _changed_fields(target, allowed=("lines", "item"))
        if changed:
            _block(
                "BomHeader",
                target.id,
                "UPDATE",
                f"Cannot modify field '{changed[0]}' on a fixed BOM",
                field=changed[0],
            )
        return

    if target.is_fixed:
        changed = _changed_fields(target, allowed=("is_fixed", "lines", "item"))
        if changed:
            _block(
                "BomHeader",
                target.id,
                "UPDATE",
                f"Cannot modify field '{changed[0]}' while fixing a BOM",
                field=changed[0],
            )


def _check_bom_header_delete(mapper, connection, target):
    from erp_kernel.models.bom import BomHeader

    if not isinstance(target, BomHeader):
        return

    if _old_value(target, "is_fixed"):
        _block("BomHeader", target.id, "DELETE", "Fixed BOMs cannot be deleted")


def _check_bom_line_write(operation):
    def _check(mapper, connection, target):
        from erp_kernel.models.bom import BomLine

        if not isinstance(target, BomLine):
            return

        if _bom_header_is_fixed(connection, target.bom_header_id):
            _block(
                "BomLine",
                target.id,
                operation,
                "BOM lines cannot change once the BOM is fixed",
            )

    _check.__name__ = f"_check_bom_line_{operation.lower()}"
    return _check


_check_bom_line_insert = _check_bom_line_write("INSERT")
_check_bom_line_immutability = _check_bom_line_write("UPDATE")
_check_bom_line_delete = _check_bom_line_write("DELETE")


# Prices


def _check_monthly_price_write(operation):
    def _check(mapper, connection, target):
        from erp_kernel.models.price import MonthlyPrice

        if not isinstance(target, MonthlyPrice):
            return

        month = _old_value(target, "month")
        if _price_month_is_fixed(connection, month):
            _block(
                "MonthlyPrice",
                target.id,
                operation,
                f"Prices for {month} are fixed",
            )

    _check.__name__ = f"_check_monthly_price_{operation.lower()}"
    return _check


_check_monthly_price_insert = _check_monthly_price_write("INSERT")
_check_monthly_price_immutability = _check_monthly_price_write("UPDATE")
_check_monthly_price_delete = _check_monthly_price_write("DELETE")


def _check_price_status_immutability(mapper, connection, target):
    from erp_kernel.models.price import MonthlyPriceStatus

    if not isinstance(target, MonthlyPriceStatus):
        return

    if _old_value(target, "is_fixed"):
        changed = _changed_fields(target)
        if changed:
            _block(
                "MonthlyPriceStatus",
                target.month,
                "UPDATE",
                f"Cannot modify field '{changed[0]}' after prices are fixed",
                field=changed[0],
            )


def _check_price_status_delete(mapper, connection, target):
    from erp_kernel.models.price import MonthlyPriceStatus

    if not isinstance(target, MonthlyPriceStatus):
        return

    if _old_value(target, "is_fixed"):
        _block(
            "MonthlyPriceStatus",
            target.month,
            "DELETE",
            "A fixed price month cannot be reopened",
        )


# Snapshots


def _check_snapshot_immutability(mapper, connection, target):
    """
    Allow the close transition, block everything after it.

    The closing flush sets status, closed_at and adjustment_tx_id together.
    """
    from erp_kernel.models.snapshot import InventorySnapshot, SnapshotStatus

    if not isinstance(target, InventorySnapshot):
        return

    was_closed = _old_value(target, "status") == SnapshotStatus.CLOSED

    if was_closed:
        changed = _changed_fields(target, allowed=("lines",))
        if changed:
            _block(
                "InventorySnapshot",
                target.id,
                "UPDATE",
                f"Cannot modify field '{changed[0]}' on a closed snapshot",
                field=changed[0],
            )
        return

    if target.status != SnapshotStatus.CLOSED:
        changed = _changed_fields(target, allowed=("lines", "status"))
        for key in ("closed_at", "adjustment_tx_id"):
            if key in changed:
                _block(
                    "InventorySnapshot",
                    target.id,
                    "UPDATE",
                    f"'{key}' can only be set when the snapshot is closed",
                    field=key,
                )


def _check_snapshot_delete(mapper, connection, target):
    from erp_kernel.models.snapshot import InventorySnapshot, SnapshotStatus

    if not isinstance(target, InventorySnapshot):
        return

    if _old_value(target, "status") == SnapshotStatus.CLOSED:
        _block(
            "InventorySnapshot",
            target.id,
            "DELETE",
            "Closed snapshots are ledger baselines and cannot be deleted",
        )


def _check_snapshot_line_write(operation):
    def _check(mapper, connection, target):
        from erp_kernel.models.snapshot import SnapshotLine

        if not isinstance(target, SnapshotLine):
            return

        if _snapshot_is_closed(connection, target.snapshot_id):
            _block(
                "SnapshotLine",
                target.id,
                operation,
                "Snapshot lines cannot change once the month is closed",
            )

    _check.__name__ = f"_check_snapshot_line_{operation.lower()}"
    return _check


_check_snapshot_line_immutability = _check_snapshot_line_write("UPDATE")
_check_snapshot_line_delete = _check_snapshot_line_write("DELETE")


def _listener_table():
    from erp_kernel.models.bom import BomHeader, BomLine
    from erp_kernel.models.price import MonthlyPrice, MonthlyPriceStatus
    from erp_kernel.models.snapshot import InventorySnapshot, SnapshotLine
    from erp_kernel.models.transaction import Transaction, TxLine

    return [
        (Transaction, "before_update", _check_transaction_immutability),
        (TxLine, "before_update", _check_tx_line_immutability),
        (BomHeader, "before_update", _check_bom_header_immutability),
        (BomHeader, "before_delete", _check_bom_header_delete),
        (BomLine, "before_insert", _check_bom_line_insert),
        (BomLine, "before_update", _check_bom_line_immutability),
        (BomLine, "before_delete", _check_bom_line_delete),
        (MonthlyPrice, "before_insert", _check_monthly_price_insert),
        (MonthlyPrice, "before_update", _check_monthly_price_immutability),
        (MonthlyPrice, "before_delete", _check_monthly_price_delete),
        (MonthlyPriceStatus, "before_update", _check_price_status_immutability),
        (MonthlyPriceStatus, "before_delete", _check_price_status_delete),
        (InventorySnapshot, "before_update", _check_snapshot_immutability),
        (InventorySnapshot, "before_delete", _check_snapshot_delete),
        (SnapshotLine, "before_update", _check_snapshot_line_immutability),
        (SnapshotLine, "before_delete", _check_snapshot_line_delete),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call this after all models are imported but before any database
    operations begin.  Safe to call more than once.
    """
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """
    Safely remove an event listener, ignoring if not registered.

    This prevents errors when unregistering listeners that may not have been
    registered (e.g., in test scenarios with custom setup/teardown).
    """
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listener_table():
        _safe_remove_listener(target, event_name, listener_fn)
