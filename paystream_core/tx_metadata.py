"""
Transaction metadata for Paystream.

Mirrors the XRP Ledger's transaction metadata structure:
  - affected_nodes: ledger entries created, modified or deleted
  - delivered_amount: drops actually delivered by a payment
  - balance_changes: per-account balance deltas

The local simulator builds metadata with :class:`MetadataBuilder`; the RPC
gateway parses rippled's ``meta`` JSON with :meth:`TransactionMetadata.from_rippled`.
Either way the controller reads channel ids back out through
:func:`created_channel_id`.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

PAY_CHANNEL = "PayChannel"
ACCOUNT_ROOT = "AccountRoot"


class NodeAction(Enum):
    CREATED = "CreatedNode"
    MODIFIED = "ModifiedNode"
    DELETED = "DeletedNode"


@dataclass
class AffectedNode:
    """A single ledger entry that was changed by a transaction."""
    action: NodeAction
    ledger_entry_type: str  # e.g. "AccountRoot", "PayChannel"
    ledger_index: str       # unique identifier
    previous_fields: dict = field(default_factory=dict)
    final_fields: dict = field(default_factory=dict)
    new_fields: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        d = {
            "action": self.action.value,
            "ledger_entry_type": self.ledger_entry_type,
            "ledger_index": self.ledger_index,
        }
        if self.previous_fields:
            d["previous_fields"] = self.previous_fields
        if self.final_fields:
            d["final_fields"] = self.final_fields
        if self.new_fields:
            d["new_fields"] = self.new_fields
        return d


@dataclass
class BalanceChange:
    """Balance change for a single account, in drops."""
    account: str
    previous_balance: int
    final_balance: int

    @property
    def delta(self) -> int:
        return self.final_balance - self.previous_balance

    def to_dict(self) -> dict:
        return {
            "account": self.account,
            "previous_balance": self.previous_balance,
            "final_balance": self.final_balance,
            "delta": self.delta,
        }


@dataclass
class TransactionMetadata:
    """Full metadata record for a single transaction."""
    tx_hash: str = ""
    tx_index: int = 0
    result_name: str = ""
    affected_nodes: list[AffectedNode] = field(default_factory=list)
    balance_changes: list[BalanceChange] = field(default_factory=list)
    delivered_amount: int | None = None
    timestamp: float = field(default_factory=time.time)

    def nodes_of(self, action: NodeAction, entry_type: str) -> list[AffectedNode]:
        return [
            n for n in self.affected_nodes
            if n.action is action and n.ledger_entry_type == entry_type
        ]

    def to_dict(self) -> dict:
        d = {
            "tx_hash": self.tx_hash,
            "tx_index": self.tx_index,
            "result_name": self.result_name,
            "affected_nodes": [n.to_dict() for n in self.affected_nodes],
            "balance_changes": [b.to_dict() for b in self.balance_changes],
            "timestamp": self.timestamp,
        }
        if self.delivered_amount is not None:
            d["delivered_amount"] = self.delivered_amount
        return d

    @classmethod
    def from_rippled(cls, meta: dict[str, Any], tx_hash: str = "") -> TransactionMetadata:
        """Parse the ``meta`` object of a rippled ``tx`` response.

        rippled wraps each node as ``{"CreatedNode": {...}}``; unknown
        wrappers are skipped.  Balance changes are derived from
        ``AccountRoot`` nodes whose ``Balance`` moved.
        """
        nodes: list[AffectedNode] = []
        changes: list[BalanceChange] = []
        for wrapper in meta.get("AffectedNodes", []):
            for action in NodeAction:
                body = wrapper.get(action.value)
                if body is None:
                    continue
                node = AffectedNode(
                    action=action,
                    ledger_entry_type=body.get("LedgerEntryType", ""),
                    ledger_index=body.get("LedgerIndex", ""),
                    previous_fields=dict(body.get("PreviousFields", {})),
                    final_fields=dict(body.get("FinalFields", {})),
                    new_fields=dict(body.get("NewFields", {})),
                )
                nodes.append(node)
                if node.ledger_entry_type == ACCOUNT_ROOT and "Balance" in node.previous_fields:
                    account = node.final_fields.get("Account", node.ledger_index)
                    changes.append(BalanceChange(
                        account=account,
                        previous_balance=int(node.previous_fields["Balance"]),
                        final_balance=int(node.final_fields.get("Balance", 0)),
                    ))
        delivered = meta.get("delivered_amount", meta.get("DeliveredAmount"))
        return cls(
            tx_hash=tx_hash,
            tx_index=int(meta.get("TransactionIndex", 0)),
            result_name=meta.get("TransactionResult", ""),
            affected_nodes=nodes,
            balance_changes=changes,
            # IOU deliveries arrive as dicts; only XRP drops are tracked here
            delivered_amount=int(delivered) if isinstance(delivered, str) and delivered.isdigit() else None,
        )


def created_channel_id(meta: TransactionMetadata) -> str | None:
    """Ledger index of the ``PayChannel`` created by a transaction, if any."""
    created = meta.nodes_of(NodeAction.CREATED, PAY_CHANNEL)
    if not created:
        return None
    return created[0].ledger_index or None


class MetadataBuilder:
    """
    Collects state changes during transaction application and
    produces a TransactionMetadata object.
    """

    def __init__(self, tx_hash: str = "", tx_index: int = 0):
        self._tx_hash = tx_hash
        self._tx_index = tx_index
        self._nodes: list[AffectedNode] = []
        self._balance_changes: list[BalanceChange] = []
        self._delivered_amount: int | None = None
        self._result_name: str = ""

    def record_balance(self, addr: str, previous: int, final: int) -> None:
        """Record an account whose balance moved."""
        if previous == final:
            return
        self._balance_changes.append(BalanceChange(addr, previous, final))
        self._nodes.append(AffectedNode(
            action=NodeAction.MODIFIED,
            ledger_entry_type=ACCOUNT_ROOT,
            ledger_index=addr,
            previous_fields={"Balance": str(previous)},
            final_fields={"Account": addr, "Balance": str(final)},
        ))

    def record_account_create(self, addr: str, balance: int) -> None:
        self._nodes.append(AffectedNode(
            action=NodeAction.CREATED,
            ledger_entry_type=ACCOUNT_ROOT,
            ledger_index=addr,
            new_fields={"Account": addr, "Balance": str(balance)},
        ))

    def record_channel_create(self, channel_id: str, fields: dict) -> None:
        self._nodes.append(AffectedNode(
            action=NodeAction.CREATED,
            ledger_entry_type=PAY_CHANNEL,
            ledger_index=channel_id,
            new_fields=fields,
        ))

    def record_channel_modify(self, channel_id: str, prev: dict, final: dict) -> None:
        self._nodes.append(AffectedNode(
            action=NodeAction.MODIFIED,
            ledger_entry_type=PAY_CHANNEL,
            ledger_index=channel_id,
            previous_fields=prev,
            final_fields=final,
        ))

    def record_channel_delete(self, channel_id: str, final: dict) -> None:
        self._nodes.append(AffectedNode(
            action=NodeAction.DELETED,
            ledger_entry_type=PAY_CHANNEL,
            ledger_index=channel_id,
            final_fields=final,
        ))

    def set_delivered_amount(self, amount: int) -> None:
        self._delivered_amount = amount

    def set_result(self, name: str) -> None:
        self._result_name = name

    def build(self) -> TransactionMetadata:
        return TransactionMetadata(
            tx_hash=self._tx_hash,
            tx_index=self._tx_index,
            result_name=self._result_name,
            affected_nodes=list(self._nodes),
            balance_changes=list(self._balance_changes),
            delivered_amount=self._delivered_amount,
        )
