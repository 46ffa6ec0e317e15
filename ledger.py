"""
Account balance bookkeeping.

A transaction's effect on balances is a mapping ``{account_id: delta}``:

- income:   +amount on its account
- expense:  -amount on its account
- transfer: -amount on its account, +amount on ``to_account_id``

Creating applies the effect, deleting reverses it, and updating applies the
difference between the new and the old effect. Every change is a single
``UPDATE accounts SET balance = balance + :delta`` statement issued on the
caller's session, so it commits (or rolls back) together with the
transaction row itself.
"""

import logging
from collections import defaultdict
from typing import Dict, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from models import AccountModel, TransactionModel

logger = logging.getLogger("finance-backend.ledger")

Effects = Dict[int, float]


def effects_of(type_: str, amount: float, account_id: int, to_account_id: Optional[int] = None) -> Effects:
    if type_ == "income":
        return {account_id: amount}
    if type_ == "expense":
        return {account_id: -amount}
    if type_ == "transfer":
        out = {account_id: -amount}
        if to_account_id is not None:
            out[to_account_id] = out.get(to_account_id, 0.0) + amount
        return out
    raise ValueError(f"Unknown transaction type: {type_}")


def transaction_effects(tx: TransactionModel) -> Effects:
    return effects_of(tx.type, tx.amount, tx.account_id, tx.to_account_id)


def reversed_effects(effects: Effects) -> Effects:
    return {account_id: -delta for account_id, delta in effects.items()}


def diff_effects(old: Effects, new: Effects) -> Effects:
    """Net deltas that take balances from ``old`` applied to ``new`` applied."""
    net = defaultdict(float)
    for account_id, delta in old.items():
        net[account_id] -= delta
    for account_id, delta in new.items():
        net[account_id] += delta
    return {account_id: delta for account_id, delta in net.items() if delta != 0}


async def apply_effects(db: AsyncSession, effects: Effects) -> None:
    """Queue atomic balance increments on ``db``; the caller commits."""
    for account_id, delta in sorted(effects.items()):
        if not delta:
            continue
        await db.execute(
            update(AccountModel)
            .where(AccountModel.id == account_id)
            .values(balance=AccountModel.balance + delta)
        )
        logger.debug("Balance of account %s moved by %+.2f", account_id, delta)
