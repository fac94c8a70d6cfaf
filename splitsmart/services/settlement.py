from typing import Iterable
from decimal import Decimal, ROUND_HALF_UP

from ..models import Balance, Expense, Settlement

# Balances closer than one cent to zero are treated as settled
EPSILON = 0.01


def round_cents(amount: float) -> float:
    """Round a float amount half-up to 2 decimal places."""
    return float(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def calculate_balances(members: Iterable[str], expenses: Iterable[Expense]) -> list[Balance]:
    """
    Calculate the balance for each member of a trip.

    Positive balance = member is owed money (paid more than their share)
    Negative balance = member owes money (consumed more than they paid)

    Every expense is split equally among its split members. A payer or split
    member that is not in ``members`` is skipped; their portion is dropped
    rather than redistributed.

    Args:
        members: Member names, in display order
        expenses: The trip's expenses

    Returns:
        List of Balance objects in the same order as ``members``
    """
    # Initialize balances for all members
    balances: dict[str, Balance] = {}
    for member in members:
        balances.setdefault(member, Balance(member=member))

    for expense in expenses:
        # Payer gets credit for the full amount
        if expense.payer in balances:
            balances[expense.payer].paid += expense.amount

        if not expense.split_among:
            continue

        # Split members owe an equal share
        share_amount = expense.amount / len(expense.split_among)
        for member in expense.split_among:
            if member in balances:
                balances[member].share += share_amount

    for balance in balances.values():
        balance.balance = balance.paid - balance.share

    return list(balances.values())


def calculate_settlements(balances: Iterable[Balance]) -> list[Settlement]:
    """
    Calculate settlements using a greedy algorithm.

    Walks creditors (largest first) against debtors (most negative first),
    settling the smaller of the two amounts at each step. Ties keep the
    input member order, so the result is deterministic.

    Args:
        balances: Balance objects, e.g. from calculate_balances(). Not modified.

    Returns:
        List of Settlement objects representing payments to make
    """
    # Working copies as [member, remaining]
    creditors = [[b.member, b.balance] for b in balances if b.balance > EPSILON]
    debtors = [[b.member, b.balance] for b in balances if b.balance < -EPSILON]

    # list.sort is stable, so equal balances keep member order
    creditors.sort(key=lambda x: x[1], reverse=True)
    debtors.sort(key=lambda x: x[1])

    settlements: list[Settlement] = []
    i = 0
    j = 0

    while i < len(creditors) and j < len(debtors):
        creditor = creditors[i]
        debtor = debtors[j]

        # Settle the smaller of the two amounts
        amount = min(creditor[1], abs(debtor[1]))

        if amount > EPSILON:
            settlements.append(Settlement(
                from_member=debtor[0],
                to_member=creditor[0],
                amount=round_cents(amount),
            ))

        creditor[1] -= amount
        debtor[1] += amount

        if creditor[1] < EPSILON:
            i += 1
        if abs(debtor[1]) < EPSILON:
            j += 1

    return settlements
