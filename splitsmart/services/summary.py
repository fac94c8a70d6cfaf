from ..models import SpendingShare, Trip, TripSummary
from .settlement import calculate_balances


def get_total_expense(trip: Trip) -> float:
    """Sum of every expense amount in the trip."""
    return sum(expense.amount for expense in trip.expenses)


def summarize_trip(trip: Trip) -> TripSummary:
    """
    Build the headline numbers for a trip.

    The spending breakdown lists every member who paid for something, in
    member order, with the percentage of the trip total they covered.
    """
    total = get_total_expense(trip)

    spending = [
        SpendingShare(
            member=b.member,
            amount=b.paid,
            percentage=round(b.paid / total * 100, 1) if total > 0 else 0.0,
        )
        for b in calculate_balances(trip.members, trip.expenses)
        if b.paid > 0
    ]

    return TripSummary(
        trip_id=trip.id,
        name=trip.name,
        member_count=len(trip.members),
        expense_count=len(trip.expenses),
        total_expense=total,
        spending=spending,
    )
