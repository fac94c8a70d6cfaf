"""Tests for settlement calculation logic."""

import pytest
from splitsmart.services.settlement import calculate_settlements, calculate_balances, EPSILON
from splitsmart.models import Balance, Expense, Settlement


def make_balances(values: dict[str, float]) -> list[Balance]:
    """Build Balance objects from a member -> net balance mapping."""
    return [Balance(member=m, balance=v) for m, v in values.items()]


def apply_settlements(balances: list[Balance], settlements: list[Settlement]) -> dict[str, float]:
    """Residual balance per member after every settlement is paid."""
    residual = {b.member: b.balance for b in balances}
    for s in settlements:
        residual[s.from_member] += s.amount
        residual[s.to_member] -= s.amount
    return residual


class TestCalculateSettlements:
    """Tests for the calculate_settlements function."""

    def test_empty_balances_returns_empty_settlements(self):
        """Empty balances should return empty settlements."""
        assert calculate_settlements([]) == []

    def test_all_zero_balances_returns_empty(self):
        """Multiple members with 0 balances should return empty settlements."""
        balances = make_balances({"alice": 0.0, "bob": 0.0, "carol": 0.0})
        assert calculate_settlements(balances) == []

    def test_two_members_simple_settlement(self):
        """Two members: one owes, one is owed -> single settlement."""
        balances = make_balances({"alice": 50.0, "bob": -50.0})
        settlements = calculate_settlements(balances)

        assert len(settlements) == 1
        assert settlements[0].from_member == "bob"
        assert settlements[0].to_member == "alice"
        assert settlements[0].amount == 50.0

    def test_one_creditor_two_debtors_in_cursor_order(self):
        """B and C each pay A 30, most negative debtor first, ties by member order."""
        balances = make_balances({"A": 60.0, "B": -30.0, "C": -30.0})
        settlements = calculate_settlements(balances)

        assert [(s.from_member, s.to_member, s.amount) for s in settlements] == [
            ("B", "A", 30.0),
            ("C", "A", 30.0),
        ]

    def test_largest_creditor_matched_with_largest_debtor_first(self):
        """The walk starts with the largest credit and the largest debt."""
        balances = make_balances({
            "alice": 30.0,
            "bob": 70.0,
            "carol": -40.0,
            "dave": -60.0,
        })
        settlements = calculate_settlements(balances)

        assert [(s.from_member, s.to_member, s.amount) for s in settlements] == [
            ("dave", "bob", 60.0),
            ("carol", "bob", 10.0),
            ("carol", "alice", 30.0),
        ]

    def test_settlements_zero_every_balance(self):
        """Applying the settlements leaves every residual within epsilon."""
        balances = make_balances({
            "alice": 120.0,
            "bob": -40.0,
            "carol": -50.0,
            "dave": -30.0,
        })
        residual = apply_settlements(balances, calculate_settlements(balances))

        for member, amount in residual.items():
            assert abs(amount) < EPSILON, member

    def test_settlement_count_bounded_by_nonzero_minus_one(self):
        """At most n-1 settlements for n members with non-zero balances."""
        balances = make_balances({
            "a": 25.5,
            "b": 14.5,
            "c": 0.0,
            "d": -10.0,
            "e": -20.0,
            "f": -10.0,
        })
        settlements = calculate_settlements(balances)
        nonzero = sum(1 for b in balances if abs(b.balance) > EPSILON)

        assert len(settlements) <= nonzero - 1

    def test_very_small_amounts_below_cent_ignored(self):
        """Balances within a cent of zero produce no settlement."""
        balances = make_balances({"alice": 0.005, "bob": -0.005})
        assert calculate_settlements(balances) == []

    def test_small_amounts_above_threshold(self):
        """Two cents is above the threshold and is settled."""
        balances = make_balances({"alice": 0.02, "bob": -0.02})
        settlements = calculate_settlements(balances)

        assert len(settlements) == 1
        assert settlements[0].amount == 0.02

    def test_settlement_amounts_are_rounded(self):
        """Settlement amounts are rounded to 2 decimal places."""
        balances = make_balances({"alice": 100.0, "bob": -66.666, "carol": -33.334})
        settlements = calculate_settlements(balances)

        assert [s.amount for s in settlements] == [66.67, 33.33]

    def test_unbalanced_input_handled_gracefully(self):
        """Balances that don't sum to zero still settle what can be matched."""
        balances = make_balances({"alice": 60.0, "bob": -50.0})
        settlements = calculate_settlements(balances)

        assert len(settlements) == 1
        assert settlements[0].amount == 50.0

    def test_input_balances_not_modified(self):
        """The walk works on copies; callers' Balance objects keep their values."""
        balances = make_balances({"alice": 50.0, "bob": -50.0})
        calculate_settlements(balances)

        assert [b.balance for b in balances] == [50.0, -50.0]

    def test_repeated_calls_are_identical(self):
        """Same input, same output."""
        balances = make_balances({"a": 40.0, "b": -15.0, "c": -25.0})
        assert calculate_settlements(balances) == calculate_settlements(balances)

    def test_large_number_of_members(self):
        """One creditor owed $100 by 10 debtors."""
        values = {"creditor": 100.0}
        for i in range(10):
            values[f"debtor_{i}"] = -10.0
        settlements = calculate_settlements(make_balances(values))

        assert len(settlements) == 10
        assert all(s.to_member == "creditor" for s in settlements)
        assert abs(sum(s.amount for s in settlements) - 100.0) < EPSILON

    def test_settlement_serializes_with_from_and_to(self):
        """Settlements dump with the from/to field names."""
        settlements = calculate_settlements(make_balances({"alice": 50.0, "bob": -50.0}))

        assert isinstance(settlements[0], Settlement)
        assert settlements[0].model_dump(by_alias=True) == {"from": "bob", "to": "alice", "amount": 50.0}


class TestSettlementsFromExpenses:
    """End-to-end: expenses -> balances -> settlements."""

    def test_uneven_split_settles_within_epsilon(self):
        """A $100 three-way split still settles every member."""
        members = ["A", "B", "C"]
        expenses = [
            Expense(id="e1", title="Taxi", payer="A", amount=100.0,
                    split_among=members, timestamp=0),
        ]
        balances = calculate_balances(members, expenses)
        settlements = calculate_settlements(balances)

        assert [(s.from_member, s.to_member, s.amount) for s in settlements] == [
            ("B", "A", 33.33),
            ("C", "A", 33.33),
        ]
        for amount in apply_settlements(balances, settlements).values():
            assert abs(amount) < EPSILON

    def test_rounding_remainder_accumulates_on_shared_creditor(self):
        """Per-payment rounding leaves the creditor of many debtors a few cents over."""
        members = ["A", "B", "C", "D", "E"]
        expenses = [
            Expense(id="e1", title="Boat", payer="A", amount=50.02,
                    split_among=members, timestamp=0),
        ]
        balances = calculate_balances(members, expenses)
        settlements = calculate_settlements(balances)
        residual = apply_settlements(balances, settlements)

        assert [s.amount for s in settlements] == [10.0, 10.0, 10.0, 10.0]
        assert residual["A"] == pytest.approx(0.016)
        for member in ["B", "C", "D", "E"]:
            assert abs(residual[member]) < EPSILON

    def test_opposite_payers_cancel_out(self):
        """Two equal expenses with opposite payers leave nothing to settle."""
        members = ["A", "B"]
        expenses = [
            Expense(id="e1", title="Lunch", payer="A", amount=40.0, split_among=members, timestamp=0),
            Expense(id="e2", title="Dinner", payer="B", amount=40.0, split_among=members, timestamp=1),
        ]
        balances = calculate_balances(members, expenses)

        assert all(abs(b.balance) < EPSILON for b in balances)
        assert calculate_settlements(balances) == []

    @pytest.mark.parametrize("members, expenses", [
        (
            ["A", "B", "C", "D"],
            [
                ("A", 120.0, ["A", "B", "C", "D"]),
                ("B", 45.5, ["B", "C"]),
                ("D", 10.0, ["A", "D"]),
            ],
        ),
        (
            ["A", "B", "C"],
            [
                ("A", 0.1, ["A", "B", "C"]),
                ("B", 0.2, ["A", "B", "C"]),
                ("C", 99.0, ["A", "B"]),
            ],
        ),
    ])
    def test_mixed_trips_conserve_and_settle(self, members, expenses):
        """Balances sum to zero and settlements zero every member."""
        records = [
            Expense(id=f"e{i}", title="x", payer=payer, amount=amount,
                    split_among=split, timestamp=i)
            for i, (payer, amount, split) in enumerate(expenses)
        ]
        balances = calculate_balances(members, records)
        settlements = calculate_settlements(balances)
        nonzero = sum(1 for b in balances if abs(b.balance) > EPSILON)

        assert abs(sum(b.balance for b in balances)) < EPSILON
        assert len(settlements) <= max(nonzero - 1, 0)
        for amount in apply_settlements(balances, settlements).values():
            assert abs(amount) < EPSILON
