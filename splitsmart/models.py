from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    """Accepts both snake_case names and the persisted camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True)


class ExpenseCreate(CamelModel):
    """An expense as submitted by the caller, before id and timestamp exist."""
    title: str
    amount: float
    payer: str
    split_among: list[str] = Field(alias="splitAmong")


class Expense(CamelModel):
    """A single payment made by one member on behalf of a subset of members."""
    id: str
    title: str
    payer: str
    amount: float
    split_among: list[str] = Field(alias="splitAmong")
    timestamp: int  # epoch milliseconds


class Trip(CamelModel):
    """A named expense-sharing session with a member roster and expenses."""
    id: str
    name: str
    members: list[str]
    expenses: list[Expense] = []
    created_at: int = Field(alias="createdAt")  # epoch milliseconds


class Balance(BaseModel):
    """A member's net position in a trip."""
    member: str
    paid: float = 0.0
    share: float = 0.0
    balance: float = 0.0  # Positive = owed money, Negative = owes money


class Settlement(CamelModel):
    """A payment from one member to another."""
    from_member: str = Field(alias="from")
    to_member: str = Field(alias="to")
    amount: float


class SpendingShare(BaseModel):
    """How much one member paid out, and its share of the trip total."""
    member: str
    amount: float
    percentage: float


class TripSummary(BaseModel):
    """Headline numbers for a trip."""
    trip_id: str
    name: str
    member_count: int
    expense_count: int
    total_expense: float
    spending: list[SpendingShare] = []
