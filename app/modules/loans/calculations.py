"""
Loan payment math.

Pure functions over Decimal amounts. Schedules use a fixed 30-day payment
cycle rather than true calendar months, and schedule position is measured in
whole calendar months since disbursement.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Union

from app.core.exceptions import ExceedsBalance, InvalidAmount

Amount = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
DAYS_PER_PAYMENT_CYCLE = 30


def to_decimal(value: Optional[Amount]) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value: Amount) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(amount: Optional[Amount]) -> str:
    return f"${to_money(amount or 0):,.2f}"


def months_covered(payment_amount: Optional[Amount], monthly_payment: Optional[Amount]) -> int:
    """
    Number of monthly installments a payment satisfies.

    A missing or non-positive monthly payment counts as one month so that a
    misconfigured loan still advances its schedule. Any positive payment
    covers at least one month.
    """
    monthly = to_decimal(monthly_payment)
    if monthly <= 0:
        return 1
    payment = to_decimal(payment_amount)
    if payment <= 0:
        return 0
    return max(1, int(payment // monthly))


def next_payment_date(
    current_date: Optional[Union[date, datetime]] = None,
    months: int = 1
) -> Union[date, datetime]:
    base = current_date or date.today()
    return base + timedelta(days=DAYS_PER_PAYMENT_CYCLE * months)


def months_since_start(
    disbursed_date: Optional[Union[date, datetime]],
    now: Optional[Union[date, datetime]] = None
) -> int:
    if not disbursed_date:
        return 0
    now = now or datetime.utcnow()
    diff = (now.year - disbursed_date.year) * 12 + (now.month - disbursed_date.month)
    return max(0, diff)


@dataclass(frozen=True)
class ScheduleStatus:
    months_ahead: int

    @property
    def is_ahead(self) -> bool:
        return self.months_ahead > 0

    @property
    def is_behind(self) -> bool:
        return self.months_ahead < 0

    @property
    def is_on_track(self) -> bool:
        return self.months_ahead == 0

    @property
    def status(self) -> str:
        if self.is_ahead:
            return "ahead"
        if self.is_behind:
            return "behind"
        return "on_track"


def payment_status(
    payments_made: int,
    disbursed_date: Optional[Union[date, datetime]],
    now: Optional[Union[date, datetime]] = None
) -> ScheduleStatus:
    return ScheduleStatus(months_ahead=(payments_made or 0) - months_since_start(disbursed_date, now))


@dataclass(frozen=True)
class PaymentBreakdown:
    interest_amount: Decimal
    principal_amount: Decimal
    new_balance: Decimal

    @property
    def is_full_payoff(self) -> bool:
        return self.new_balance == 0


def payment_breakdown(
    payment_amount: Amount,
    remaining_balance: Amount,
    annual_rate_percent: Amount
) -> PaymentBreakdown:
    """Split a payment into one month's interest and the principal it retires"""
    payment = to_decimal(payment_amount)
    balance = to_decimal(remaining_balance)
    monthly_rate = to_decimal(annual_rate_percent) / 100 / 12

    interest = max(Decimal("0"), to_money(balance * monthly_rate))
    principal = max(Decimal("0"), min(payment - interest, balance))
    new_balance = max(Decimal("0"), balance - principal)

    return PaymentBreakdown(
        interest_amount=interest,
        principal_amount=to_money(principal),
        new_balance=to_money(new_balance)
    )


@dataclass
class PaymentValidation:
    months_covered: int
    warnings: List[str] = field(default_factory=list)


def validate_payment(
    payment_amount: Amount,
    monthly_payment: Optional[Amount],
    remaining_balance: Amount
) -> PaymentValidation:
    """
    Reject payments that are not positive or exceed the balance.

    Short payments and multi-month payments are allowed but come back with
    warnings for the operator.
    """
    payment = to_decimal(payment_amount)
    monthly = to_decimal(monthly_payment)
    balance = to_decimal(remaining_balance)

    if payment <= 0:
        raise InvalidAmount("Payment amount must be greater than zero", details={"amount": payment})

    if payment > balance:
        raise ExceedsBalance(
            f"Payment amount ({format_currency(payment)}) exceeds remaining balance ({format_currency(balance)})",
            details={"amount": payment, "remaining_balance": balance}
        )

    warnings = []
    if payment < monthly and payment != balance:
        warnings.append(
            f"Payment of {format_currency(payment)} is less than monthly payment of "
            f"{format_currency(monthly)}. This may result in partial month coverage."
        )

    covered = months_covered(payment, monthly)
    if covered > 1:
        warnings.append(f"This payment covers {covered} months.")

    return PaymentValidation(months_covered=covered, warnings=warnings)


def calculate_total_amount(principal: Amount, annual_rate_percent: Amount, term_months: int) -> Decimal:
    """Simple-interest total repayable over the term"""
    rate = to_decimal(annual_rate_percent) / 100
    return to_money(to_decimal(principal) * (1 + rate * Decimal(term_months) / 12))


def calculate_monthly_payment(principal: Amount, annual_rate_percent: Amount, term_months: int) -> Decimal:
    """Level amortized installment"""
    principal = to_decimal(principal)
    monthly_rate = to_decimal(annual_rate_percent) / 100 / 12
    if monthly_rate == 0:
        return to_money(principal / term_months)
    factor = (1 + monthly_rate) ** term_months
    return to_money(principal * monthly_rate * factor / (factor - 1))
