# Loans module
from app.modules.loans.models import Loan, LoanPayment, LoanType, LoanStatus

__all__ = ["Loan", "LoanPayment", "LoanType", "LoanStatus"]
