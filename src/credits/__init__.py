from src.credits.ledger import CreditBalance, CreditLedger

__all__ = ["CreditBalance", "CreditLedger"]
