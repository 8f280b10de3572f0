from typing import Any, Dict

from apilabs.db.models import Account, Beneficiary, Card, Loan, Transaction


def _money(value):
    return float(value) if value is not None else None


def _ts(value):
    return value.isoformat() if value else None


def serialize_account(a: Account) -> Dict[str, Any]:
    return {
        "account_id": str(a.account_id),
        "user_id": str(a.user_id),
        "account_number": a.account_number,
        "account_type": a.account_type,
        "balance": float(a.balance) if a.balance is not None else 0.0,
        "currency": a.currency,
        "status": a.status,
        "overdraft_limit": _money(getattr(a, "overdraft_limit", None)),
        "created_at": _ts(getattr(a, "created_at", None)),
        "updated_at": _ts(getattr(a, "updated_at", None)),
    }


def serialize_tx(t: Transaction) -> Dict[str, Any]:
    return {
        "transaction_id": str(t.transaction_id),
        "account_id": str(t.account_id),
        "counterpart_account_id": str(t.counterpart_account_id) if t.counterpart_account_id else None,
        "transaction_type": t.transaction_type,
        "entry_type": t.entry_type,
        "amount": _money(t.amount),
        "currency": t.currency,
        "description": t.description,
        "reference_number": t.reference_number,
        "status": t.status,
        "balance_after": _money(getattr(t, "balance_after", None)),
        "created_at": _ts(getattr(t, "created_at", None)),
    }


def serialize_loan(l: Loan) -> Dict[str, Any]:
    return {
        "loan_id": str(l.loan_id),
        "user_id": str(l.user_id),
        "loan_number": l.loan_number,
        "loan_type": l.loan_type,
        "amount": _money(l.amount),
        "interest_rate": _money(l.interest_rate),
        "term_months": l.term_months,
        "monthly_payment": _money(l.monthly_payment),
        "outstanding_balance": _money(l.outstanding_balance),
        "status": l.status,
        "disbursement_date": _ts(getattr(l, "disbursement_date", None)),
        "next_payment_date": _ts(getattr(l, "next_payment_date", None)),
        "created_at": _ts(getattr(l, "created_at", None)),
        "updated_at": _ts(getattr(l, "updated_at", None)),
    }


def serialize_card(c: Card) -> Dict[str, Any]:
    # cvv is write-only
    return {
        "card_id": str(c.card_id),
        "user_id": str(c.user_id),
        "account_id": str(c.account_id),
        "card_number": c.card_number,
        "last4": c.card_number[-4:] if c.card_number else None,
        "card_type": c.card_type,
        "cardholder_name": c.cardholder_name,
        "expiry_date": c.expiry_date,
        "status": c.status,
        "card_limit": _money(c.card_limit),
        "available_limit": _money(c.available_limit),
        "created_at": _ts(getattr(c, "created_at", None)),
        "updated_at": _ts(getattr(c, "updated_at", None)),
    }


def serialize_beneficiary(b: Beneficiary) -> Dict[str, Any]:
    return {
        "beneficiary_id": str(b.beneficiary_id),
        "user_id": str(b.user_id),
        "beneficiary_name": b.beneficiary_name,
        "account_number": b.account_number,
        "bank_name": b.bank_name,
        "ifsc_code": b.ifsc_code,
        "swift_code": b.swift_code,
        "relationship": b.relationship,
        "nickname": b.nickname,
        "is_verified": bool(b.is_verified),
        "created_at": _ts(getattr(b, "created_at", None)),
    }
