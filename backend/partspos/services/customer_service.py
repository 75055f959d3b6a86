# Overview: Service-layer operations for customer balances kept in step with sales and returns.

"""
Customer Balance Tracker

Customer aggregates are denormalized onto the Customer row and updated inside
the sale / return transaction that changes them, with the customer row locked:

- sale:   purchase_history_count += 1, total_spent += sale total
          Credit sales also add the total to outstanding_balance and must stay
          within credit_limit when one is set.
- return: total_spent -= refund; Credit sales also reduce outstanding_balance.
          Both floor at zero.

These helpers never commit; callers own the transaction.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import CreditLimitExceeded, CustomerNotFound
from ..models import Customer
from ..models.sales import PAYMENT_METHOD_CREDIT
from .concurrency import lock_for_update


def get_customer(customer_id: str) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise CustomerNotFound(customer_id)
    return customer


def get_customer_for_update(customer_id: str) -> Customer:
    customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
    if customer is None:
        raise CustomerNotFound(customer_id)
    return customer


def apply_sale(customer: Customer, *, total_cents: int, payment_method: str) -> Customer:
    """Record a completed sale against a (locked) customer."""
    if payment_method == PAYMENT_METHOD_CREDIT:
        new_balance = customer.outstanding_balance_cents + total_cents
        limit = customer.credit_limit_cents
        if limit is not None and new_balance > limit:
            raise CreditLimitExceeded(customer.id, new_balance, limit)
        customer.outstanding_balance_cents = new_balance

    customer.purchase_history_count += 1
    customer.total_spent_cents += total_cents
    db.session.flush()
    return customer


def apply_return(customer: Customer, *, refund_cents: int, payment_method: str) -> Customer:
    """Reverse the spend (and on-account balance) for refunded goods."""
    customer.total_spent_cents = max(0, customer.total_spent_cents - refund_cents)
    if payment_method == PAYMENT_METHOD_CREDIT:
        customer.outstanding_balance_cents = max(0, customer.outstanding_balance_cents - refund_cents)
    db.session.flush()
    return customer
