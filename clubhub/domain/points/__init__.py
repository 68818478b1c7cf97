"""User point balances and the point ledger."""
