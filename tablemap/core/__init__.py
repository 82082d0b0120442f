"""
Core of tablemap: column mapping, validation, hooks, where-clauses, the record
lifecycle engine and the relation resolver.

Modules here operate on ``ModelDescriptor`` values and ``Model`` handles; they
hold no state of their own.
"""
