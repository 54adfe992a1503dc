"""Transaction Risk Evaluation Service.

This service evaluates newly submitted payment transactions for fraud risk:
- Scores each transaction against a fixed set of behavioural rules
- Classifies it as success, flagged or blocked
- Commits the outcome, notifications, audit trail and learned baseline atomically
- Queues security alerts for blocked transactions
"""

__version__ = "0.1.0"
