"""Quiz domain services: session timing, scoring and the answer ledger.

This package contains the quiz mechanics that HTTP routes and socket
handlers call into, keeping transport concerns separated from the rules
that decide when a question's clock starts and how an answer is scored.
"""
