"""
Tapestry analytics core.

An append-only ledger of threads with three analytic engines on top:
Sentinel (anomaly detection), Mnemosyne (similarity retrieval) and
Valkyrie (policy-driven response).
"""

__version__ = "1.0.0"
