"""
zkbadge: zero-knowledge badge issuance.

Principals prove membership claims (enough verified relations, a birth-year
generation) with Groth16 proofs; the issuer verifies them and binds the
result to the principal with single-use session nonces.
"""

__version__ = "0.1.0"
