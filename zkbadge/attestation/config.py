"""
Field, hashing and circuit-shape constants for badge attestation.

Values here describe the contract with the external circuits and must change
together with them. Runtime knobs (database URL, binaries, key directory)
live in ``settings.py``.
"""

# ============================================================================
# FIELD PARAMETERS
# ============================================================================

# BN254 scalar field (the arithmetic field of the Groth16 circuits)
FIELD_NAME = "bn254"
FIELD_MODULUS = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)
FIELD_ELEMENT_BYTES = 32

# ============================================================================
# HASHING
# ============================================================================

DOMAIN_SEPARATOR_PREFIX = b"ZKBADGE_"

DOMAIN_SEPARATORS = {
    "leaf": DOMAIN_SEPARATOR_PREFIX + b"LEAF_V1",
    "node": DOMAIN_SEPARATOR_PREFIX + b"NODE_V1",
}

# Advertised to clients so they hash leaves the same way
LEAF_HASH_KIND = "H1(identity)"

# ============================================================================
# CIRCUIT SHAPE
# ============================================================================

DEFAULT_MERKLE_DEPTH = 20
MAX_MERKLE_DEPTH = 32
DEFAULT_N_MAX = 32
DEFAULT_MIN_THRESHOLD = 2

# Generation ranges: (generation_id, first_birth_year, last_birth_year)
GENERATION_TABLE = (
    (0, 1997, 2012),
    (1, 1981, 1996),
    (2, 1965, 1980),
    (3, 1946, 1964),
    (4, 1928, 1945),
)
GENERATION_NAMES = ("Gen Z", "Millennial", "Gen X", "Boomer", "Silent")

# ============================================================================
# NONCE SCOPES
# ============================================================================

SCOPE_SOCIAL = "social"
SCOPE_GENERATION = "generation"
SCOPE_AGGREGATE = "aggregate"
NONCE_SCOPES = frozenset({SCOPE_SOCIAL, SCOPE_GENERATION, SCOPE_AGGREGATE})

NONCE_RANDOM_BYTES = 32

# ============================================================================
# PUBLISHED CONFIG KEYS
# ============================================================================

CONFIG_VERIFIED_ROOT = "SOCIAL_VERIFIED_ROOT"
CONFIG_MERKLE_DEPTH = "SOCIAL_MERKLE_DEPTH"
CONFIG_MIN_THRESHOLD = "SOCIAL_MIN_VERIFIED_NEEDED"
CONFIG_GENERATION_HASH = "GENERATION_CONFIG_HASH"
CONFIG_VERSION = "CONFIG_VERSION"

HUMAN_STATUS_VERIFIED = "verified"


def is_field_element(value: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < FIELD_MODULUS


def validate_config() -> bool:
    """
    Validate constant relationships.

    Raises:
        AssertionError: If a constant is inconsistent
    """
    assert FIELD_MODULUS.bit_length() == 254, "Unexpected field size"
    assert 0 < DEFAULT_MERKLE_DEPTH <= MAX_MERKLE_DEPTH, "Invalid default depth"
    assert DEFAULT_N_MAX > 0, "Circuit arity must be positive"
    assert 0 < DEFAULT_MIN_THRESHOLD <= DEFAULT_N_MAX, "Threshold exceeds arity"
    assert len(GENERATION_TABLE) == len(GENERATION_NAMES), "Generation table mismatch"
    assert DOMAIN_SEPARATORS["leaf"] != DOMAIN_SEPARATORS["node"]
    return True


validate_config()
