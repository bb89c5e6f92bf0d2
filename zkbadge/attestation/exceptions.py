"""
Exceptions for badge attestation.

Verification, binding and aggregation failures each have their own class so
callers can map them to distinct responses.
"""


class BadgeError(Exception):
    """Base exception for badge attestation errors."""

    pass


class ConfigurationError(BadgeError):
    """Invalid settings, missing verification key or missing binary."""

    pass


class FormatError(BadgeError):
    """Malformed public signals or circuit input shape."""

    pass


class CapacityExceeded(FormatError):
    """More inclusion proofs than circuit slots."""

    pass


class DuplicateLeaf(FormatError):
    """The same leaf occupies more than one present circuit slot."""

    pass


class CryptoVerificationFailed(BadgeError):
    """The verifier ran and rejected the proof."""

    pass


class BindingError(BadgeError):
    """A verified proof could not be bound to the principal."""

    pass


class ThresholdNotMet(BindingError):
    """The circuit's qualifying flag is not set."""

    pass


class ConfigMismatch(BindingError):
    """Root, threshold or config hash disagree with the published config."""

    pass


class NonceInvalid(BindingError):
    """Unknown, wrong-scope or already consumed session nonce."""

    pass


class IdentityMismatch(BindingError):
    """Proof identity does not belong to the authenticated principal."""

    pass


class ExternalProcessError(BadgeError):
    """Base for heavy-proof backend errors."""

    pass


class ExternalProcessUnavailable(ExternalProcessError):
    """Heavy-proof backend is not configured or not reachable."""

    pass


class ExternalProcessFailed(ExternalProcessError):
    """Heavy-proof backend ran but errored or returned unparsable output."""

    pass
