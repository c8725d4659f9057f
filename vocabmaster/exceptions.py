"""Exception hierarchy shared by the lookup, translation and storage layers."""


class VocabMasterError(Exception):
    """Base class for all VocabMaster errors."""


class ProviderMiss(VocabMasterError):
    """A lookup tier found nothing usable.

    Raised inside provider tiers for not-found responses, transport errors and
    unparsable payloads alike. The resolver turns it into a fall-through and
    never lets it reach the caller.
    """


class LLMError(VocabMasterError):
    """An LLM request failed (HTTP error, timeout, empty reply)."""


class AuthError(LLMError):
    """LLM credentials are missing or were rejected (401/403)."""


class ValidationError(VocabMasterError):
    """An import payload could not be parsed or holds no usable records."""


class PersistenceIOError(VocabMasterError):
    """Reading or writing the word store failed."""
