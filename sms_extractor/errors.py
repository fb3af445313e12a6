"""Exception types for conditions that are genuinely exceptional.

A message that simply does not match any pattern is never an error; parsers
return None for that case.
"""


class SmsExtractorError(Exception):
    """Base class for errors raised by this package."""


class ModelLoadError(SmsExtractorError):
    """The model file is missing, unreadable or violates the tensor contract."""


class InferenceTimeoutError(SmsExtractorError):
    """Model inference did not finish within the caller's deadline."""


class ProviderAlreadySetError(SmsExtractorError):
    """The process-wide enrichment oracle slot was already filled."""
