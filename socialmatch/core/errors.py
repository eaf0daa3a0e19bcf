"""
Error taxonomy for the similarity matching core.
"""


class SocialMatchError(Exception):
    """Base class for matching core errors."""
    pass


class ProviderUnavailable(SocialMatchError):
    """The embedding provider failed, timed out, or returned an unusable vector."""
    pass


class MalformedVector(SocialMatchError):
    """A vector has the wrong type, length or dimension."""
    pass


class EmptyInput(SocialMatchError):
    """Text was empty or whitespace; there is nothing to embed."""
    pass


class InvalidEntity(SocialMatchError):
    """A referenced user or post does not exist."""

    def __init__(self, kind: str, entity_id: int):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} {entity_id} not found")
