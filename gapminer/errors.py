class GapminerError(Exception):
    """Base class for gapminer errors."""


class TaggerUnavailable(GapminerError):
    """The primary tagger could not be obtained; analysis cannot proceed."""


class SecondaryTaggerUnavailable(GapminerError):
    """The secondary tagger is missing or failed to construct."""


class EmbeddingLoadFailure(GapminerError):
    """An embedding source could not be fetched or parsed."""
