"""Error kinds raised by the model-search engine.

Every error derives from :class:`ModelSearchError` so callers can catch the
whole family at once.  :class:`ConfigurationError` and :class:`DataError`
also derive from :class:`ValueError` because they describe bad arguments.
"""

from typing import Any, Optional, Sequence


class ModelSearchError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(ModelSearchError, ValueError):
    """A search was configured with values it cannot run with.

    Raised before any fitting starts (invalid split fraction, ``k`` larger
    than the training set, empty grids, bad fold counts).
    """


class DataError(ModelSearchError, ValueError):
    """Input data violates the dataset contract.

    Examples: mismatched lengths passed to scoring, a predictor that is
    not part of the dataset schema, missing or non-numeric values.
    """


class FitFailure(ModelSearchError):
    """The linear model fitter could not produce a solution.

    Args:
        message: Human-readable reason.
        formula: Predictor names of the model that failed to fit.
    """

    def __init__(self, message: str, formula: Optional[Sequence[str]] = None) -> None:
        self.formula = tuple(formula) if formula is not None else ()
        if self.formula:
            message = f"{message} [formula: {' + '.join(self.formula)}]"
        super().__init__(message)


class SearchCancelled(ModelSearchError):
    """A search was aborted by its cancellation token.

    Args:
        stage: Name of the search stage that observed the cancellation.
        partial: Results accumulated before cancellation (trajectory or
            evaluation table).  They remain valid and can be inspected.
    """

    def __init__(self, stage: str, partial: Any = None) -> None:
        self.stage = stage
        self.partial = partial
        super().__init__(f"Search cancelled during {stage}.")
