"""Error taxonomy for the dose journal.

Every error carries the name of the component that observed it. Callers
match on the class (or one of the category base classes) instead of on
message text.
"""

from __future__ import annotations


class DoseJournalError(Exception):
    """Base class for every error raised by the journal services."""

    message = "dose journal error"

    def __init__(self, detail: str = "", *, component: str | None = None):
        self.detail = detail
        self.component = component
        super().__init__(self._render())

    def _render(self) -> str:
        text = self.message
        if self.detail:
            text = f"{text}: {self.detail}"
        if self.component:
            text = f"{self.component}: {text}"
        return text


# --- Categories ---

class ValidationError(DoseJournalError):
    message = "invalid input"


class ResourceLimitError(DoseJournalError):
    message = "resource limit reached"


class NotFoundError(DoseJournalError):
    message = "not found"


class SemanticError(DoseJournalError):
    message = "cannot compute"


class FetchError(DoseJournalError):
    message = "fetch failed"


class StoreError(DoseJournalError):
    """A driver or I/O failure passed through from the database."""

    message = "store error"


class TransactionAbortedError(StoreError):
    message = "transaction already failed, rolled back"


class DeadlineExceededError(DoseJournalError):
    message = "context deadline exceeded"


# --- Validation ---

class ComboInputError(ValidationError):
    message = "combo of input parameters not in database"


class InvalidColInputError(ValidationError):
    message = "an invalid column name has been given"


class NoNametypeError(ValidationError):
    message = "no nameType"


class WrongAmountNamesError(ValidationError):
    message = "wrong amount of names"


class WrongAmountUnitInputsError(ValidationError):
    message = "wrong amount of unitInputs"


class InvalidValueError(ValidationError):
    message = "invalid value"


# --- Resource limits ---

class MaxLogsPerUserError(ResourceLimitError):
    message = "reached the maximum entries per user"


# --- Not found ---

class NoLogsError(NotFoundError):
    message = "no logs returned for user"


class NoDrugInfoTableError(NotFoundError):
    message = "no such drug in the info (source) table"


class LogDoesntExistError(NotFoundError):
    message = "log doesn't exist"


class NoUsersReturnedError(NotFoundError):
    message = "no usernames have been returned"


class EmptyListDrugNamesError(NotFoundError):
    message = "empty list of drug names from table"


class NoNamesReturnedError(NotFoundError):
    message = "no names returned"


# --- Semantic ---

class LoggedRouteInfoError(SemanticError):
    message = "dose route doesn't match anything in info table"


class LoggedUnitsInfoError(SemanticError):
    message = "dose units don't match anything in info table"


class DoseBelowThresholdError(SemanticError):
    message = "the dosage is below the source threshold"


class NoDensitySubstanceError(SemanticError):
    message = "got no density for substance"


class ConvResultIsZeroError(SemanticError):
    message = "conversion result is zero"


class RetConvertUnitEmptyError(SemanticError):
    message = "returned convertUnit is empty"


class ConversionFailedError(SemanticError):
    """Raised by the write coordinator when the unit converter rejects a dose.

    The converter's own error is kept as ``__cause__`` and as ``cause``.
    """

    message = "error converting units"

    def __init__(self, detail: str = "", *, component: str | None = None, cause: DoseJournalError | None = None):
        self.cause = cause
        super().__init__(detail, component=component)


# --- Fetch ---

class NoROAForSubsError(FetchError):
    message = "no route of administration for substance"


class PsychonautwikiEmptyRespError(FetchError):
    message = "Psychonautwiki returned nothing"


class StructSliceEmptyError(FetchError):
    message = "struct slice is empty, nothing added to DB"
