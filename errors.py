"""Error kinds surfaced by the analysis engine."""


class AnalysisError(Exception):
    """Base class for every failure the engine reports to its caller."""

    kind = "AnalysisError"
    user_message = "The resume could not be analyzed."

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.user_message)
        self.detail = detail


class UnsupportedFormat(AnalysisError):
    kind = "UnsupportedFormat"
    user_message = "Please upload a PDF, DOC, or DOCX file."


class OversizedDocument(AnalysisError):
    kind = "OversizedDocument"
    user_message = "The file is larger than the maximum upload size."


class CorruptDocument(AnalysisError):
    kind = "CorruptDocument"
    user_message = "The file could not be read. It may be damaged or password protected."


class EmptyDocument(AnalysisError):
    kind = "EmptyDocument"
    user_message = "No readable text was found in the file."


class TaxonomyUnavailable(AnalysisError):
    """Skill reference data could not be loaded; the engine cannot start."""

    kind = "TaxonomyUnavailable"
    user_message = "The analysis service is not available right now."


INPUT_ERRORS = (UnsupportedFormat, OversizedDocument, CorruptDocument, EmptyDocument)
