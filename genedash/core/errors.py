"""
Domain exceptions raised by services and translated to HTTP errors by the endpoints
"""


class GeneDashError(Exception):
    """Base class for application errors"""


class GeneticFileError(GeneDashError):
    """Uploaded file could not be parsed into genetic markers"""


class LLMError(GeneDashError):
    """The language model backend failed or returned an unusable reply"""


class ResponseParseError(GeneDashError):
    """Model output did not contain a recoverable structured record"""


class AnalysisNotFoundError(GeneDashError):
    """No analysis exists with the requested id"""

    def __init__(self, analysis_id: int):
        super().__init__(f"Analysis {analysis_id} not found")
        self.analysis_id = analysis_id
