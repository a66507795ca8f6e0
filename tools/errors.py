from typing import Optional


class LeadCaptureError(Exception):
    """Base class for every error raised by the lead capture service."""

    code = "INTERNAL_ERROR"
    default_message = "An internal server error occurred"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message or self.default_message
        if code:
            self.code = code
        super().__init__(self.message)


class InternalError(LeadCaptureError):
    """Unexpected failure inside an orchestrated run."""


class ValidationError(LeadCaptureError):
    code = "VALIDATION_ERROR"
    default_message = "Invalid input provided"

    def __init__(self, field: str, reason: str, code: Optional[str] = None):
        self.field = field
        self.reason = reason
        super().__init__(reason, code)


# Airtable

class StoreError(LeadCaptureError):
    code = "AIRTABLE_ERROR"
    default_message = "An unexpected error occurred while communicating with Airtable"


class StoreConfigError(StoreError):
    code = "AIRTABLE_CONFIG_ERROR"
    default_message = "Airtable configuration is missing. Please check your environment variables."


class StoreAuthError(StoreError):
    code = "AIRTABLE_AUTH_ERROR"
    default_message = "Airtable authentication failed. Please check your access token."


class StoreNotFoundError(StoreError):
    code = "AIRTABLE_NOT_FOUND"
    default_message = "Airtable base or table not found. Please check your base ID and table name."


class StoreSchemaError(StoreError):
    code = "AIRTABLE_VALIDATION_ERROR"
    default_message = "Airtable validation error"


class StoreApiError(StoreError):
    code = "AIRTABLE_API_ERROR"
    default_message = "Airtable API error"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class StoreConnectionError(StoreError):
    code = "AIRTABLE_CONNECTION_ERROR"
    default_message = "Unable to connect to Airtable. Please check your internet connection."


class StoreUnknownError(StoreError):
    pass


class StoreInvalidArgument(StoreError, ValueError):
    code = "AIRTABLE_INVALID_ARGUMENT"
    default_message = "Invalid argument for Airtable request"


# OpenAI

class EnrichmentError(LeadCaptureError):
    code = "OPENAI_ERROR"
    default_message = "An unexpected error occurred while enriching lead with AI"


class EnrichmentConfigError(EnrichmentError):
    code = "OPENAI_CONFIG_ERROR"
    default_message = "OpenAI configuration is missing. Please check your environment variables."


class EnrichmentProviderError(EnrichmentError):
    code = "OPENAI_API_ERROR"
    default_message = "OpenAI API error"


class EnrichmentParseError(EnrichmentError):
    code = "OPENAI_PARSE_ERROR"
    default_message = "Failed to parse OpenAI response"


class EnrichmentShapeError(EnrichmentError):
    code = "OPENAI_SHAPE_ERROR"
    default_message = "Invalid enrichment response structure"
