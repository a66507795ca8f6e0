from typing import Dict

# Response messages grouped by category. Each entry is the base of the
# JSON envelope returned by the API: {"status", "message", "code"}.
MESSAGES: Dict[str, Dict[str, Dict[str, str]]] = {
    "SUCCESS": {
        "LEAD_CAPTURED": {
            "status": "success",
            "message": "Lead captured successfully",
            "code": "LEAD_CAPTURED",
        },
        "LEAD_RETRIEVED": {
            "status": "success",
            "message": "Lead retrieved successfully",
            "code": "LEAD_RETRIEVED",
        },
        "LEAD_PROCESSING": {
            "status": "processing",
            "message": "Lead accepted for processing",
            "code": "LEAD_PROCESSING",
        },
    },
    "VALIDATION": {
        "INVALID_INPUT": {
            "status": "error",
            "message": "Invalid input provided",
            "code": "VALIDATION_ERROR",
        },
        "MISSING_REQUIRED_FIELD": {
            "status": "error",
            "message": "Missing required field",
            "code": "MISSING_REQUIRED_FIELD",
        },
        "INVALID_EMAIL": {
            "status": "error",
            "message": "Invalid email format",
            "code": "INVALID_EMAIL",
        },
    },
    "EXTERNAL_SERVICE": {
        "AIRTABLE_ERROR": {
            "status": "error",
            "message": "Failed to save lead to Airtable",
            "code": "AIRTABLE_ERROR",
        },
        "AIRTABLE_CONNECTION_ERROR": {
            "status": "error",
            "message": "Unable to connect to Airtable service",
            "code": "AIRTABLE_CONNECTION_ERROR",
        },
        "SERVICE_UNAVAILABLE": {
            "status": "error",
            "message": "External service is currently unavailable",
            "code": "SERVICE_UNAVAILABLE",
        },
    },
    "SERVER": {
        "INTERNAL_ERROR": {
            "status": "error",
            "message": "An internal server error occurred",
            "code": "INTERNAL_ERROR",
        },
        "PROCESSING_ERROR": {
            "status": "error",
            "message": "Error processing request",
            "code": "PROCESSING_ERROR",
        },
    },
    "CLIENT": {
        "NOT_FOUND": {
            "status": "error",
            "message": "Resource not found",
            "code": "NOT_FOUND",
        },
        "SESSION_NOT_FOUND": {
            "status": "error",
            "message": "Progress session not found or already completed",
            "code": "SESSION_NOT_FOUND",
        },
        "BAD_REQUEST": {
            "status": "error",
            "message": "Bad request",
            "code": "BAD_REQUEST",
        },
    },
}


def get_message(category: str, key: str) -> Dict[str, str]:
    """Look up a message by category and key, falling back to INTERNAL_ERROR."""
    message = MESSAGES.get(category, {}).get(key)
    if message is None:
        return dict(MESSAGES["SERVER"]["INTERNAL_ERROR"])
    return dict(message)


def custom_error(message: str, code: str = "CUSTOM_ERROR") -> Dict[str, str]:
    return {"status": "error", "message": message, "code": code}
