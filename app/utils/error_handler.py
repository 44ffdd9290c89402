"""
Error taxonomy for the prompt-run engine.

Engine-level exceptions carry a severity and a category for logging and an
HTTP status for the API layer. Provider-call failures are not raised here;
the provider adapter returns them as typed LLMError values.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.utils.logger import get_logger

logger = get_logger(__name__)


class ErrorSeverity(str, Enum):
    """Error severity levels for categorization and alerting"""

    LOW = "low"  # Minor issues, logging only
    MEDIUM = "medium"  # Important issues, monitoring alerts
    HIGH = "high"  # Critical issues, immediate attention
    CRITICAL = "critical"  # System-threatening issues


class ErrorCategory(str, Enum):
    """Error categories for systematic handling"""

    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    PLATFORM = "platform"
    DATABASE = "database"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    SYSTEM = "system"


class PromptRunError(Exception):
    """Base exception for prompt-run engine errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        technical_details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.category = category
        self.technical_details = technical_details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "category": self.category.value}


class ProviderConfigurationError(PromptRunError):
    """Raised when a provider is unknown or has no credentials"""

    def __init__(self, provider: str, message: str, unknown: bool = False, **kwargs):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.VALIDATION if unknown else ErrorCategory.CONFIGURATION,
            technical_details={"provider": provider},
            **kwargs,
        )
        self.provider = provider
        # Unknown id is a bad request; missing key is a server-side gap
        self.status_code = 400 if unknown else 503


class DomainNotFoundError(PromptRunError):
    status_code = 404

    def __init__(self, domain_id: str):
        super().__init__(
            f"Domain not found: {domain_id}",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.NOT_FOUND,
            technical_details={"domain_id": domain_id},
        )
        self.domain_id = domain_id


class PromptNotFoundError(PromptRunError):
    status_code = 404

    def __init__(self, prompt_id: str):
        super().__init__(
            f"Prompt not found: {prompt_id}",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.NOT_FOUND,
            technical_details={"prompt_id": prompt_id},
        )
        self.prompt_id = prompt_id


class NoActivePromptsError(PromptRunError):
    status_code = 400

    def __init__(self, domain_id: str):
        super().__init__(
            "No active prompts to run",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.VALIDATION,
            technical_details={"domain_id": domain_id},
        )
        self.domain_id = domain_id


class BatchAlreadyRunningError(PromptRunError):
    """Raised when the status claim for a new batch loses to a running one"""

    status_code = 409

    def __init__(self, domain_id: str):
        super().__init__(
            "A prompt run batch is already running for this domain",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.CONFLICT,
            technical_details={"domain_id": domain_id},
        )
        self.domain_id = domain_id


async def prompt_run_error_handler(request: Request, exc: PromptRunError) -> JSONResponse:
    """Map engine errors to JSON responses"""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        path=str(request.url.path),
        method=request.method,
        error_type=type(exc).__name__,
        error_message=exc.message,
        category=exc.category.value,
        severity=exc.severity.value,
        **exc.technical_details,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PromptRunError, prompt_run_error_handler)
