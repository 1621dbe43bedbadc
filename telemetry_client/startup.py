from telemetry_client.core.config import Settings
from telemetry_client.core.logger import get_logger
from telemetry_client.core.logging_config import configure_logging

logger = get_logger("startup", auto_configure=False)


def initialize_logging(settings: Settings):
    """Install the JSON log handler described by ``settings``."""
    root = configure_logging(
        service=settings.otel_service_name,
        level=settings.effective_log_level,
        environment=settings.app_environment,
        redaction_patterns=settings.app_log_redaction_patterns,
    )
    logger.info(
        "logging_initialized",
        extra={"level": settings.effective_log_level, "service": settings.otel_service_name},
    )
    return root
