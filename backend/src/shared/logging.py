"""
Logging utilities for Lambda handlers.
"""
import logging
import json

# Configure logger
logger = logging.getLogger('microcoins')
logger.setLevel(logging.INFO)

# Add handler if not already configured
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(handler)


def log_event(event: dict) -> None:
    """Log incoming Lambda event for debugging."""
    try:
        # Avoid logging sensitive data
        safe_event = {k: v for k, v in event.items() if k not in ['body', 'headers']}
        logger.info(f"Lambda event: {json.dumps(safe_event, default=str)}")
    except Exception as e:
        logger.warning(f"Could not log event: {e}")


def log_transition(action: str, **fields) -> None:
    """
    Log one committed ledger transition as a single structured line.

    Example:
        log_transition('submission.approved', submissionId='s1', coins=10)
    """
    logger.info(f"{action} {json.dumps(fields, default=str, sort_keys=True)}")


def log_refusal(action: str, error: Exception, **fields) -> None:
    """Log a ledger operation that was refused before or during its write."""
    logger.warning(f"{action} refused ({type(error).__name__}): {error} {json.dumps(fields, default=str, sort_keys=True)}")
