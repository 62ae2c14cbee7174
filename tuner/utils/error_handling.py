import functools
import logging
from tuner.utils.exceptions import TunerException


def handle_engine_errors(operation_name: str):
    """Decorator for consistent error handling in engines."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except TunerException:
                # Re-raise our custom exceptions
                raise
            except Exception as e:
                # Wrap unexpected errors
                logger = args[0].logger if hasattr(args[0], 'logger') else logging.getLogger()
                logger.error(f"{operation_name} failed: {e}", exc_info=True)
                raise TunerException(f"{operation_name} failed: {str(e)}") from e
        return wrapper
    return decorator


def describe_exception(exc: BaseException) -> str:
    """Single-line description used for fit notes."""
    message = str(exc).strip().splitlines()
    text = message[0] if message else ""
    name = type(exc).__name__
    return f"{name}: {text}" if text else name
