import functools
import inspect

from loguru import logger


def safe_func_wrapper(func):
    """
    A decorator that logs coroutine entry, exit, and exceptions.

    Features:
    - Logs function name and parameters before execution
    - Logs and re-raises exceptions unchanged
    - Logs a success message after successful execution
    - Preserves function metadata and return values
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        func_name = func.__name__

        sig = inspect.signature(func)
        bound_args = sig.bind(*args, **kwargs)
        bound_args.apply_defaults()
        params = {k: v for k, v in bound_args.arguments.items() if k != "self"}

        logger.info(f"Entering {func_name} with params: {params}")

        try:
            result = await func(*args, **kwargs)
            logger.info(f"{func_name} succeeded. Exiting..")
            return result
        except Exception as e:
            logger.error(f"{func_name} raised {type(e).__name__}: {e}")
            raise

    return wrapper
