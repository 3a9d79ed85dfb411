from .logger import logger, log_request, log_response, log_error

__all__ = ['logger', 'log_request', 'log_response', 'log_error']
