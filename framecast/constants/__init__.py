from framecast.constants.error_codes import ERROR_CODES, get_error_spec, is_retryable

__all__ = ["ERROR_CODES", "get_error_spec", "is_retryable"]
