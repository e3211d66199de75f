from .log_sanitizer import sanitize_for_log, sanitize_dict_for_log
from .response import standard_response

__all__ = ["sanitize_for_log", "sanitize_dict_for_log", "standard_response"]
