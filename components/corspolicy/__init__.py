from .contracts import CorsPolicy, Environment, wildcard_origin_regex
from .selector import select_cors_policy, install_cors

__all__ = [
    "CorsPolicy",
    "Environment",
    "wildcard_origin_regex",
    "select_cors_policy",
    "install_cors",
]
