"""Request-time host routing."""

from hostplane.server.app import InitState, create_app, parse_bind

__all__ = ["InitState", "create_app", "parse_bind"]
