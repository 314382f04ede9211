from dataclasses import dataclass


@dataclass
class RequestContext:
    """Request-scoped context of the authenticated caller"""
    user_id: str
