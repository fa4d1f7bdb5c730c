"""
Request dependencies
"""

from fastapi import Request

from call_relay.context import AppContext


def get_context(request: Request) -> AppContext:
    """The AppContext built in the application lifespan"""
    return request.app.state.context
