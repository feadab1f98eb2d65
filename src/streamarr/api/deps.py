from fastapi import Request


def get_services(request: Request):
    """The ``Services`` bundle built by ``streamarr.app.create_app``."""
    return request.app.state.services
