"""Chart view state and screen mapping.

Typical usage:
    from vfrplan.view import ViewMapper

    mapper = ViewMapper(georef)
    view = mapper.pan(mapper.initial_view(800, 600), 40, -20)
"""

from vfrplan.view.mapper import ViewMapper
from vfrplan.view.view_state import ViewLimits, ViewState

__all__ = [
    "ViewLimits",
    "ViewMapper",
    "ViewState",
]
