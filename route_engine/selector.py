"""
Route Selector

Picks the route to tunnel over.
"""

from typing import Sequence

from .errors import NoRoutesAvailable
from .models import Route


def select_best(catalog: Sequence[Route]) -> Route:
    """
    Select the top-ranked route.

    The catalog is trusted to be ranked already, so the choice always
    matches what was last published.

    Raises:
        NoRoutesAvailable: the catalog is empty
    """
    if not catalog:
        raise NoRoutesAvailable()
    return catalog[0]
