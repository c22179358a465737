"""Permit budget estimation from reported capacity."""

import math

DEFAULT_OVERHEAD = 1.0


def estimate_permits(consumed_units: float, overhead: float = DEFAULT_OVERHEAD) -> int:
    """Return the permits to request for the next page.

    The capacity reported for a page includes a fixed overhead beyond the
    marginal cost of the next fetch, so it is subtracted before flooring.
    The result is never below one permit.

    >>> [estimate_permits(u) for u in (0.5, 1.0, 2.0, 10.0)]
    [1, 1, 1, 9]
    """
    return max(math.floor(consumed_units - overhead), 1)
