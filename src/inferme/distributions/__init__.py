"""
Distribution adapter.

**Families (families.py):**
- Registry of scipy.stats-backed parametric families
- Parameter validation and defaults
- Support and discreteness per family

**Distributions (distribution.py):**
- Immutable Distribution values
- Sampling from an explicit random source
- Log-density evaluation with support checks
"""

from inferme.distributions.families import (
    Family,
    available_families,
    get_family,
    register_family,
)
from inferme.distributions.distribution import (
    Distribution,
    distr,
    log_density,
    make,
    sample,
)

__all__ = [
    # Families
    "Family",
    "available_families",
    "get_family",
    "register_family",
    # Distributions
    "Distribution",
    "distr",
    "log_density",
    "make",
    "sample",
]
