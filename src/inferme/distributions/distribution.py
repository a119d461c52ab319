"""
Distribution adapter: immutable distribution values over the family registry.

A Distribution is a family tag plus validated parameters. It samples from an
explicit numpy Generator and evaluates log-densities (log-pmf for discrete
families), raising OutOfSupport for values outside the support.

    >>> coin = make("bernoulli", p=0.5)
    >>> rng = np.random.default_rng(0)
    >>> sample(coin, rng) in (0, 1)
    True
    >>> log_density(coin, 1)
    -0.6931...
"""

from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple, Union
import math
import numbers

import numpy as np

from inferme.distributions.families import Family, get_family
from inferme.errors import OutOfSupport

Number = Union[int, float]


class Distribution:
    """
    Parametric probability distribution.

    Attributes
    ----------
    family : str
        Family tag (e.g. "beta").
    params : Mapping[str, Any]
        Validated parameters, read-only.
    discrete : bool
        True if values are integers.
    support : Tuple[float, float]
        Closed interval containing every possible value.
    """

    __slots__ = ("_family", "_params", "_args", "_kwds", "_support")

    def __init__(self, family: str, params: Optional[Mapping[str, Any]] = None) -> None:
        """
        Initialize distribution.

        Parameters
        ----------
        family : str
            Registered family tag.
        params : Mapping[str, Any], optional
            Parameter values. Omitted parameters take the family's defaults.

        Raises
        ------
        InvalidParameter
            If the family is unknown or a parameter violates its domain.
        """
        spec = get_family(family)
        validated = spec.validate(params or {})
        self._family: Family = spec
        self._params = MappingProxyType(validated)
        self._args, self._kwds = spec.scipy_args(validated)
        self._support = spec.support(validated)

    @property
    def family(self) -> str:
        return self._family.name

    @property
    def params(self) -> Mapping[str, Any]:
        return self._params

    @property
    def discrete(self) -> bool:
        return self._family.discrete

    @property
    def support(self) -> Tuple[float, float]:
        return self._support

    def in_support(self, value: Any) -> bool:
        """Check whether `value` is a possible outcome."""
        if isinstance(value, bool):
            value = int(value)
        if isinstance(value, np.generic):
            value = value.item()
        if not isinstance(value, numbers.Real):
            return False
        if math.isnan(value):
            return False
        low, high = self._support
        if not (low <= value <= high):
            return False
        if self.discrete and not float(value).is_integer():
            return False
        return True

    def sample(self, rng: np.random.Generator) -> Number:
        """
        Draw one value.

        Parameters
        ----------
        rng : np.random.Generator
            Random source, consumed by this call.

        Returns
        -------
        value : int or float
            int for discrete families, float otherwise.
        """
        value = self._family.rv.rvs(*self._args, **self._kwds, random_state=rng)
        if self.discrete:
            return int(value)
        return self._inward(float(value))

    def _inward(self, value: float) -> float:
        """Move a draw that underflowed onto a singular endpoint one ulp inside."""
        low, high = self._support
        if value != low and value != high:
            return value
        if math.isfinite(self._family.rv.logpdf(value, *self._args, **self._kwds)):
            return value
        return float(np.nextafter(value, high if value == low else low))

    def log_density(self, value: Any) -> float:
        """
        Log-density (continuous) or log-probability (discrete) of `value`.

        Raises
        ------
        OutOfSupport
            If `value` is not a possible outcome.
        """
        if not self.in_support(value):
            raise OutOfSupport(
                f"Value {value!r} is outside the support of {self!r} "
                f"(support {list(self._support)}{', integers' if self.discrete else ''})"
            )
        rv = self._family.rv
        if self.discrete:
            return float(rv.logpmf(int(value), *self._args, **self._kwds))
        return float(rv.logpdf(float(value), *self._args, **self._kwds))

    def mean(self) -> float:
        return float(self._family.rv.mean(*self._args, **self._kwds))

    def _key(self) -> Tuple:
        return (self.family, tuple(sorted(self._params.items())))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Distribution):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __setattr__(self, name: str, value: Any) -> None:
        if hasattr(self, "_support"):
            raise AttributeError("Distribution is immutable")
        object.__setattr__(self, name, value)

    def __repr__(self) -> str:
        params = ", ".join(f"{k}={v}" for k, v in self._params.items())
        return f"Distribution({self.family}: {params})"


def make(family: str, params: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Distribution:
    """
    Build a Distribution from a family tag and parameters.

    Parameters may be passed as a mapping, as keyword arguments, or both
    (keywords win). Use the mapping form for names that are Python keywords,
    e.g. make("poisson", {"lambda": 3.0}).

    Raises
    ------
    InvalidParameter
        If the family is unknown or a parameter violates its domain.
    """
    merged = dict(params or {})
    merged.update(kwargs)
    return Distribution(family, merged)


# Tutorial spelling: (distr :binomial {:trials 5 :p p})
distr = make


def sample(distribution: Distribution, rng: np.random.Generator) -> Number:
    """Draw one value from `distribution` using `rng`."""
    return distribution.sample(rng)


def log_density(distribution: Distribution, value: Any) -> float:
    """Log-density of `value`; raises OutOfSupport outside the support."""
    return distribution.log_density(value)
