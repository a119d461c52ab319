"""
Registry of parametric distribution families.

Each family maps a tag (e.g. "beta") to:
- parameter validators and defaults,
- its support as a function of the parameters,
- a scipy.stats distribution plus a translation of inferme parameters into
  scipy's (shape args, loc/scale) convention.

Families required by the tutorial models:
    uniform-real(low=0, high=1)     continuous on [low, high]
    beta(alpha, beta)               continuous on [0, 1]
    bernoulli(p)                    discrete on {0, 1}
    binomial(trials, p)             discrete on {0, ..., trials}

Additional families (normal, exponential, gamma, poisson, uniform-int) are
registered the same way; new ones are added with `register_family` without
touching the inference code.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Tuple
import numbers
import math

from scipy import stats

from inferme.errors import InvalidParameter

Validator = Callable[[str, Any], Any]
ScipyArgs = Tuple[Tuple[Any, ...], Dict[str, Any]]


# ============================================================================
# Parameter validators
# ============================================================================

def _real(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidParameter(f"Parameter '{name}' must be a real number. Got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise InvalidParameter(f"Parameter '{name}' must be finite. Got {value}")
    return value


def _positive(name: str, value: Any) -> float:
    value = _real(name, value)
    if value <= 0:
        raise InvalidParameter(f"Parameter '{name}' must be > 0. Got {value}")
    return value


def _probability(name: str, value: Any) -> float:
    value = _real(name, value)
    if not (0.0 <= value <= 1.0):
        raise InvalidParameter(f"Parameter '{name}' must be in [0, 1]. Got {value}")
    return value


def _integer(name: str, value: Any) -> int:
    value = _real(name, value)
    if not value.is_integer():
        raise InvalidParameter(f"Parameter '{name}' must be an integer. Got {value}")
    return int(value)


def _non_negative_int(name: str, value: Any) -> int:
    value = _integer(name, value)
    if value < 0:
        raise InvalidParameter(f"Parameter '{name}' must be a non-negative integer. Got {value}")
    return value


# ============================================================================
# Family
# ============================================================================

class Family:
    """
    A parametric distribution family backed by scipy.stats.

    Attributes
    ----------
    name : str
        Family tag, e.g. "binomial".
    rv : scipy.stats.rv_continuous or scipy.stats.rv_discrete
        Generic (unfrozen) scipy distribution.
    validators : Dict[str, Validator]
        Per-parameter validation/normalization.
    defaults : Dict[str, Any]
        Values used for parameters the caller omits.
    discrete : bool
        True for integer-valued families.
    """

    def __init__(
        self,
        name: str,
        rv,
        validators: Dict[str, Validator],
        scipy_args: Callable[[Mapping[str, Any]], ScipyArgs],
        support: Callable[[Mapping[str, Any]], Tuple[float, float]],
        discrete: bool,
        defaults: Optional[Dict[str, Any]] = None,
        check: Optional[Callable[[Mapping[str, Any]], None]] = None,
    ) -> None:
        self.name = name
        self.rv = rv
        self.validators = dict(validators)
        self.defaults = dict(defaults or {})
        self.discrete = discrete
        self._scipy_args = scipy_args
        self._support = support
        self._check = check

    def validate(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Validate and normalize parameters.

        Raises
        ------
        InvalidParameter
            On unknown, missing or out-of-domain parameters.
        """
        unknown = set(params) - set(self.validators)
        if unknown:
            raise InvalidParameter(
                f"Unknown parameter(s) {sorted(unknown)} for family '{self.name}'. "
                f"Expected {sorted(self.validators)}"
            )

        validated = {}
        for key, validator in self.validators.items():
            if key in params:
                value = params[key]
            elif key in self.defaults:
                value = self.defaults[key]
            else:
                raise InvalidParameter(
                    f"Missing parameter '{key}' for family '{self.name}'"
                )
            validated[key] = validator(key, value)

        if self._check is not None:
            self._check(validated)
        return validated

    def scipy_args(self, params: Mapping[str, Any]) -> ScipyArgs:
        return self._scipy_args(params)

    def support(self, params: Mapping[str, Any]) -> Tuple[float, float]:
        """Closed interval [low, high] containing every possible value."""
        return self._support(params)

    def __repr__(self) -> str:
        return f"Family(name={self.name!r}, discrete={self.discrete})"


_REGISTRY: Dict[str, Family] = {}


def register_family(family: Family, replace: bool = False) -> Family:
    """
    Register a family under its tag.

    Parameters
    ----------
    family : Family
        Family to register.
    replace : bool
        Allow replacing an existing registration. Default False.
    """
    if family.name in _REGISTRY and not replace:
        raise ValueError(f"Family '{family.name}' is already registered")
    _REGISTRY[family.name] = family
    return family


def get_family(name: str) -> Family:
    """Look up a family by tag (underscores and hyphens are interchangeable)."""
    key = name.lower().replace("_", "-")
    try:
        return _REGISTRY[key]
    except KeyError:
        raise InvalidParameter(
            f"Unknown distribution family '{name}'. Known families: {sorted(_REGISTRY)}"
        ) from None


def available_families() -> Tuple[str, ...]:
    return tuple(sorted(_REGISTRY))


# ============================================================================
# Built-in families
# ============================================================================

def _check_bounds(low_key: str, high_key: str, strict: bool) -> Callable[[Mapping[str, Any]], None]:
    def check(params: Mapping[str, Any]) -> None:
        low, high = params[low_key], params[high_key]
        if (strict and low >= high) or (not strict and low > high):
            relation = "<" if strict else "<="
            raise InvalidParameter(
                f"Parameters must satisfy {low_key} {relation} {high_key}. "
                f"Got {low_key}={low}, {high_key}={high}"
            )
    return check


register_family(Family(
    name="uniform-real",
    rv=stats.uniform,
    validators={"low": _real, "high": _real},
    defaults={"low": 0.0, "high": 1.0},
    scipy_args=lambda p: ((), {"loc": p["low"], "scale": p["high"] - p["low"]}),
    support=lambda p: (p["low"], p["high"]),
    discrete=False,
    check=_check_bounds("low", "high", strict=True),
))

register_family(Family(
    name="beta",
    rv=stats.beta,
    validators={"alpha": _positive, "beta": _positive},
    scipy_args=lambda p: ((p["alpha"], p["beta"]), {}),
    support=lambda p: (0.0, 1.0),
    discrete=False,
))

register_family(Family(
    name="bernoulli",
    rv=stats.bernoulli,
    validators={"p": _probability},
    defaults={"p": 0.5},
    scipy_args=lambda p: ((p["p"],), {}),
    support=lambda p: (0, 1),
    discrete=True,
))

register_family(Family(
    name="binomial",
    rv=stats.binom,
    validators={"trials": _non_negative_int, "p": _probability},
    defaults={"p": 0.5},
    scipy_args=lambda p: ((p["trials"], p["p"]), {}),
    support=lambda p: (0, p["trials"]),
    discrete=True,
))

register_family(Family(
    name="normal",
    rv=stats.norm,
    validators={"mu": _real, "sd": _positive},
    defaults={"mu": 0.0, "sd": 1.0},
    scipy_args=lambda p: ((), {"loc": p["mu"], "scale": p["sd"]}),
    support=lambda p: (-math.inf, math.inf),
    discrete=False,
))

register_family(Family(
    name="exponential",
    rv=stats.expon,
    validators={"rate": _positive},
    defaults={"rate": 1.0},
    scipy_args=lambda p: ((), {"scale": 1.0 / p["rate"]}),
    support=lambda p: (0.0, math.inf),
    discrete=False,
))

register_family(Family(
    name="gamma",
    rv=stats.gamma,
    validators={"shape": _positive, "scale": _positive},
    defaults={"scale": 1.0},
    scipy_args=lambda p: ((p["shape"],), {"scale": p["scale"]}),
    support=lambda p: (0.0, math.inf),
    discrete=False,
))

register_family(Family(
    name="poisson",
    rv=stats.poisson,
    validators={"lambda": _positive},
    defaults={"lambda": 1.0},
    scipy_args=lambda p: ((p["lambda"],), {}),
    support=lambda p: (0, math.inf),
    discrete=True,
))

register_family(Family(
    name="uniform-int",
    rv=stats.randint,
    validators={"lo": _integer, "hi": _integer},
    defaults={"lo": 0},
    # scipy's randint excludes its upper bound; "hi" is inclusive
    scipy_args=lambda p: ((p["lo"], p["hi"] + 1), {}),
    support=lambda p: (p["lo"], p["hi"]),
    discrete=True,
    check=_check_bounds("lo", "hi", strict=False),
))
