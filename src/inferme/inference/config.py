"""
Inference configuration.

Recognized options (mapping keys may use hyphens or underscores):

    samples            target number of traces (default 1000)
    thin               MH: keep every N-th post-burn-in sweep (default 1)
    burn               MH: sweeps discarded before collecting (default 0)
    steps              MH: proposal scale per latent variable, in
                       declaration order; one value is broadcast (default 0.1)
    variables          MH: latent variables to update (default all)
    max_attempts       rejection: proposal budget (required); MH: budget for
                       finding a valid initial state (default 1000)
    likelihood_bound   rejection: upper bound on the total observation
                       likelihood, enables weighted rejection
    strict             forward: refuse models with observation terms
                       (default False)
    seed               random seed (default None: fresh entropy)
    random_source      bit generator tag (default "pcg64")
    timeout            seconds before returning a partial result
    cancel_event       threading.Event; when set, a partial result is returned
"""

from typing import Any, Mapping, Optional, Sequence, Tuple
import math

from inferme.errors import InvalidConfiguration

DEFAULT_SAMPLES = 1000
DEFAULT_STEP = 0.1
DEFAULT_INIT_ATTEMPTS = 1000

OPTION_NAMES = (
    "samples", "thin", "burn", "steps", "variables", "max_attempts",
    "likelihood_bound", "strict", "seed", "random_source", "timeout", "cancel_event",
)


class InferenceConfig:
    """
    Validated options for one inference call.

    `samples` is optional and defaults to 1000: a call such as
    `infer("rejection-sampling", model, {"max_attempts": 100000})` that names
    no sample count collects 1000 traces.
    """

    def __init__(
        self,
        samples: int = DEFAULT_SAMPLES,
        thin: int = 1,
        burn: int = 0,
        steps: Optional[Sequence[float]] = None,
        variables: Optional[Sequence[str]] = None,
        max_attempts: Optional[int] = None,
        likelihood_bound: Optional[float] = None,
        strict: bool = False,
        seed: Optional[int] = None,
        random_source: str = "pcg64",
        timeout: Optional[float] = None,
        cancel_event: Optional[Any] = None,
    ) -> None:
        """
        Initialize configuration.

        Raises
        ------
        InvalidConfiguration
            If any option is out of range.
        """
        if isinstance(samples, bool) or not isinstance(samples, int) or samples < 0:
            raise InvalidConfiguration(f"samples must be a non-negative integer. Got {samples!r}")
        if isinstance(thin, bool) or not isinstance(thin, int) or thin < 1:
            raise InvalidConfiguration(f"thin must be an integer >= 1. Got {thin!r}")
        if isinstance(burn, bool) or not isinstance(burn, int) or burn < 0:
            raise InvalidConfiguration(f"burn must be a non-negative integer. Got {burn!r}")
        if max_attempts is not None and (
            isinstance(max_attempts, bool) or not isinstance(max_attempts, int) or max_attempts < 1
        ):
            raise InvalidConfiguration(f"max_attempts must be an integer >= 1. Got {max_attempts!r}")
        if steps is not None:
            steps = tuple(float(s) for s in ([steps] if isinstance(steps, (int, float)) else steps))
            if not steps or any(not math.isfinite(s) or s <= 0 for s in steps):
                raise InvalidConfiguration(f"steps must be positive finite numbers. Got {steps}")
        if likelihood_bound is not None and not (likelihood_bound > 0 and math.isfinite(likelihood_bound)):
            raise InvalidConfiguration(
                f"likelihood_bound must be positive and finite. Got {likelihood_bound!r}"
            )
        if timeout is not None and not timeout > 0:
            raise InvalidConfiguration(f"timeout must be > 0 seconds. Got {timeout!r}")
        if cancel_event is not None and not hasattr(cancel_event, "is_set"):
            raise InvalidConfiguration("cancel_event must provide is_set(), e.g. threading.Event")

        self.samples = samples
        self.thin = thin
        self.burn = burn
        self.steps: Optional[Tuple[float, ...]] = steps
        self.variables = tuple(variables) if variables is not None else None
        self.max_attempts = max_attempts
        self.likelihood_bound = likelihood_bound
        self.strict = strict
        self.seed = seed
        self.random_source = random_source
        self.timeout = timeout
        self.cancel_event = cancel_event

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "InferenceConfig":
        """
        Build a configuration from a mapping such as
        {"samples": 10000, "thin": 100, "steps": [0.2]}.

        Raises
        ------
        InvalidConfiguration
            On unknown keys or invalid values.
        """
        normalized = {}
        for key, value in options.items():
            normalized[str(key).lstrip(":").replace("-", "_")] = value
        unknown = set(normalized) - set(OPTION_NAMES)
        if unknown:
            raise InvalidConfiguration(f"Unknown configuration option(s): {sorted(unknown)}")
        return cls(**normalized)

    @classmethod
    def coerce(cls, config: Any) -> "InferenceConfig":
        """Accept None, a mapping, or an InferenceConfig."""
        if config is None:
            return cls()
        if isinstance(config, InferenceConfig):
            return config
        if isinstance(config, Mapping):
            return cls.from_mapping(config)
        raise InvalidConfiguration(
            f"config must be a mapping or InferenceConfig. Got {type(config).__name__}"
        )

    def steps_for(self, latent_names: Sequence[str]) -> Tuple[float, ...]:
        """
        Proposal scales aligned with `latent_names`.

        Raises
        ------
        InvalidConfiguration
            If the number of steps matches neither 1 nor the number of latents.
        """
        n = len(latent_names)
        if self.steps is None:
            return (DEFAULT_STEP,) * n
        if len(self.steps) == n:
            return self.steps
        if len(self.steps) == 1:
            return self.steps * n
        raise InvalidConfiguration(
            f"steps has {len(self.steps)} entries but the model has {n} latent "
            f"variable(s) {list(latent_names)}"
        )

    def __repr__(self) -> str:
        return (
            f"InferenceConfig(samples={self.samples}, thin={self.thin}, burn={self.burn}, "
            f"steps={self.steps}, max_attempts={self.max_attempts}, seed={self.seed})"
        )
