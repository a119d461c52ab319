"""
Exception taxonomy for inferme.

Errors fall into three groups:
- Construction errors (InvalidParameter, DependencyError, DuplicateNameError,
  InvalidConfiguration): raised immediately, never retried.
- Evaluation errors (OutOfSupport): raised by density evaluation. Inside
  Metropolis-Hastings they are recovered as a -inf log-density.
- Strategy errors (UnsupportedModelError, NonTerminationRisk): a strategy
  cannot handle a model, or gave up after its attempt budget.
"""


class InfermeError(Exception):
    """Base class for all inferme errors."""


class InvalidParameter(InfermeError, ValueError):
    """Distribution parameters violate the family's domain."""


class OutOfSupport(InfermeError, ValueError):
    """A value lies outside a distribution's support."""


class ModelBuildError(InfermeError, ValueError):
    """A model description cannot be turned into an execution plan."""


class DependencyError(ModelBuildError):
    """A term references a name that is not defined before it."""


class DuplicateNameError(ModelBuildError):
    """A name is defined more than once in a model."""


class InvalidConfiguration(InfermeError, ValueError):
    """Inference configuration is missing or inconsistent."""


class UnsupportedModelError(InfermeError):
    """The selected strategy cannot run the given model."""


class NonTerminationRisk(InfermeError, RuntimeError):
    """A strategy exhausted its attempt budget before collecting all samples."""
