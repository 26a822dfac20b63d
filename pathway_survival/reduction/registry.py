"""
Reduction Strategy Registry

Closed set of reduction methods resolved through a static lookup, so that an
unknown method identifier or parameter is rejected when a dataset is built,
not when the first unit is tested.
"""

from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Type, Union
import logging

import networkx as nx
import pandas as pd

from .base import CovariateBlock
from .clustering import ClusterParams, summarize_in_clusters
from .events import EventParams, summarize_to_events
from .pca import PCAParams, summarize_with_pca

logger = logging.getLogger(__name__)


class ReductionMethod(Enum):
    """Available dimensionality-reduction strategies."""

    PCA = "pca"  # Component summarization
    CLUSTER = "cluster"  # Cluster summarization
    EVENTS = "events"  # Event-count summarization


ReduceFunction = Callable[[pd.DataFrame, Any, Optional[nx.Graph]], CovariateBlock]


@dataclass(frozen=True)
class ReductionStrategy:
    """A reduction function together with its parameter type."""

    method: ReductionMethod
    params_type: Type
    reduce: ReduceFunction
    description: str = ""


REGISTRY: Dict[ReductionMethod, ReductionStrategy] = {
    ReductionMethod.PCA: ReductionStrategy(
        ReductionMethod.PCA,
        PCAParams,
        summarize_with_pca,
        "Principal components of the unit's genes",
    ),
    ReductionMethod.CLUSTER: ReductionStrategy(
        ReductionMethod.CLUSTER,
        ClusterParams,
        summarize_in_clusters,
        "Hierarchical clusters of sub-feature profiles",
    ),
    ReductionMethod.EVENTS: ReductionStrategy(
        ReductionMethod.EVENTS,
        EventParams,
        summarize_to_events,
        "Number of genes carrying an event per sample",
    ),
}


def resolve_method(identifier: Union[str, ReductionMethod]) -> ReductionMethod:
    """
    Resolve a method identifier to a ReductionMethod.

    Raises:
        ValueError: If the identifier names no known method
    """
    if isinstance(identifier, ReductionMethod):
        return identifier
    try:
        return ReductionMethod(str(identifier).lower())
    except ValueError:
        valid = [m.value for m in ReductionMethod]
        raise ValueError(
            f"Unknown reduction method {identifier!r}; expected one of {valid}"
        ) from None


def build_params(method: ReductionMethod, params: Union[Mapping[str, Any], Any, None]) -> Any:
    """
    Build the parameter object of a method from a mapping.

    Raises:
        ValueError: If a parameter name is not accepted by the method, or the
            given object has the wrong parameter type
    """
    params_type = REGISTRY[method].params_type
    if params is None:
        return params_type()
    if isinstance(params, params_type):
        return params
    if not isinstance(params, Mapping):
        raise ValueError(
            f"Parameters for {method.value} must be a mapping or {params_type.__name__}"
        )

    accepted = {f.name for f in fields(params_type)}
    unknown = set(params) - accepted
    if unknown:
        raise ValueError(
            f"Unknown parameters for {method.value}: {sorted(unknown)}; "
            f"accepted: {sorted(accepted)}"
        )
    return params_type(**dict(params))


@dataclass(frozen=True)
class OmicReduction:
    """Reduction method and parameters configured for one omic."""

    method: ReductionMethod
    params: Any

    @classmethod
    def create(
        cls,
        method: Union[str, ReductionMethod, "OmicReduction", Mapping[str, Any]],
        params: Union[Mapping[str, Any], Any, None] = None,
    ) -> "OmicReduction":
        """
        Create a reduction from an identifier and parameters.

        Also accepts a mapping of the form {"method": ..., "params": {...}}, as
        found in configuration files.
        """
        if isinstance(method, OmicReduction):
            return method
        if isinstance(method, Mapping):
            return cls.create(method["method"], method.get("params"))
        resolved = resolve_method(method)
        return cls(method=resolved, params=build_params(resolved, params))

    @property
    def dictionary(self) -> Optional[Mapping[str, str]]:
        """Feature-to-gene dictionary, if the parameters carry one."""
        return getattr(self.params, "dictionary", None)

    def with_params(self, **overrides: Any) -> "OmicReduction":
        if not overrides:
            return self
        accepted = {f.name for f in fields(self.params)}
        unknown = set(overrides) - accepted
        if unknown:
            raise ValueError(
                f"Unknown parameters for {self.method.value}: {sorted(unknown)}"
            )
        return OmicReduction(self.method, replace(self.params, **overrides))

    def reduce(self, matrix: pd.DataFrame, topology: Optional[nx.Graph] = None) -> CovariateBlock:
        return REGISTRY[self.method].reduce(matrix, self.params, topology)

    def to_dict(self) -> Dict[str, Any]:
        params = asdict(self.params)
        if params.get("dictionary") is not None:
            params["dictionary"] = dict(params["dictionary"])
        return {"method": self.method.value, "params": params}


def reduce(
    method: Union[str, ReductionMethod],
    matrix: pd.DataFrame,
    params: Union[Mapping[str, Any], Any, None] = None,
    topology: Optional[nx.Graph] = None,
) -> CovariateBlock:
    """Apply a reduction strategy by identifier."""
    return OmicReduction.create(method, params).reduce(matrix, topology)
