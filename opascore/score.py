"""Security risk scores for frameworks and the controls they define.

Each resource is weighted by its Kubernetes object. Workloads with
replicas weigh more, and DaemonSets weigh by the number of nodes they
are scheduled on. A control's score is the weight of its failed
resources as a percentage of the worst case (wcs), which is the weight
of all its resources.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, NamedTuple

logger = logging.getLogger(__name__)

# Each extra replica compounds an extra 10% onto the score of a workload.
REPLICA_FACTOR = 1.1
DEFAULT_SCORE = 1.0


class ScoreError(ValueError):
    """Raised when a framework score cannot be computed."""


@dataclass
class ControlInput:
    """A control to score: its failed resources, all its resources and its weight.

    ``all_ids`` lists every resource the control looked at, failed ones included.
    ``score`` receives the normalized score once the control is scored.
    """

    control_id: str
    failed_ids: list[str] = field(default_factory=list)
    all_ids: list[str] = field(default_factory=list)
    score_factor: float = 0.0
    score: float = 0.0


class _ControlScore(NamedTuple):
    score: float
    unnormalized: float
    wcs: float


def is_workload(obj: Any) -> bool:
    """Return True if ``obj`` looks like a Kubernetes object (non-empty kind and apiVersion)."""
    if not isinstance(obj, Mapping):
        return False
    kind = obj.get("kind")
    api_version = obj.get("apiVersion")
    return isinstance(kind, str) and bool(kind) and isinstance(api_version, str) and bool(api_version)


def _is_rego_response_vector(obj: Any) -> bool:
    return isinstance(obj, Mapping) and isinstance(obj.get("relatedObjects"), list)


def _as_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def _nested(obj: Mapping[str, Any], *keys: str) -> Any:
    current: Any = obj
    for key in keys:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _debug_from_env() -> bool:
    return os.environ.get("ARMO_DEBUG_MODE", "").casefold() == "true"


class ScoreUtil:
    """Computes risk scores against a set of resources keyed by resource id."""

    def __init__(
        self,
        resources: Mapping[str, Mapping[str, Any]] | None = None,
        debug: bool | None = None,
    ) -> None:
        self.resources: dict[str, Mapping[str, Any]] = dict(resources or {})
        self.debug = _debug_from_env() if debug is None else debug

    def _debugf(self, message: str) -> None:
        if self.debug:
            print(message)

    def get_score(self, obj: Mapping[str, Any]) -> float:
        """Return the weight of a Kubernetes object; unrecognized objects weigh 1."""
        if is_workload(obj):
            return self._process_workload(obj, DEFAULT_SCORE)
        if _is_rego_response_vector(obj):
            score = DEFAULT_SCORE
            for related in obj["relatedObjects"]:
                if not is_workload(related):
                    continue
                # The envelope itself is what gets weighed, as before.
                score = max(score, self._process_workload(obj, score))
            return score
        return DEFAULT_SCORE

    def _process_workload(self, obj: Mapping[str, Any], score: float) -> float:
        replicas = _as_int(_nested(obj, "spec", "replicas"))
        if replicas > 1:
            score *= replicas * REPLICA_FACTOR
        kind = obj.get("kind")
        if not isinstance(kind, str) or kind.casefold() != "daemonset":
            return score
        desired = _as_int(_nested(obj, "status", "desiredNumberScheduled"))
        if desired > 0:
            score *= desired
        return score

    def _weight(self, ids: Iterable[str]) -> float:
        return sum(
            (self.get_score(self.resources[rid]) for rid in ids if rid in self.resources),
            0.0,
        )

    def control_score(
        self, failed_ids: Iterable[str], all_ids: Iterable[str], base_score: float
    ) -> _ControlScore:
        """Score a control the way framework reports of the first model do.

        A control without failures weighs exactly ``base_score``. When the
        worst case is zero the unnormalized score is returned as the score.
        """
        unnormalized = self._weight(failed_ids) * base_score
        if unnormalized != 0:
            wcs = self._weight(all_ids) * base_score
        else:
            wcs = base_score
        if wcs > 0:
            score = unnormalized * 100 / wcs
        else:
            score = unnormalized
            logger.error(
                "worst case scenario was 0, meaning no resources input were given"
                " - score is not available(will appear as > 1)"
            )
        self._debugf(f"control un-normalized score: {unnormalized}, wcs: {wcs}")
        return _ControlScore(score, unnormalized, wcs)

    def control_v2_score(
        self, failed_ids: Iterable[str], all_ids: Iterable[str], score_factor: float
    ) -> _ControlScore:
        """Score a control from a summary: normalized score, unnormalized score and wcs."""
        unnormalized = self._weight(failed_ids) * score_factor
        wcs = self._weight(all_ids) * score_factor
        score = 0.0
        if wcs > 0:
            score = unnormalized * 100 / wcs
        else:
            logger.error(
                "worst case scenario was 0, meaning no resources input were given"
                " - score is not available(will appear as > 1)"
            )
        self._debugf(f"control score:{score}, unnormalized:{unnormalized}, wcs:{wcs})")
        return _ControlScore(score, unnormalized, wcs)

    def controls_summaries_score(self, controls: Iterable[ControlInput]) -> tuple[float, float]:
        """Score each control in place; return the total unnormalized score and total wcs."""
        total_unnormalized = 0.0
        total_wcs = 0.0
        for control in controls:
            result = self.control_v2_score(control.failed_ids, control.all_ids, control.score_factor)
            control.score = result.score
            self._debugf(f"control {control.control_id!r} score: {result.score}")
            total_unnormalized += result.unnormalized
            total_wcs += result.wcs
        return total_unnormalized, total_wcs

    def framework_score(self, name: str, controls: Iterable[ControlInput]) -> float:
        """Score the controls of a framework and return the framework's score.

        Raises ScoreError when the framework's worst case is zero.
        """
        unnormalized, wcs = self.controls_summaries_score(controls)
        if wcs == 0:
            raise ScoreError(f"unable to calculate score for framework {name} due to bad wcs score")
        score = unnormalized * 100 / wcs
        self._debugf(f"framework {name} score {score}")
        return score