"""
Annotation keys and the reader for the limit and query annotations.
"""

import re
from dataclasses import dataclass
from typing import Mapping, Tuple

from shared.errors import InvalidAnnotationError, MissingAnnotationError

from ..models import Pod

DEFAULT_PREFIX = "kube-scheduler-ratelimit"

_LIMIT_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class AnnotationKeys:
    """The three well-known annotation keys."""
    # Maximum number of matching Pods allowed to hold a slot, this Pod included.
    limit: str
    # Label selector identifying comparable Pods.
    query: str
    # Set once by the gate when the Pod is admitted; value is the admission time.
    scheduled: str

    @classmethod
    def from_prefix(cls, prefix: str = DEFAULT_PREFIX) -> "AnnotationKeys":
        return cls(
            limit=f"{prefix}/limit",
            query=f"{prefix}/query",
            scheduled=f"{prefix}/scheduled",
        )


DEFAULT_KEYS = AnnotationKeys.from_prefix()


def read_annotations(pod: Pod, keys: AnnotationKeys = DEFAULT_KEYS) -> Tuple[str, int]:
    """Return the (query, limit) used when scheduling ``pod``.

    Raises:
        MissingAnnotationError: the limit or query annotation is absent.
        InvalidAnnotationError: the limit is not a non-negative integer.
    """
    annotations = pod.annotations

    raw_limit = _get_annotation(annotations, keys.limit)
    if not _LIMIT_RE.fullmatch(raw_limit):
        raise InvalidAnnotationError(keys.limit, raw_limit)
    limit = int(raw_limit)

    query = _get_annotation(annotations, keys.query)

    return query, limit


def is_admitted(pod: Pod, keys: AnnotationKeys = DEFAULT_KEYS) -> bool:
    """Whether the gate already admitted ``pod``."""
    return keys.scheduled in pod.annotations


def _get_annotation(annotations: Mapping[str, str], key: str) -> str:
    try:
        return annotations[key]
    except KeyError:
        raise MissingAnnotationError(key) from None
