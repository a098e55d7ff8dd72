from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

Document = Mapping[str, Any]
Pipeline = Sequence[Document]


@runtime_checkable
class DatabaseClient(Protocol):
    """Capability the harness scripts depend on.

    Only ``aggregate`` is required. Pipeline stages and result documents are
    opaque to the harness; they are handed to check predicates untouched.
    """

    def aggregate(self, pipeline: Pipeline) -> list[dict[str, Any]]: ...
