"""Annotation patch helpers.

Only the annotations that differ between the snapshot and the desired state
are sent. Carrying the snapshot's ``resourceVersion`` turns the patch into a
conditional update: the API server answers 409 Conflict if the node moved on
since the snapshot was read.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


def diff_annotations(
    before: Mapping[str, str], after: Mapping[str, str]
) -> Dict[str, Optional[str]]:
    changes: Dict[str, Optional[str]] = {}
    for key, value in after.items():
        if before.get(key) != value:
            changes[key] = value
    for key in before:
        if key not in after:
            changes[key] = None
    return changes


def create_annotation_patch(
    before: Mapping[str, str],
    after: Mapping[str, str],
    resource_version: Optional[str] = None,
) -> Dict[str, Any]:
    """Return a merge patch turning ``before`` annotations into ``after``.

    An empty dict is returned when nothing changed.
    """

    changes = diff_annotations(before, after)
    if not changes:
        return {}

    metadata: Dict[str, Any] = {"annotations": changes}
    if resource_version:
        metadata["resourceVersion"] = resource_version
    return {"metadata": metadata}
