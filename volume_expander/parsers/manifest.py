from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml

from volume_expander.core.exceptions import ParseError
from volume_expander.models.resources import StorageClaim, WorkloadRef
from volume_expander.utils.units import parse_quantity


@dataclass(slots=True)
class ParseOutput:
    claims: List[StorageClaim] = field(default_factory=list)
    workloads: List[WorkloadRef] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _ensure_list(x: Optional[Iterable]) -> List:
    if not x:
        return []
    return list(x)


def _flatten(docs: Iterable) -> List[Dict]:
    # kubectl get -o yaml wraps objects in a List
    flat: List[Dict] = []
    for doc in docs:
        if not doc or not isinstance(doc, dict):
            continue
        if doc.get("kind") == "List":
            flat.extend(d for d in _ensure_list(doc.get("items")) if isinstance(d, dict))
        else:
            flat.append(doc)
    return flat


def claim_from_manifest(doc: Dict, *, default_namespace: str = "default") -> StorageClaim:
    """Build a StorageClaim from a PersistentVolumeClaim document.

    Accepts both YAML manifests and API objects serialized to camelCase dicts.
    Raises ValueError when the storage request is missing or unparsable.
    """
    meta = doc.get("metadata", {}) or {}
    name = meta.get("name", "unnamed")
    spec = doc.get("spec", {}) or {}
    requests = (spec.get("resources", {}) or {}).get("requests", {}) or {}
    storage_req = requests.get("storage")
    if storage_req is None:
        raise ValueError(f"PVC {name}: missing storage request")
    capacity = ((doc.get("status", {}) or {}).get("capacity", {}) or {}).get("storage")
    return StorageClaim(
        namespace=meta.get("namespace") or default_namespace,
        name=name,
        annotations={str(k): str(v) for k, v in (meta.get("annotations") or {}).items()},
        requested_bytes=parse_quantity(storage_req),
        provisioned_bytes=parse_quantity(capacity) if capacity is not None else None,
        resource_version=meta.get("resourceVersion"),
    )


def workload_from_manifest(doc: Dict, *, default_namespace: str = "default") -> WorkloadRef:
    meta = doc.get("metadata", {}) or {}
    spec = doc.get("spec", {}) or {}
    claim_names: List[str] = []
    for v in _ensure_list(spec.get("volumes")):
        claim = (v.get("persistentVolumeClaim") or {}).get("claimName")
        if claim and claim not in claim_names:
            claim_names.append(claim)
    return WorkloadRef(
        namespace=meta.get("namespace") or default_namespace,
        name=meta.get("name", "unnamed"),
        phase=(doc.get("status", {}) or {}).get("phase"),
        claim_names=claim_names,
    )


def parse_files(paths: List[str]) -> ParseOutput:
    out = ParseOutput()

    for p in paths:
        path = Path(p)
        if not path.exists():
            raise ParseError(f"File not found: {path}")
        try:
            with path.open("r", encoding="utf-8") as f:
                docs = list(yaml.safe_load_all(f))
        except yaml.YAMLError as e:
            raise ParseError(f"YAML parse error in {path}: {e}") from e

        for doc in _flatten(docs):
            kind = doc.get("kind")
            if kind == "PersistentVolumeClaim":
                try:
                    out.claims.append(claim_from_manifest(doc))
                except ValueError as e:
                    out.warnings.append(f"{path}: {e}; skipping")
            elif kind == "Pod":
                out.workloads.append(workload_from_manifest(doc))

    return out
