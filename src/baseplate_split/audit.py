"""
Run audit trail for baseplate splitting.

Every pipeline phase leaves a checkpoint file, and every non-default choice
(partition, edge overrides, stale overrides, render failures) becomes one
line in an append-only decision log. Records are sealed with the SHA-256 of
their canonical JSON plus the previous record's hash, so any edit to the
log is detectable with verify_decision_log().
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

SCHEMA_PREFIX = "baseplate_split"
GENESIS_HASH = "0" * 64


def canonical_json(payload: Dict[str, object]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with Path(path).open("rb") as handle:
        for block in iter(lambda: handle.read(1 << 20), b""):
            digest.update(block)
    return digest.hexdigest()


def _seal(payload: Dict[str, object]) -> str:
    """Hash of *payload* without its own "hash" field."""
    return sha256_text(canonical_json({k: v for k, v in payload.items() if k != "hash"}))


def _now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def _schema(kind: str) -> str:
    return f"{SCHEMA_PREFIX}.{kind}.v1"


@dataclass
class CheckpointHandle:
    phase_index: int
    phase_name: str
    path: Path
    payload_sha256: str


class AuditTrail:
    """Checkpoints and hash-chained decisions for one split run.

    Files land in *artifacts_dir*: ``checkpoints/phase_NN_<name>.json``,
    ``decision_log.jsonl`` and, after finalize(), ``decision_hash_chain.json``.
    """

    def __init__(self, run_id: str, artifacts_dir: Path):
        self.run_id = run_id
        self.artifacts_dir = Path(artifacts_dir)
        self.checkpoints_dir = self.artifacts_dir / "checkpoints"
        self.checkpoints_dir.mkdir(parents=True, exist_ok=True)
        self.decision_log_path = self.artifacts_dir / "decision_log.jsonl"
        self.hash_chain_path = self.artifacts_dir / "decision_hash_chain.json"
        self._links: List[Dict[str, object]] = []
        self._handles: List[CheckpointHandle] = []

    @property
    def decision_count(self) -> int:
        return len(self._links)

    @property
    def head_hash(self) -> str:
        return self._links[-1]["hash"] if self._links else GENESIS_HASH

    @property
    def checkpoints(self) -> List[CheckpointHandle]:
        return list(self._handles)

    @property
    def last_checkpoint_sha256(self) -> Optional[str]:
        return self._handles[-1].payload_sha256 if self._handles else None

    def append_decision(
        self,
        *,
        phase_index: int,
        decision_type: str,
        entity_ids: Iterable[str],
        selected: str,
        reason_codes: Iterable[str],
        alternatives: Optional[List[Dict[str, object]]] = None,
        numeric_evidence: Optional[Dict[str, float]] = None,
        metadata: Optional[Dict[str, object]] = None,
    ) -> Dict[str, object]:
        """Append one decision, e.g. an edge override or a failed render."""
        record: Dict[str, object] = {
            "schema_version": _schema("decision"),
            "run_id": self.run_id,
            "seq": self.decision_count + 1,
            "timestamp_utc": _now(),
            "phase_index": int(phase_index),
            "decision_type": decision_type,
            "entity_ids": list(entity_ids),
            "alternatives": list(alternatives or []),
            "selected": selected,
            "reason_codes": list(reason_codes),
            "numeric_evidence": dict(numeric_evidence or {}),
            "metadata": dict(metadata or {}),
            "previous_hash": self.head_hash,
        }
        record["hash"] = _seal(record)

        with self.decision_log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, sort_keys=True) + "\n")
        self._links.append({
            "seq": record["seq"],
            "hash": record["hash"],
            "previous_hash": record["previous_hash"],
        })
        logger.debug(
            "Decision #%d %s %s -> %s",
            record["seq"], decision_type, ",".join(record["entity_ids"]), selected,
        )
        return record

    def write_checkpoint(
        self,
        *,
        phase_index: int,
        phase_name: str,
        counts: Dict[str, int],
        metrics: Dict[str, float],
        invariants: Dict[str, object],
        outputs: Optional[Dict[str, object]] = None,
        notes: Optional[List[str]] = None,
    ) -> CheckpointHandle:
        """Write one phase checkpoint, linked to the checkpoint before it."""
        slug = "_".join(phase_name.lower().split())
        path = self.checkpoints_dir / f"phase_{phase_index:02d}_{slug}.json"
        previous = self.last_checkpoint_sha256

        payload: Dict[str, object] = {
            "schema_version": _schema("checkpoint"),
            "run_id": self.run_id,
            "phase_index": int(phase_index),
            "phase_name": phase_name,
            "timestamp_utc": _now(),
            "input_hashes": {"prev_checkpoint_sha256": previous} if previous else {},
            "invariants": invariants,
            "counts": counts,
            "metrics": metrics,
            "outputs": outputs or {},
            "notes": notes or [],
        }
        payload["payload_sha256"] = sha256_text(canonical_json(payload))
        path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")

        handle = CheckpointHandle(phase_index, phase_name, path, payload["payload_sha256"])
        self._handles.append(handle)
        logger.debug("Checkpoint %s", path.name)
        return handle

    def finalize(self, outputs: Iterable[Path] = ()) -> Path:
        """Write the chain summary, including SHA-256 of each existing output file."""
        output_hashes = {
            str(path): sha256_file(path) for path in map(Path, outputs) if path.is_file()
        }
        summary = {
            "schema_version": _schema("hash_chain"),
            "run_id": self.run_id,
            "final_hash": self.head_hash,
            "decision_count": self.decision_count,
            "entries": self._links,
            "checkpoint_hashes": [
                {
                    "phase_index": h.phase_index,
                    "phase_name": h.phase_name,
                    "path": str(h.path),
                    "payload_sha256": h.payload_sha256,
                }
                for h in self._handles
            ],
            "output_hashes": output_hashes,
        }
        self.hash_chain_path.write_text(
            json.dumps(summary, indent=2, sort_keys=True), encoding="utf-8"
        )
        return self.hash_chain_path


def verify_decision_log(path: Path) -> bool:
    """True when every record's hash and back-link are intact."""
    expected_prev = GENESIS_HASH
    with Path(path).open("r", encoding="utf-8") as handle:
        for number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            record = json.loads(line)
            if record.get("previous_hash") != expected_prev:
                logger.warning("Decision log line %d breaks the hash chain", number)
                return False
            if _seal(record) != record.get("hash"):
                logger.warning("Decision log line %d was modified", number)
                return False
            expected_prev = record["hash"]
    return True
