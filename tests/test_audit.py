from __future__ import annotations

import hashlib
import json
from pathlib import Path

from baseplate_split.audit import GENESIS_HASH, AuditTrail, verify_decision_log
from baseplate_split.run_protocol import prepare_run_dir, slugify


def _canonical(payload: dict) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def _trail_with_decisions(tmp_path: Path, count: int = 3) -> AuditTrail:
    audit = AuditTrail(run_id="audit_case", artifacts_dir=tmp_path / "artifacts")
    for i in range(count):
        audit.append_decision(
            phase_index=3,
            decision_type="edge_override",
            entity_ids=[f"segment_x{i}_y0"],
            selected="override",
            reason_codes=["user_override"],
            metadata={"right": "female"},
        )
    return audit


def test_decision_log_is_hash_chained(tmp_path: Path):
    audit = _trail_with_decisions(tmp_path)
    audit.finalize()

    records = [
        json.loads(line)
        for line in audit.decision_log_path.read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]
    assert [record["seq"] for record in records] == [1, 2, 3]

    prev_hash = GENESIS_HASH
    for record in records:
        assert record["previous_hash"] == prev_hash
        assert record["schema_version"] == "baseplate_split.decision.v1"
        payload = {k: v for k, v in record.items() if k != "hash"}
        digest = hashlib.sha256(_canonical(payload).encode("utf-8")).hexdigest()
        assert digest == record["hash"]
        prev_hash = digest

    chain = json.loads(audit.hash_chain_path.read_text(encoding="utf-8"))
    assert chain["decision_count"] == 3
    assert chain["final_hash"] == prev_hash
    assert verify_decision_log(audit.decision_log_path)


def test_tampered_record_fails_verification(tmp_path: Path):
    audit = _trail_with_decisions(tmp_path)
    lines = audit.decision_log_path.read_text(encoding="utf-8").splitlines()
    record = json.loads(lines[1])
    record["selected"] = "default"
    lines[1] = json.dumps(record, sort_keys=True)
    audit.decision_log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    assert not verify_decision_log(audit.decision_log_path)


def test_dropped_record_fails_verification(tmp_path: Path):
    audit = _trail_with_decisions(tmp_path)
    lines = audit.decision_log_path.read_text(encoding="utf-8").splitlines()
    del lines[0]
    audit.decision_log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    assert not verify_decision_log(audit.decision_log_path)


def test_checkpoints_chain_to_previous(tmp_path: Path):
    audit = AuditTrail(run_id="cp", artifacts_dir=tmp_path)
    first = audit.write_checkpoint(
        phase_index=0, phase_name="preflight", counts={}, metrics={}, invariants={},
    )
    second = audit.write_checkpoint(
        phase_index=1, phase_name="Grid Sizing", counts={"n": 1}, metrics={}, invariants={},
    )

    assert second.path.name == "phase_01_grid_sizing.json"
    first_payload = json.loads(first.path.read_text(encoding="utf-8"))
    second_payload = json.loads(second.path.read_text(encoding="utf-8"))
    assert first_payload["input_hashes"] == {}
    assert second_payload["input_hashes"]["prev_checkpoint_sha256"] == first.payload_sha256
    assert second_payload["schema_version"] == "baseplate_split.checkpoint.v1"
    assert audit.last_checkpoint_sha256 == second.payload_sha256


def test_run_dirs_do_not_collide(tmp_path: Path):
    first = prepare_run_dir(str(tmp_path), "My Shelf!")
    second = prepare_run_dir(str(tmp_path), "My Shelf!")

    assert first.run_id.endswith("_my-shelf")
    assert second.run_id != first.run_id
    assert first.input_dir.is_dir() and first.artifacts_dir.is_dir()
    assert second.artifacts_dir.is_dir()


def test_slugify_falls_back_to_run():
    assert slugify("  ***  ") == "run"
    assert slugify("Drawer 3 -- Left") == "drawer-3-left"
