from __future__ import annotations

import gzip
import json
from pathlib import Path

import pytest

from itemsim.item_cf.pipeline import ItemCFConfig
from itemsim.pipelines.item_cf_build import main, manifest_path_for, run_item_cf_build
from itemsim.store.matrix_csv import read_csv_matrix


def _write_users(path: Path, rows: list[object], *, trailing_newline: bool = False) -> Path:
    text = "\n".join(r if isinstance(r, str) else json.dumps(r) for r in rows)
    if trailing_newline:
        text += "\n"
    if path.suffix == ".gz":
        with gzip.open(path, "wt", encoding="utf-8") as f:
            f.write(text)
    else:
        path.write_text(text, encoding="utf-8")
    return path


USERS = [
    {"userId": "a", "ratings": [{"item": 1, "rating": 1.0}, {"item": 2, "rating": 0.9}, {"item": 9, "rating": 0.1}]},
    {"userId": "b", "ratings": [{"item": 1, "rating": 0.5}, {"item": 2, "rating": 5.0}]},
    {"userId": "c", "ratings": [{"item": 3, "rating": 2.0}]},
]


def test_run_build_writes_matrix_and_manifest(tmp_path: Path) -> None:
    inp = _write_users(tmp_path / "users.jsonl.gz", USERS)
    out = tmp_path / "out" / "sim.csv"

    manifest = run_item_cf_build(input_path=inp, output_path=out, cfg=ItemCFConfig())

    m = read_csv_matrix(out)
    assert m.get(1, 2) == pytest.approx(1.0)
    assert m.get(2, 1) == pytest.approx(1.0)
    assert m.get(3, 3) == pytest.approx(1.0)
    assert (9, 9) not in m
    assert len(m) == 5

    meta = json.loads(manifest_path_for(out.resolve()).read_text())
    assert meta["stats"]["records_seen"] == 3
    assert meta["config"]["threshold"] == 0.5
    assert manifest["stats"]["final_cells"] == 5


def test_cli_row_norm_and_malformed_skip(tmp_path: Path) -> None:
    inp = _write_users(tmp_path / "users.jsonl", USERS + ["{broken"], trailing_newline=True)
    out = tmp_path / "sim.csv.gz"

    code = main(["-i", str(inp), "-o", str(out), "--row-norm"])

    assert code == 0
    m = read_csv_matrix(out)
    assert m.get(1, 1) == pytest.approx(0.5)
    assert m.get(1, 2) == pytest.approx(0.5)
    meta = json.loads(manifest_path_for(out).read_text())
    assert meta["stats"]["records_skipped"] == 1


def test_cli_strict_records_aborts_without_output(tmp_path: Path) -> None:
    inp = _write_users(tmp_path / "users.jsonl", USERS + [{"userId": "d"}])
    out = tmp_path / "sim.csv"

    code = main(["-i", str(inp), "-o", str(out), "--strict-records"])

    assert code == 1
    assert not out.exists()
    assert not manifest_path_for(out).exists()


def test_cli_missing_input_exits_nonzero(tmp_path: Path) -> None:
    out = tmp_path / "sim.csv"
    assert main(["-i", str(tmp_path / "none.jsonl"), "-o", str(out)]) == 1
    assert not out.exists()


def test_cli_reads_config_file(tmp_path: Path) -> None:
    inp = _write_users(tmp_path / "users.jsonl", USERS)
    out = tmp_path / "sim.csv"
    cfg = tmp_path / "custom.yaml"
    cfg.write_text(
        "paths:\n"
        f"  input: {inp}\n"
        f"  output: {out}\n"
        "item_cf:\n"
        "  threshold: 1.0\n"
        "  emitter: count\n"
    )

    assert main(["--config", str(cfg)]) == 0

    m = read_csv_matrix(out)
    # threshold 1.0 keeps item 1 for user a, item 2 for user b, item 3 for user c
    assert (1, 2) not in m
    assert sorted(m) == [(1, 1), (2, 2), (3, 3)]
    assert json.loads(manifest_path_for(out).read_text())["config"]["emitter"] == "count"


def test_cli_rejects_unknown_config_keys(tmp_path: Path) -> None:
    inp = _write_users(tmp_path / "users.jsonl", USERS)
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("item_cf:\n  rownorm: true\n")
    assert main(["--config", str(cfg), "-i", str(inp), "-o", str(tmp_path / "sim.csv")]) == 1


def test_cli_no_row_norm_overrides_config(tmp_path: Path) -> None:
    inp = _write_users(tmp_path / "users.jsonl", USERS)
    out = tmp_path / "sim.csv"
    cfg = tmp_path / "rownorm.yaml"
    cfg.write_text("item_cf:\n  row_norm: true\n")

    assert main(["--config", str(cfg), "-i", str(inp), "-o", str(out), "--no-row-norm"]) == 0

    m = read_csv_matrix(out)
    assert m.get(1, 1) == pytest.approx(1.0)
    assert m.get(1, 2) == pytest.approx(1.0)
    assert json.loads(manifest_path_for(out).read_text())["config"]["row_norm"] is False


def test_cli_invalid_yaml_exits_nonzero(tmp_path: Path) -> None:
    inp = _write_users(tmp_path / "users.jsonl", USERS)
    out = tmp_path / "sim.csv"
    cfg = tmp_path / "broken.yaml"
    cfg.write_text("item_cf: [unclosed\n")

    assert main(["--config", str(cfg), "-i", str(inp), "-o", str(out)]) == 1
    assert not out.exists()


def test_cli_unwritable_output_exits_nonzero(tmp_path: Path) -> None:
    inp = _write_users(tmp_path / "users.jsonl", USERS)
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")

    assert main(["-i", str(inp), "-o", str(blocker / "sim.csv")]) == 1


def test_manifest_write_failure_leaves_no_manifest(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    inp = _write_users(tmp_path / "users.jsonl", USERS)
    out = tmp_path / "sim.csv"

    def _fail(self: Path, *args: object, **kwargs: object) -> int:
        raise OSError("disk full")

    monkeypatch.setattr(Path, "write_text", _fail)

    with pytest.raises(OSError, match="disk full"):
        run_item_cf_build(input_path=inp, output_path=out, cfg=ItemCFConfig())

    assert not manifest_path_for(out).exists()
    assert [p.name for p in tmp_path.iterdir() if p.name.endswith(".tmp")] == []
