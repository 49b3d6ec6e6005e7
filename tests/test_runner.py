from __future__ import annotations

from pathlib import Path

from gate_fakes import (
    cmd_result,
    healthy_cmd_runner,
    healthy_http_runner,
    http_result,
    jmeter_output,
    make_context,
)

import pipeline.stages  # noqa: F401
from pipeline.framework import DEFAULT_STAGE_ORDER, build_stage_definitions, run_pipeline
from pipeline.framework.runner import check_order, seed_carried_values
from quality_gate.domain import ErrorKind, OverallStatus, StageDefinition, StageStatus


def _run(tmp_path: Path, *, cmd=None, http=None, stages=DEFAULT_STAGE_ORDER, seed=None):
    ctx = make_context(cmd or healthy_cmd_runner(), http or healthy_http_runner(), tmp_dir=tmp_path)
    defs = build_stage_definitions(ctx.settings, stages)
    return run_pipeline(defs, ctx=ctx, seed_values=seed)


def test_all_stages_pass_is_approved(tmp_path: Path) -> None:
    report = _run(tmp_path)

    assert report.overall_status is OverallStatus.APPROVED
    assert report.exit_code == 0
    assert [r.name for r in report.stage_results] == list(DEFAULT_STAGE_ORDER)
    assert all(r.status is StageStatus.PASS for r in report.stage_results)
    assert report.failed_stage_names == frozenset()


def test_performance_failure_rejects_but_keeps_other_results(tmp_path: Path) -> None:
    cmd = healthy_cmd_runner(jmeter=cmd_result(jmeter_output(throughput="85.0")))
    report = _run(tmp_path, cmd=cmd)

    assert report.overall_status is OverallStatus.REJECTED
    assert report.exit_code == 1
    assert report.failed_stage_names == frozenset({"performance"})
    assert report.get("performance").reason == "throughput 85 < minimum 100"
    assert report.get("data_consistency").passed


def test_api_failure_starves_data_consistency_but_later_stages_run(tmp_path: Path) -> None:
    cmd = healthy_cmd_runner()
    http = healthy_http_runner(POST=http_result(500, "error"))
    report = _run(tmp_path, cmd=cmd, http=http, seed={"order_id": "1001"})

    dc = report.get("data_consistency")
    assert report.get("api").status is StageStatus.FAIL
    assert dc.status is StageStatus.FAIL
    assert dc.error_kind is ErrorKind.MISSING_INPUT
    assert not any("SELECT order_status FROM orders" in s for s in cmd.stdin_of("sqlplus"))

    assert report.get("infrastructure").passed
    assert report.get("performance").passed
    assert report.failed_stage_names == frozenset({"api", "data_consistency"})


def test_seed_is_used_when_producer_not_selected(tmp_path: Path) -> None:
    cmd = healthy_cmd_runner()
    report = _run(tmp_path, cmd=cmd, stages=("data_consistency",), seed={"order_id": "555"})

    assert report.approved
    assert any("WHERE id = 555" in s for s in cmd.stdin_of("sqlplus"))


def test_no_seed_and_no_producer_is_missing_input(tmp_path: Path) -> None:
    report = _run(tmp_path, stages=("data_consistency",))

    assert not report.approved
    assert report.get("data_consistency").error_kind is ErrorKind.MISSING_INPUT


def test_value_produced_in_run_wins_over_seed(tmp_path: Path) -> None:
    cmd = healthy_cmd_runner()
    report = _run(tmp_path, cmd=cmd, seed={"order_id": "1"})

    assert report.approved
    assert any("WHERE id = 4242" in s for s in cmd.stdin_of("sqlplus"))


def test_cancellation_fails_current_and_remaining_stages(tmp_path: Path) -> None:
    http = healthy_http_runner(POST=KeyboardInterrupt())
    cmd = healthy_cmd_runner()
    report = _run(tmp_path, cmd=cmd, http=http)

    assert report.cancelled
    assert report.exit_code == 1
    assert report.get("infrastructure").passed
    for name in ("api", "data_consistency", "performance"):
        r = report.get(name)
        assert r.status is StageStatus.FAIL
        assert r.error_kind is ErrorKind.CANCELLED
    assert cmd.stdin_of("jmeter") == []
    assert all(r.status.is_terminal for r in report.stage_results)


def test_unexpected_error_in_a_stage_is_recorded_as_failure(tmp_path: Path) -> None:
    cmd = healthy_cmd_runner(df=RuntimeError("bug"))
    report = _run(tmp_path, cmd=cmd, stages=("infrastructure", "performance"))

    infra = report.get("infrastructure")
    assert infra.status is StageStatus.FAIL
    assert "internal error" in infra.reason
    assert report.get("performance").passed


def test_seed_ignored_when_stage_in_run_produces_it() -> None:
    defs = [StageDefinition(name="api", label="api", commands=(), produces=("order_id",))]
    carried = seed_carried_values(defs, {"order_id": "1001"})
    assert not carried.has("order_id")

    carried = seed_carried_values([], {"order_id": "1001"})
    assert carried.get("order_id") == "1001"


def test_check_order_warns_about_reversed_dependencies() -> None:
    consumer = StageDefinition(name="c", label="c", commands=(), requires=("order_id",))
    producer = StageDefinition(name="p", label="p", commands=(), produces=("order_id",))

    assert check_order([producer, consumer]) == []
    assert check_order([consumer, producer])
