import tempfile
import unittest
from pathlib import Path

from gate_fakes import (
    FakeCmdRunner,
    cmd_result,
    healthy_cmd_runner,
    healthy_http_runner,
    http_result,
    jmeter_output,
    make_context,
    sqlplus_responder,
)

import pipeline.stages  # noqa: F401
from pipeline.framework import CarriedValues, build_stage_definitions, execute_stage
from pipeline.framework.runner import plan_results
from quality_gate.domain import (
    CommandTimeoutError,
    ErrorKind,
    ExecutionError,
    ExecutionMode,
    StageStatus,
)


class StageExecutorTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.tmp = Path(self._td.name)

    def tearDown(self) -> None:
        self._td.cleanup()

    def run_stage(self, name, *, cmd=None, http=None, carried=None, mode=ExecutionMode.LIVE, **settings):
        ctx = make_context(cmd, http, mode=mode, tmp_dir=self.tmp, **settings)
        defn = build_stage_definitions(ctx.settings, [name])[0]
        result = plan_results([defn])[0]
        carried = carried if carried is not None else CarriedValues()
        execute_stage(defn, result, ctx=ctx, carried=carried)
        return result, carried


class TestPerformanceStage(StageExecutorTestCase):
    def test_pass_records_metrics_and_evaluations(self) -> None:
        result, _ = self.run_stage("performance")

        self.assertEqual(StageStatus.PASS, result.status)
        self.assertEqual(150.0, result.extracted_metrics["throughput"])
        self.assertEqual(3, len(result.rule_evaluations))
        self.assertIn("summary =", result.output)
        self.assertEqual("", result.diagnostics)
        self.assertIsNotNone(result.finished_at)

    def test_low_throughput_fails_and_collects_diagnostics(self) -> None:
        cmd = healthy_cmd_runner(jmeter=cmd_result(jmeter_output(throughput="85.0")))
        result, _ = self.run_stage("performance", cmd=cmd)

        self.assertEqual(StageStatus.FAIL, result.status)
        self.assertEqual(ErrorKind.THRESHOLD, result.error_kind)
        self.assertEqual("throughput 85 < minimum 100", result.reason)
        self.assertIn("TOP OUTPUT", result.diagnostics)
        self.assertIn("RCA:", result.diagnostics)
        self.assertEqual(["jmeter", "ssh"], [argv[0].rsplit("/", 1)[-1] for argv, _ in cmd.calls])

    def test_diagnostics_failure_does_not_mask_stage_failure(self) -> None:
        cmd = healthy_cmd_runner(
            jmeter=cmd_result(jmeter_output(avg="600")),
            ssh=ExecutionError("ssh: executable not found"),
        )
        result, _ = self.run_stage("performance", cmd=cmd)

        self.assertEqual(StageStatus.FAIL, result.status)
        self.assertEqual("avg_response_ms 600 > maximum 500", result.reason)
        self.assertEqual(ErrorKind.THRESHOLD, result.error_kind)
        self.assertIn("diagnostics unavailable", result.diagnostics)

    def test_missing_summary_live_is_a_parse_error(self) -> None:
        cmd = healthy_cmd_runner(jmeter=cmd_result("Error generating the report\n"))
        result, _ = self.run_stage("performance", cmd=cmd)

        self.assertEqual(StageStatus.FAIL, result.status)
        self.assertEqual(ErrorKind.PARSE, result.error_kind)
        self.assertTrue(result.reason.startswith("metric unparseable: throughput"))

    def test_missing_summary_simulated_passes_with_substitutions(self) -> None:
        cmd = healthy_cmd_runner(jmeter=cmd_result(""))
        result, _ = self.run_stage("performance", cmd=cmd, mode=ExecutionMode.SIMULATED)

        self.assertEqual(StageStatus.PASS, result.status)
        self.assertEqual(("throughput", "avg_response_ms", "error_rate_pct"), tuple(result.substituted_metrics))

    def test_non_zero_exit(self) -> None:
        cmd = healthy_cmd_runner(jmeter=cmd_result("", exit_code=1))
        result, _ = self.run_stage("performance", cmd=cmd)

        self.assertEqual(ErrorKind.EXIT_CODE, result.error_kind)
        self.assertEqual("load_test exited with code 1", result.reason)

    def test_timeout(self) -> None:
        cmd = healthy_cmd_runner(jmeter=CommandTimeoutError("jmeter -n", 1800))
        result, _ = self.run_stage("performance", cmd=cmd)

        self.assertEqual(StageStatus.FAIL, result.status)
        self.assertEqual(ErrorKind.TIMEOUT, result.error_kind)
        self.assertIn("timed out after 1800s", result.reason)

    def test_previous_results_are_removed_before_the_run(self) -> None:
        stale = self.tmp / "jmeter_results.jtl"
        stale.write_text("old", encoding="utf-8")
        (self.tmp / "jmeter_report").mkdir()

        self.run_stage("performance")

        self.assertFalse(stale.exists())
        self.assertFalse((self.tmp / "jmeter_report").exists())

    def test_load_test_argv_uses_settings(self) -> None:
        cmd = healthy_cmd_runner()
        self.run_stage("performance", cmd=cmd, jmeter_home="/srv/jmeter", jmeter_script="plan.jmx")

        argv, kwargs = cmd.calls[0]
        self.assertEqual("/srv/jmeter/bin/jmeter", argv[0])
        self.assertEqual(["-n", "-t", "plan.jmx"], argv[1:4])
        self.assertEqual(1800, kwargs["timeout_seconds"])

    def test_keyboard_interrupt_marks_cancelled_and_propagates(self) -> None:
        ctx = make_context(healthy_cmd_runner(jmeter=KeyboardInterrupt()), tmp_dir=self.tmp)
        defn = build_stage_definitions(ctx.settings, ["performance"])[0]
        result = plan_results([defn])[0]

        with self.assertRaises(KeyboardInterrupt):
            execute_stage(defn, result, ctx=ctx, carried=CarriedValues())

        self.assertEqual(StageStatus.FAIL, result.status)
        self.assertEqual(ErrorKind.CANCELLED, result.error_kind)

    def test_completed_result_is_sealed(self) -> None:
        result, _ = self.run_stage("performance")
        with self.assertRaises(RuntimeError):
            result.reason = "changed"
        with self.assertRaises(TypeError):
            result.extracted_metrics["throughput"] = 1


class TestApiStage(StageExecutorTestCase):
    def test_pass_publishes_order_id(self) -> None:
        result, carried = self.run_stage("api")

        self.assertEqual(StageStatus.PASS, result.status)
        self.assertEqual("4242", carried.get("order_id"))
        self.assertEqual("api", carried.sources["order_id"])

    def test_slow_order_creation_fails(self) -> None:
        http = healthy_http_runner(POST=http_result(200, '{"id": 7}', elapsed_ms=250.0))
        result, carried = self.run_stage("api", http=http)

        self.assertEqual(StageStatus.FAIL, result.status)
        self.assertEqual("order_response_ms 250 >= maximum 200", result.reason)
        self.assertFalse(carried.has("order_id"))

    def test_order_endpoint_and_body(self) -> None:
        http = healthy_http_runner()
        self.run_stage("api", http=http, api_base_url="http://api.test", order_endpoint="/v2/orders")

        self.assertEqual(("GET", "http://api.test/api/status"), http.calls[0][:2])
        method, url, kwargs = http.calls[1]
        self.assertEqual(("POST", "http://api.test/v2/orders"), (method, url))
        self.assertEqual(1, kwargs["json_body"]["customer_id"])

    def test_unexpected_status_fails(self) -> None:
        http = healthy_http_runner(GET=http_result(503, "down"))
        result, _ = self.run_stage("api", http=http)

        self.assertEqual(ErrorKind.THRESHOLD, result.error_kind)
        self.assertEqual("status_http_code 503 != expected 200", result.reason)

    def test_row_counts_are_recorded(self) -> None:
        cmd = healthy_cmd_runner()
        result, _ = self.run_stage("api", cmd=cmd)

        self.assertEqual(3, result.extracted_metrics["customer_count"])
        self.assertEqual(12, result.extracted_metrics["order_count"])
        self.assertEqual(11, result.extracted_metrics["invoice_count"])
        script = cmd.stdin_of("sqlplus")[0]
        for table in ("customers", "orders", "invoices"):
            self.assertIn(f"COUNT(*) FROM {table};", script)

    def test_database_error_fails_before_any_http_call(self) -> None:
        ora = cmd_result("ORA-00942: table or view does not exist", exit_code=942, command="sqlplus -s ****")
        cmd = healthy_cmd_runner(sqlplus=sqlplus_responder(row_counts=ora))
        http = healthy_http_runner()
        result, carried = self.run_stage("api", cmd=cmd, http=http)

        self.assertEqual(StageStatus.FAIL, result.status)
        self.assertEqual(ErrorKind.EXIT_CODE, result.error_kind)
        self.assertEqual("db_row_counts exited with code 942", result.reason)
        self.assertEqual([], http.calls)
        self.assertFalse(carried.has("order_id"))

    def test_non_numeric_order_id_is_a_parse_error(self) -> None:
        http = healthy_http_runner(POST=http_result(201, '{"id": "ORD-7"}'))
        result, carried = self.run_stage("api", http=http, order_expected_status=201)

        self.assertEqual(ErrorKind.PARSE, result.error_kind)
        self.assertIn("order_id", result.reason)
        self.assertFalse(carried.has("order_id"))


class TestDataConsistencyStage(StageExecutorTestCase):
    def test_missing_order_id_never_invokes_the_runner(self) -> None:
        cmd = FakeCmdRunner({})
        result, _ = self.run_stage("data_consistency", cmd=cmd)

        self.assertEqual(StageStatus.FAIL, result.status)
        self.assertEqual(ErrorKind.MISSING_INPUT, result.error_kind)
        self.assertIn("order_id", result.reason)
        self.assertEqual([], cmd.calls)
        self.assertIsNone(result.started_at)

    def test_order_id_is_rendered_into_the_query(self) -> None:
        cmd = healthy_cmd_runner()
        carried = CarriedValues()
        carried.put("order_id", "1001", source="seed")

        result, _ = self.run_stage("data_consistency", cmd=cmd, carried=carried)

        self.assertEqual(StageStatus.PASS, result.status)
        self.assertTrue(any("WHERE id = 1001" in s for s in cmd.stdin_of("sqlplus")))
        argv, kwargs = cmd.calls[0]
        self.assertEqual((2,), tuple(kwargs["secret_args"]))

    def test_logs_where_the_order_id_came_from(self) -> None:
        carried = CarriedValues()
        carried.put("order_id", "1001", source="seed")

        with self.assertLogs("pipeline.framework.executor", level="INFO") as logs:
            self.run_stage("data_consistency", carried=carried)

        self.assertIn("data_consistency: using order_id=1001 (from seed)", "\n".join(logs.output))

    def test_pending_order_fails(self) -> None:
        cmd = healthy_cmd_runner(sqlplus=sqlplus_responder(order_status="PENDING\n"))
        carried = CarriedValues()
        carried.put("order_id", "1001", source="seed")

        result, _ = self.run_stage("data_consistency", cmd=cmd, carried=carried)

        self.assertEqual("order_status 'PENDING' != expected 'COMPLETED'", result.reason)

    def test_orders_without_invoices_fail(self) -> None:
        cmd = healthy_cmd_runner(sqlplus=sqlplus_responder(missing_invoices="1002\n1003\n"))
        carried = CarriedValues()
        carried.put("order_id", "1001", source="seed")

        result, _ = self.run_stage("data_consistency", cmd=cmd, carried=carried)

        self.assertEqual(StageStatus.FAIL, result.status)
        self.assertEqual("orders_without_invoice 2 != expected 0", result.reason)


class TestInfrastructureStage(StageExecutorTestCase):
    def test_pass(self) -> None:
        result, _ = self.run_stage("infrastructure")

        self.assertEqual(StageStatus.PASS, result.status)
        self.assertEqual(50, result.extracted_metrics["disk_usage_pct"])
        self.assertIn("memory_usage_pct", result.extracted_metrics)

    def test_disk_over_limit_fails(self) -> None:
        result, _ = self.run_stage("infrastructure", max_disk_usage_pct=40)

        self.assertEqual(StageStatus.FAIL, result.status)
        self.assertEqual("disk_usage_pct 50 > maximum 40", result.reason)


if __name__ == "__main__":
    unittest.main()
