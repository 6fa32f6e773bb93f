"""
Tests for the pool-bench command line driver.
"""

import pytest

import bench

POOL_VARS = ["POOL_WORKERS", "POOL_SCHEDULING", "POOL_LAYOUT",
             "POOL_ON_ERROR", "POOL_BACKEND", "POOL_LOG_LEVEL"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Run each test away from any .env file and without POOL_* variables."""
    monkeypatch.chdir(tmp_path)
    for name in POOL_VARS:
        monkeypatch.delenv(name, raising=False)


def test_sqrt_both_policies(capsys):
    code = bench.main(["--workload", "sqrt", "--tasks", "16", "--workers", "2",
                       "--backend", "thread"])
    out = capsys.readouterr().out
    assert code == 0
    assert "16 tasks, 2 thread workers" in out
    assert "serial" in out
    assert "static" in out and "dynamic" in out
    assert "speedup" in out


def test_fail_fast_exit_code(capsys):
    code = bench.main(["--workload", "fail", "--tasks", "10", "--fail-at", "4",
                       "--workers", "2", "--backend", "thread", "--scheduling", "static",
                       "--no-serial"])
    out = capsys.readouterr().out
    assert code == 1
    assert "task 4 failed" in out


def test_collect_reports_failures(capsys):
    code = bench.main(["--workload", "fail", "--tasks", "10", "--fail-at", "4",
                       "--workers", "2", "--backend", "thread", "--on-error", "collect",
                       "--scheduling", "dynamic"])
    out = capsys.readouterr().out
    assert code == 0
    assert "1 failed at [4]" in out


def test_bootstrap_prints_interval(capsys):
    code = bench.main(["--workload", "bootstrap", "--tasks", "50", "--workers", "2",
                       "--backend", "thread", "--scheduling", "static", "--no-serial"])
    out = capsys.readouterr().out
    assert code == 0
    assert "95% CI for the mean" in out


def test_environment_supplies_defaults(monkeypatch, capsys):
    monkeypatch.setenv("POOL_BACKEND", "thread")
    monkeypatch.setenv("POOL_WORKERS", "3")
    code = bench.main(["--workload", "skewed", "--tasks", "6", "--unit", "0",
                       "--scheduling", "dynamic", "--no-serial"])
    assert code == 0
    assert "3 thread workers" in capsys.readouterr().out


def test_bad_worker_count_is_a_usage_error():
    with pytest.raises(SystemExit) as info:
        bench.main(["--workers", "0", "--backend", "thread"])
    assert info.value.code == 2


def test_unknown_workload_rejected_by_argparse():
    with pytest.raises(SystemExit):
        bench.main(["--workload", "matrix"])


def test_environment_picks_the_scheduling_policy(monkeypatch, capsys):
    monkeypatch.setenv("POOL_SCHEDULING", "dynamic")
    code = bench.main(["--workload", "sqrt", "--tasks", "8", "--workers", "2",
                       "--backend", "thread", "--no-serial"])
    out = capsys.readouterr().out
    assert code == 0
    assert "dynamic" in out
    assert "static" not in out


def test_explicit_both_overrides_environment(monkeypatch, capsys):
    monkeypatch.setenv("POOL_SCHEDULING", "dynamic")
    code = bench.main(["--workload", "sqrt", "--tasks", "8", "--workers", "2",
                       "--backend", "thread", "--no-serial", "--scheduling", "both"])
    out = capsys.readouterr().out
    assert code == 0
    assert "static" in out and "dynamic" in out
