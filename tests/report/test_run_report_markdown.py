# tests/report/test_run_report_markdown.py
"""
Testes do gerador de report.md.

Os testes asseguram que:
- todas as seções obrigatórias estão presentes
- Stages e Jobs aparecem em ordem declarada / de expansão
- a seção de falhas mostra o primeiro Step que falhou e sua saída
- Jobs cancelados não aparecem como causa raiz
- o mesmo RunReport produz o mesmo documento
"""

import pytest

from atlas_ci.core.artifacts.store import Artifact
from atlas_ci.core.engine.run_report import RunReport
from atlas_ci.core.pipeline.types import (
    Event,
    EventKind,
    FailurePolicy,
    Job,
    JobResult,
    JobState,
    RunStatus,
    StageOutcome,
    StageResult,
    StepOutcome,
)
from atlas_ci.report import REQUIRED_SECTIONS, generate_run_report_md


def _failed_report():
    bad = Job(job_id="build (python=38)", stage="build", index=0, binding=(("python", 38),))
    cancelled = Job(job_id="build (python=39)", stage="build", index=1, binding=(("python", 39),))
    step = StepOutcome(
        step_id="compile",
        uses="wheel.build",
        succeeded=False,
        exit_status=2,
        log="error: Microsoft Visual C++ 14.0 is required",
        error={"type": "STEP_FAILURE", "message": "Step retornou status de falha", "details": {}, "hint": None},
    )
    return RunReport(
        run_id="r1",
        pipeline="wheels",
        event=Event(EventKind.PUSH, "refs/heads/master"),
        status=RunStatus.FAILED,
        stages=(
            StageResult(
                name="build",
                outcome=StageOutcome.FAILED,
                policy=FailurePolicy.FAIL_FAST,
                jobs=(
                    JobResult(job=bad, state=JobState.FAILED, steps=(step,), error=step.error),
                    JobResult(job=cancelled, state=JobState.CANCELLED),
                ),
                reason="1 job(s) failed",
            ),
        ),
        artifacts=(Artifact("r1", "build", "build (python=37)", "artifact", "mem://x", ("a.whl",)),),
        started_at="2024-01-01T12:00:00+00:00",
        finished_at="2024-01-01T12:00:05+00:00",
        meta={"config_hash": "abc"},
    )


def test_all_required_sections_present():
    md = generate_run_report_md(_failed_report())

    for section in REQUIRED_SECTIONS:
        assert section in md


def test_failures_show_first_failed_step_output():
    md = generate_run_report_md(_failed_report())
    failures = md.split("## Failures", 1)[1].split("## Artifacts", 1)[0]

    assert "### build (python=38)" in failures
    assert "`compile`" in failures
    assert "Microsoft Visual C++ 14.0 is required" in failures
    assert "python=39" not in failures


def test_summary_and_tables():
    md = generate_run_report_md(_failed_report())

    assert "- **Status**: `failed`" in md
    assert "- **Jobs**: 2 (cancelled: 1, failed: 1)" in md
    assert "| build | `failed` | fail-fast | 2 | 1 job(s) failed |" in md
    assert "**artifact**" in md and "a.whl" in md


def test_output_is_deterministic_and_accepts_dict():
    report = _failed_report()

    assert generate_run_report_md(report) == generate_run_report_md(report.to_dict())


def test_empty_input_is_rejected():
    with pytest.raises(ValueError):
        generate_run_report_md({})
