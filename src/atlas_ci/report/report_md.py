"""
src/atlas_ci/report/report_md.py

Gerador canônico de `report.md` (v1) — Atlas CI

Regras:
- O report.md é derivado EXCLUSIVAMENTE do RunReport (ou de seu `to_dict()`).
- Não infere, não recalcula, não acessa filesystem.
- Mesmo RunReport => mesmo report.md (ordem declarada de stages, ordem
  de expansão de jobs, chaves JSON ordenadas).

Estrutura mínima obrigatória:
# Run Report

## Executive Summary
## Stages
## Jobs
## Failures
## Artifacts
## Execution Metadata
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Union

from atlas_ci.core.engine.run_report import RunReport


REQUIRED_SECTIONS: List[str] = [
    "# Run Report",
    "## Executive Summary",
    "## Stages",
    "## Jobs",
    "## Failures",
    "## Artifacts",
    "## Execution Metadata",
]


def _as_pretty_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True, indent=2, default=str)


def _require_report(report: Union[RunReport, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(report, RunReport):
        return report.to_dict()
    if not isinstance(report, dict) or not report:
        raise ValueError("RunReport is required to generate report.md")
    return report


def _matrix_label(matrix: Dict[str, Any]) -> str:
    if not matrix:
        return "-"
    return ", ".join(f"{k}={v}" for k, v in matrix.items())


def generate_run_report_md(report: Union[RunReport, Dict[str, Any]]) -> str:
    """Gera o conteúdo completo do report.md a partir do RunReport final."""
    data = _require_report(report)

    stages = data.get("stages") if isinstance(data.get("stages"), list) else []
    artifacts = data.get("artifacts") if isinstance(data.get("artifacts"), list) else []
    event = data.get("event") if isinstance(data.get("event"), dict) else {}
    jobs = [job for stage in stages for job in (stage.get("jobs") or [])]

    lines: List[str] = []

    lines.append("# Run Report\n")

    # Executive Summary
    lines.append("## Executive Summary")
    lines.append(f"- **Pipeline**: `{data.get('pipeline', '<unknown>')}`")
    lines.append(f"- **Run ID**: `{data.get('run_id', '<unknown>')}`")
    lines.append(f"- **Event**: `{event.get('kind', '<unknown>')}` on `{event.get('ref') or '-'}`")
    lines.append(f"- **Status**: `{data.get('status', '<unknown>')}`")
    counts: Dict[str, int] = {}
    for job in jobs:
        counts[job.get("state", "unknown")] = counts.get(job.get("state", "unknown"), 0) + 1
    summary = ", ".join(f"{state}: {n}" for state, n in sorted(counts.items())) or "no jobs"
    lines.append(f"- **Jobs**: {len(jobs)} ({summary})\n")

    # Stages
    lines.append("## Stages")
    if stages:
        lines.append("| Stage | Outcome | Policy | Jobs | Reason |")
        lines.append("|---|---|---|---|---|")
        for stage in stages:
            lines.append(
                f"| {stage.get('name')} | `{stage.get('outcome')}` | {stage.get('policy')} "
                f"| {len(stage.get('jobs') or [])} | {stage.get('reason') or ''} |"
            )
    else:
        lines.append("No stages recorded in the RunReport.")
    lines.append("")

    # Jobs
    lines.append("## Jobs")
    if jobs:
        lines.append("| Job | Stage | Matrix | State | Steps |")
        lines.append("|---|---|---|---|---|")
        for job in jobs:
            lines.append(
                f"| {job.get('display_name') or job.get('job_id')} | {job.get('stage')} "
                f"| {_matrix_label(job.get('matrix') or {})} | `{job.get('state')}` "
                f"| {len(job.get('steps') or [])} |"
            )
    else:
        lines.append("No jobs recorded in the RunReport.")
    lines.append("")

    # Failures: apenas a causa raiz (jobs FAILED), nunca os cancelados
    lines.append("## Failures")
    failed = [job for job in jobs if job.get("state") == "failed"]
    if failed:
        for job in failed:
            step = job.get("first_failed_step") or {}
            lines.append(f"### {job.get('job_id')}")
            lines.append(f"- **Step**: `{step.get('step_id', '<unknown>')}` (`{step.get('uses', '')}`)")
            lines.append(f"- **Exit status**: `{step.get('exit_status')}`")
            error = step.get("error") or job.get("error")
            if error:
                lines.append("```json")
                lines.append(_as_pretty_json(error))
                lines.append("```")
            if step.get("log"):
                lines.append("```text")
                lines.append(str(step.get("log")))
                lines.append("```")
    else:
        lines.append("No failed jobs.")
    lines.append("")

    # Artifacts
    lines.append("## Artifacts")
    if artifacts:
        for a in artifacts:
            files = ", ".join(a.get("files") or []) or "-"
            lines.append(
                f"- **{a.get('name')}** - stage `{a.get('stage')}`, job `{a.get('job_id')}` ({files})"
            )
    else:
        lines.append("No artifacts published.")
    lines.append("")

    # Execution Metadata
    lines.append("## Execution Metadata")
    lines.append(f"- Started At (UTC): `{data.get('started_at', '<unknown>')}`")
    lines.append(f"- Finished At (UTC): `{data.get('finished_at', '<unknown>')}`")
    lines.append("### meta")
    lines.append("```json")
    lines.append(_as_pretty_json(data.get("meta") or {}))
    lines.append("```")
    warnings = data.get("warnings") or {}
    if warnings:
        lines.append("### warnings")
        lines.append("```json")
        lines.append(_as_pretty_json(warnings))
        lines.append("```")

    content = "\n".join(lines)

    for sec in REQUIRED_SECTIONS:
        if sec not in content:
            raise RuntimeError(f"Report generation failed: missing required section: {sec}")

    return content
