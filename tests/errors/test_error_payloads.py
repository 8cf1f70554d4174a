# tests/errors/test_error_payloads.py
"""
Testes do padrão canônico de erros (AtlasErrorPayload + exceções tipadas).

Os testes asseguram que:
- cada exceção tipada mapeia para um código estável
- payloads são serializáveis e não carregam stack trace
- as fábricas preenchem os detalhes esperados
"""

import json

import pytest

from atlas_ci.core.errors import (
    ARTIFACT_DUPLICATE,
    ARTIFACT_NOT_READY,
    DEFINITION_ERROR,
    ENGINE_EXECUTION_ERROR,
    JOB_CANCELLED,
    STEP_FAILURE,
    engine_execution_error,
    job_cancelled,
    step_failure,
)
from atlas_ci.core.exceptions import (
    CancellationError,
    DefinitionError,
    DuplicateArtifactError,
    IllegalTransitionError,
    NotReadyError,
    StepFailure,
)


@pytest.mark.parametrize(
    "exc_type, code",
    [
        (DefinitionError, DEFINITION_ERROR),
        (StepFailure, STEP_FAILURE),
        (CancellationError, JOB_CANCELLED),
        (NotReadyError, ARTIFACT_NOT_READY),
        (DuplicateArtifactError, ARTIFACT_DUPLICATE),
        (IllegalTransitionError, ENGINE_EXECUTION_ERROR),
    ],
)
def test_exceptions_map_to_stable_codes(exc_type, code):
    exc = exc_type("msg", details={"stage": "build"}, hint="fix it")

    payload = exc.to_payload().to_dict()

    assert payload == {"type": code, "message": "msg", "details": {"stage": "build"}, "hint": "fix it"}
    assert isinstance(exc, Exception)


def test_factories_are_json_serializable():
    payloads = [
        step_failure(step="build", job="build (python=37)", exit_status=2),
        job_cancelled(job="build (python=38)", stage="build", skipped_steps=["build", "store"]),
        engine_execution_error(step="build", exc_type="RuntimeError", exc_message="boom"),
    ]

    for payload in payloads:
        encoded = json.dumps(payload.to_dict())
        assert "Traceback" not in encoded

    assert payloads[0].details == {"step": "build", "job": "build (python=37)", "exit_status": 2}
    assert payloads[1].details["skipped_steps"] == ["build", "store"]
    assert payloads[2].type == ENGINE_EXECUTION_ERROR
