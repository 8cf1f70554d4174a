# src/atlas_ci/core/engine/__init__.py
"""
Engine do Atlas CI.

Componentes principais:
    - trigger       → admissão de eventos (quais definições disparam)
    - matrix        → expansão determinística de eixos em Jobs
    - planner       → ordenação topológica e validação estrutural
    - gate          → condições de elegibilidade de Stages
    - interpolation → resolução de `${{ ... }}` nos parâmetros de Steps
    - executor      → execução sequencial dos Steps de um Job
    - scheduler     → DAG de Stages, concorrência e políticas de falha
    - run_report    → resultado agregado de uma run
    - engine        → fachada: evento → runs → relatórios

Invariantes:
    - Stages só são lançados após todos os predecessores resolverem
    - Cada Job transiciona no máximo uma vez para cada estado
    - O resultado de uma run enumera todo Stage e todo Job

Os módulos não são reexportados aqui: `pipeline.definition` depende de
`engine.gate`, `engine.matrix` e `engine.refs`.
"""
