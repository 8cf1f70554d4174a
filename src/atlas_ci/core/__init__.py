# src/atlas_ci/core/__init__.py
"""
Core do Atlas CI.

Implementação canônica do engine de orquestração, independente de
transporte de artefatos, de publicação de releases e de actions
concretas.

Componentes principais:
    - config       → resolução de configuração (merge, validação, hashing)
    - pipeline     → definição declarativa, tipos, RunContext e contrato de actions
    - engine       → admissão de eventos, planejamento e execução do DAG de Stages
    - artifacts    → Artifact Store compartilhado entre Jobs
    - traceability → Manifest e Event Log

Princípios fundamentais:
    - Nenhuma decisão silenciosa: todo comportamento é explícito e testado
    - Estado compartilhado é mediado pelo RunContext e pelo Artifact Store
"""
