"""Relatórios derivados do RunReport."""

from .report_md import REQUIRED_SECTIONS, generate_run_report_md

__all__ = ["REQUIRED_SECTIONS", "generate_run_report_md"]
