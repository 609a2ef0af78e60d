"""
Global-Fix Sweep

Turns abstract issues from an analysis view into one full rewrite pass
over every chapter, sequentially, with pacing and per-chapter failure
isolation.
"""
from manuscript_doctor.sweep.prompts import build_sweep_instructions, SWEEP_INSTRUCTION_HEADER
from manuscript_doctor.sweep.orchestrator import (
    BatchRewritePipeline,
    DocumentOutcome,
    SweepConfig,
    SweepResult,
)

__all__ = [
    "build_sweep_instructions",
    "SWEEP_INSTRUCTION_HEADER",
    "BatchRewritePipeline",
    "DocumentOutcome",
    "SweepConfig",
    "SweepResult",
]
