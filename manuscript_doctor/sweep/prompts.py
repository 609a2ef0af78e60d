"""
Instruction block for the global-fix sweep.

Every chapter receives the same combined instruction built from the
issue list of the active analysis view.
"""
from __future__ import annotations
from typing import List

SWEEP_INSTRUCTION_HEADER = (
    "Perform a deep developmental edit on each chapter to resolve these global issues. "
    "Preserve the author's voice and do not change the core plot, only refine it based "
    "on this feedback:"
)


def build_sweep_instructions(issues: List[str]) -> str:
    cleaned = [i.strip() for i in issues if i and i.strip()]
    return SWEEP_INSTRUCTION_HEADER + "\n- " + "\n- ".join(cleaned)
