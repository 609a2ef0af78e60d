"""
Manuscript Doctor

Anchored global edits, analysis scans and fix sweeps over multi-chapter
manuscripts, with bounded undo/redo.
"""
__version__ = "0.3.0"
