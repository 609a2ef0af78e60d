"""Claude-backed collaborators for global edits, rewrites and analysis scans."""
from manuscript_doctor.llm.client import ClaudeClient, extract_json

__all__ = ["ClaudeClient", "extract_json"]
