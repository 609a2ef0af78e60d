from __future__ import annotations
import argparse
import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from manuscript_doctor.analysis import SCAN_KINDS, extract_issues
from manuscript_doctor.changelog import load_project, render_analysis_report, save_project, write_txt
from manuscript_doctor.config import DoctorConfig, load_config
from manuscript_doctor.llm.client import ClaudeClient
from manuscript_doctor.scan import ScanOrchestrator
from manuscript_doctor.session import GlobalEditSession
from manuscript_doctor.sweep import BatchRewritePipeline, SweepConfig
from manuscript_doctor.workspace import Workspace


async def _run_scan(args, workspace: Workspace, client: ClaudeClient, config: DoctorConfig) -> Dict[str, Any]:
    orchestrator = ScanOrchestrator(workspace, client.run_scan, call_timeout=config.call_timeout or None)
    print(f"Running {args.kind} scan over {len(workspace.project.documents)} chapters")
    outcome = await orchestrator.run(args.kind)
    return {
        "mode": "scan",
        "kind": args.kind,
        "success": outcome.success,
        "error": outcome.error,
        "issues_found": len(orchestrator.issues(args.kind)),
    }


async def _run_sweep(args, workspace: Workspace, client: ClaudeClient, config: DoctorConfig) -> Dict[str, Any]:
    issues = extract_issues(workspace.project.analysis, args.kind)
    pipeline = BatchRewritePipeline(
        workspace,
        client.rewrite_document,
        SweepConfig(pacing_delay=config.pacing_delay, call_timeout=config.call_timeout or None),
    )

    def progress(completed, total):
        print(f"  rewriting: {completed}/{total} ({pipeline.percent_complete:.0f}%)")

    result = await pipeline.run(issues, progress_callback=progress)
    return {
        "mode": "sweep",
        "kind": args.kind,
        "status": result.status,
        "issues": len(result.issues),
        "chapters": result.total_documents,
        "rewritten": result.rewritten,
        "failed": result.failed,
        "failures": {o.title: o.error for o in result.outcomes if not o.success},
        "processing_time_s": round(result.total_time_s, 1),
    }


async def _run_edits(args, workspace: Workspace, client: ClaudeClient, config: DoctorConfig) -> Dict[str, Any]:
    session = GlobalEditSession(workspace, client.stream_global_edits)
    status = await session.run_scan()
    print(f"{status.status_text} ({len(session.store)} suggestions)")

    output: Dict[str, Any] = {
        "mode": "edits",
        "status": status.status_text,
        "error": status.error,
        "suggestions": [s.to_dict() for s in session.store.suggestions],
    }
    if args.apply_all:
        summary = session.apply_all()
        print(summary.message)
        output.update({
            "applied": summary.applied,
            "conflicts": summary.conflicts,
            "missing": summary.missing,
        })
    if args.suggestions_file:
        Path(args.suggestions_file).write_text(json.dumps(output["suggestions"], indent=2, ensure_ascii=False))
    return output


def main():
    ap = argparse.ArgumentParser(
        prog="ms-doctor",
        description="Manuscript Doctor: global edits, analysis scans and fix sweeps for multi-chapter manuscripts"
    )
    ap.add_argument("project_json", help="Path to project JSON (title, genre, story_bible, chapters, analysis)")
    ap.add_argument(
        "--mode", default="scan",
        choices=["scan", "sweep", "edits", "report"],
        help="scan (run one analysis kind), sweep (rewrite all chapters against the kind's issues), "
             "edits (stream anchored suggestions), report (export analysis only)"
    )
    ap.add_argument("--kind", default="health", choices=list(SCAN_KINDS), help="Analysis kind for scan/sweep")
    ap.add_argument("--out", help="Write the updated project here instead of overwriting the input")
    ap.add_argument("--report", help="Also write a plain-text analysis report to this path")
    ap.add_argument("--config", help="YAML config file overriding packaged defaults")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    edits_group = ap.add_argument_group("Global Edit Options (--mode edits)")
    edits_group.add_argument("--apply-all", action="store_true", help="Apply every suggestion that still matches")
    edits_group.add_argument("--suggestions-file", help="Write streamed suggestions as JSON")

    llm_group = ap.add_argument_group("LLM Options")
    llm_group.add_argument(
        "--anthropic-api-key",
        default=os.environ.get("ANTHROPIC_API_KEY"),
        help="Anthropic API key (or set ANTHROPIC_API_KEY env var)"
    )
    llm_group.add_argument("--llm-model", default=None, help="Claude model override")
    llm_group.add_argument("--pacing-delay", type=float, default=None, help="Seconds between sweep chapters")

    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.mode != "report" and not args.anthropic_api_key:
        ap.error(f"--mode {args.mode} requires --anthropic-api-key or ANTHROPIC_API_KEY environment variable")

    config = load_config(
        args.config,
        api_key=args.anthropic_api_key,
        model=args.llm_model,
        pacing_delay=args.pacing_delay,
    )
    project = load_project(args.project_json)
    workspace = Workspace(project, history_limit=config.history_limit)
    client = ClaudeClient(config)

    runners = {"scan": _run_scan, "sweep": _run_sweep, "edits": _run_edits}
    if args.mode in runners:
        output = asyncio.run(runners[args.mode](args, workspace, client, config))
    elif not args.report:
        print(render_analysis_report(project.title, project.analysis))
        return
    else:
        output = {"mode": "report"}

    out_path = args.out or args.project_json
    if args.mode != "report":
        save_project(out_path, workspace.project)
        output["project_file"] = out_path
    if args.report:
        write_txt(args.report, workspace.project.title, workspace.project.analysis)
        output["report_file"] = args.report

    print(json.dumps(output, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
