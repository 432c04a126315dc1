"""deepreport - research reports from web sources

Simple CLI for agent runs and manual searches.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from deepreport.errors import ResearchError
from deepreport.models.events import SSEEvent
from deepreport.models.research import TIME_FILTERS
from deepreport.services.session import ResearchSession


def print_event(event: SSEEvent) -> None:
    event_type = event.event.value
    data = event.data

    if event_type == "run_started":
        print(f"[*] {data.get('mode', 'agent').title()} run {data.get('run_id')} started")

    elif event_type == "insight":
        print(f"  - {data.get('message', '')}")

    elif event_type == "search_result":
        print(f"\n[~] {len(data.get('results', []))} results for \"{data.get('query')}\"")

    elif event_type == "sources_selected":
        print("\n[+] Selected sources:")
        for source in data.get("sources", []):
            print(f"  {source.get('score', 0):.2f}  {source.get('url')}")

    elif event_type == "source_resolved":
        marker = "+" if data.get("state") == "fetched" else "~"
        progress = f"{data.get('completed', 0)}/{data.get('total', 0)}"
        print(f"  [{marker}] {progress} {data.get('url')} ({data.get('state')})")

    elif event_type == "report_ready":
        fetch = data.get("fetch_status", {})
        print(f"\n[*] Report ready ({fetch.get('successful', 0)}/{fetch.get('total', 0)} sources fetched in full)")

    elif event_type == "error":
        print(f"\n[!] {data.get('category', 'error')}: {data.get('message', 'Unknown error')}")


async def run_agent(prompt: str, model: str | None, time_filter: str | None) -> ResearchSession:
    session = ResearchSession(model_id=model, time_filter=time_filter)
    session.subscribe(print_event)
    print(f"Research prompt: {prompt}")
    print("-" * 50)
    await session.start_agent_run(prompt)
    return session


async def run_manual(
    query: str,
    prompt: str | None,
    urls: list[str],
    files: list[Path],
    model: str | None,
    time_filter: str | None,
) -> ResearchSession:
    session = ResearchSession(model_id=model, time_filter=time_filter)
    session.subscribe(print_event)

    for path in files:
        candidate = await session.upload_file(path.name, path.read_bytes())
        session.set_selected(candidate.id, True)
    for url in urls:
        candidate = session.add_custom_url(url)
        session.set_selected(candidate.id, True)

    if query:
        print(f"Search query: {query}")
        print("-" * 50)
        candidates = await session.start_manual_search(query)
        for candidate in candidates:
            if candidate.is_custom:
                continue
            if not session.set_selected(candidate.id, True):
                break
    for idx, candidate in enumerate(session.selected_candidates, 1):
        print(f"  {idx}. {candidate.name} <{candidate.url}>")

    await session.generate_report(prompt)
    return session


def main():
    parser = argparse.ArgumentParser(description="deepreport research tool")
    parser.add_argument("--prompt", "-p", help="Research prompt (agent mode) or report prompt (manual mode)")
    parser.add_argument("--manual", action="store_true", help="Search and select sources yourself instead of the agent")
    parser.add_argument("--query", "-q", help="Search query for manual mode")
    parser.add_argument("--url", "-u", action="append", default=[], help="Add a custom source URL (manual mode)")
    parser.add_argument("--file", "-f", action="append", default=[], type=Path, help="Add a local document (manual mode)")
    parser.add_argument("--model", "-m", help="Model to use (default: from config)")
    parser.add_argument("--time-filter", "-t", choices=TIME_FILTERS, help="Restrict search results by age")
    parser.add_argument("--output", "-o", type=Path, help="Write the report as markdown to this file")

    args = parser.parse_args()

    try:
        if args.manual:
            if not (args.query or args.url or args.file):
                parser.error("manual mode needs --query, --url or --file")
            session = asyncio.run(
                run_manual(args.query, args.prompt, args.url, args.file, args.model, args.time_filter)
            )
        else:
            if not args.prompt:
                parser.error("--prompt is required in agent mode")
            session = asyncio.run(run_agent(args.prompt, args.model, args.time_filter))
    except ResearchError as exc:
        print(f"\n[!] {exc.category.value}: {exc.message}", file=sys.stderr)
        sys.exit(1)

    if session.report is None:
        sys.exit(1)

    markdown = session.report.to_markdown()
    if args.output:
        args.output.write_text(markdown, encoding="utf-8")
        print(f"\nReport written to {args.output}")
    else:
        print(f"\n{'='*50}")
        print("REPORT:")
        print(f"{'='*50}")
        print(markdown)


if __name__ == "__main__":
    main()
