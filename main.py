"""DeepDive - source analysis

Simple CLI for analyzing a saved page without the browser extension.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from deepdive.agents.orchestrator import AnalysisOrchestrator
from deepdive.models.schemas import AnalyzeRequest, SourceMetadata


async def run_analysis(request: AnalyzeRequest, show_chunks: bool = False):
    """Stream one analysis and print progress."""
    print(f"Analyzing: {request.url}")
    print("-" * 50)

    orchestrator = AnalysisOrchestrator()

    events = await orchestrator.analyze_stream(request)
    async for event in events:
        event_type = event.event.value
        data = event.data

        if event_type == "status":
            print(f"\n[~] {data.get('message', data.get('stage'))}")

        elif event_type in ("summary_chunk", "credibility_chunk"):
            if show_chunks:
                print(data.get("chunk", ""), end="", flush=True)
            else:
                print(".", end="", flush=True)

        elif event_type == "summary_complete":
            print(f"\n[+] Summary{' (degraded)' if data.get('degraded') else ''}:")
            print(f"   {data.get('summary', '')}")
            for bullet in data.get("bullets", []):
                print(f"   - {bullet}")

        elif event_type == "credibility_complete":
            cred = data.get("credibility", {})
            print(f"\n[+] Credibility: {cred.get('label')} ({cred.get('score')})")
            print(f"   {cred.get('overall_assessment', '')}")

        elif event_type == "fact_check_complete":
            claims = data.get("fact_check", {}).get("claims", [])
            print(f"\n[+] Fact check: {len(claims)} claims")
            for claim in claims:
                print(f"   [{claim.get('status')}] {claim.get('claim')}")

        elif event_type == "complete":
            result = data.get("result", {})
            meta = result.get("source_meta", {})
            print(f"\n[*] Analysis Complete{' (cached)' if data.get('cached') else ''}")
            print(f"   Words: {meta.get('word_count')}  Reading time: {meta.get('reading_time')} min")
            print(f"   Conversation: {result.get('conversation_id')}")

        elif event_type == "error":
            print(f"\n[!] Error: {data.get('message', 'Unknown error')}")

    await orchestrator.drain()


def main():
    parser = argparse.ArgumentParser(description="DeepDive source analysis")
    parser.add_argument("file", help="Text file holding the extracted page content")
    parser.add_argument("--url", "-u", required=True, help="URL the content came from")
    parser.add_argument("--title", "-t", help="Page title")
    parser.add_argument("--author", "-a", help="Author name")
    parser.add_argument("--source", "-s", help="Publication or site name")
    parser.add_argument("--video", action="store_true", help="Treat the content as a video transcript")
    parser.add_argument("--show-chunks", action="store_true", help="Print raw streamed provider text")

    args = parser.parse_args()

    path = Path(args.file)
    if not path.is_file():
        print(f"File not found: {path}", file=sys.stderr)
        sys.exit(1)

    request = AnalyzeRequest(
        url=args.url,
        content=path.read_text(encoding="utf-8"),
        type="video" if args.video else "article",
        metadata=SourceMetadata(title=args.title, author=args.author, source=args.source),
    )
    asyncio.run(run_analysis(request, show_chunks=args.show_chunks))


if __name__ == "__main__":
    main()
