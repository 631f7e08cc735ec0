"""
Add a text file to the knowledge base.

Usage:
    python scripts/add_knowledge.py --title "Refund policy" --user <uuid> docs/refunds.txt
    python scripts/add_knowledge.py --title "Pricing" --user <uuid> --tag pricing --tag sales pricing.md
"""
import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.app.ingest import ingest_text
from src.content.store import KnowledgeStore
from src.llm.config import LLMConfig
from src.llm.embeddings import EmbeddingService


def main():
    parser = argparse.ArgumentParser(description="Embed a text file and store it as a knowledge document")
    parser.add_argument("path", help="UTF-8 text file")
    parser.add_argument("--title", required=True)
    parser.add_argument("--user", required=True, help="Creator user id")
    parser.add_argument("--tag", action="append", default=[], help="Repeatable")
    parser.add_argument("--category")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    config = LLMConfig.from_env()
    config.validate()

    content = Path(args.path).read_text(encoding="utf-8")
    store = KnowledgeStore()
    try:
        document = ingest_text(
            store,
            EmbeddingService.from_config(config),
            args.title,
            content,
            args.user,
            tags=args.tag,
            category=args.category,
        )
    finally:
        store.close()

    print(f"Stored document {document.id}: {document.title} ({document.word_count} words)")


if __name__ == "__main__":
    main()
