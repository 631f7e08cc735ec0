"""
Inspect how smart mode would route a query.

Usage:
    python scripts/analyze_query.py "比較方案A和方案B的優缺點？"
    python scripts/analyze_query.py --json --config configs/query_analyzer.yaml "How do we cut churn?"
"""
import argparse
import json
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.llm.providers.query_analyzer import analyze_query, load_analyzer_config, should_use_smart_mode


def main():
    parser = argparse.ArgumentParser(description="Score a query and show the recommended model")
    parser.add_argument("query", nargs="+", help="Query text")
    parser.add_argument("--config", help="YAML scoring policy override")
    parser.add_argument("--json", action="store_true", help="Print the raw analysis as JSON")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    query = " ".join(args.query)
    config = load_analyzer_config(args.config)
    result = analyze_query(query, config)

    if args.json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return

    print(f"Query:       {query}")
    print(f"Complexity:  {result.complexity.value} (score {result.score}/100)")
    print(
        f"Factors:     length={result.factors.length} "
        f"technical={result.factors.technical} structure={result.factors.structure}"
    )
    print(f"Model:       {result.recommended_model}")
    print(f"Clear-cut:   {'yes' if should_use_smart_mode(query, config) else 'no (borderline)'}")
    print(f"Reasoning:   {result.reasoning}")


if __name__ == "__main__":
    main()
