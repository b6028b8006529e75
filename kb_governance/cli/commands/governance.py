"""Run the governance detectors from the command line."""

import logging

from kb_governance.cli.context import report_failure
from kb_governance.governance.pipeline import GovernancePipeline
from kb_governance.models.database import DatabaseManager

logger = logging.getLogger(__name__)


def add_analyze_parser(subparsers):
    parser = subparsers.add_parser(
        "analyze",
        help="Run governance detectors over stored articles",
    )
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument(
        "--article-id",
        type=int,
        help="Analyze a single article by id",
    )
    scope.add_argument(
        "--all",
        action="store_true",
        help="Analyze every article in id order",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=200,
        help="Most recently updated articles to analyze (default: 200)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=100,
        help="Batch size when analyzing all articles (default: 100)",
    )
    parser.add_argument(
        "--skip-duplicates",
        action="store_true",
        help="Do not run the global duplicate scan afterwards",
    )
    return parser


def add_duplicates_parser(subparsers):
    parser = subparsers.add_parser(
        "duplicates",
        help="Open or refresh DUPLICATE_CONTENT issues",
    )
    parser.add_argument(
        "--hash",
        dest="content_hash",
        help="Only process the articles sharing this content hash",
    )
    return parser


def handle_analyze_command(args) -> int:
    print()
    print("🔍 Governance analysis")
    print("=" * 70)
    try:
        with DatabaseManager() as db:
            pipeline = GovernancePipeline(db)
            if args.article_id is not None:
                touched = pipeline.analyze_article_id(args.article_id)
                if touched is None:
                    print(f"Article {args.article_id} not found")
                    return 1
                print(f"Article {args.article_id}: {touched} issue(s) opened or refreshed")
            elif args.all:
                analyzed = pipeline.analyze_all(args.batch_size)
                print(f"Articles analyzed: {analyzed}")
            else:
                analyzed = pipeline.analyze_recent(args.limit)
                print(f"Articles analyzed: {analyzed}")

            if not args.skip_duplicates and args.article_id is None:
                duplicates = pipeline.analyze_all_duplicates()
                print(f"Duplicate issues opened/refreshed: {duplicates}")

            stats = pipeline.stats
            print(f"Issues touched: {stats.issues_touched}")
            if stats.detector_errors:
                print(f"⚠️  Detector errors: {stats.detector_errors}")
                for name, count in sorted(stats.errors_by_detector.items()):
                    print(f"  - {name}: {count}")
        print()
        return 0
    except Exception as e:
        logger.error("Governance analysis failed: %s", e, exc_info=True)
        return report_failure(e, "Analysis")


def handle_duplicates_command(args) -> int:
    try:
        with DatabaseManager() as db:
            pipeline = GovernancePipeline(db)
            if args.content_hash:
                detector = pipeline.duplicate_detector()
                count = detector.analyze_hash(args.content_hash)
            else:
                count = pipeline.analyze_all_duplicates()
        print(f"✅ Duplicate issues opened/refreshed: {count}")
        return 0
    except Exception as e:
        return report_failure(e, "Duplicate scan")
