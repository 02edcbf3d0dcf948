#!/usr/bin/env python3
"""
Search Index Management Utility

This script provides utilities to manage the Elasticsearch mirror:
- Compare primary store and search index counts
- Check whether a book is present in each store
- Rebuild the search index from the primary store
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from catalog.database import MongoBookStore
from catalog.models import PageSpec
from catalog.monitoring import IndexSyncMonitor
from catalog.search import ElasticsearchBookIndex
from catalog.service import BookService
from utilities.config import config
from utilities.logger import setup_logging


def build_stores():
    store = MongoBookStore(
        connection_url=config.mongodb_url,
        database_name=config.mongodb_database,
        collection_name=config.mongodb_collection,
        counters_collection_name=config.mongodb_counters_collection,
        timeout_ms=config.mongodb_timeout_ms
    )
    index = ElasticsearchBookIndex(
        url=config.elasticsearch_url,
        index_name=config.elasticsearch_index,
        request_timeout=config.elasticsearch_timeout,
        refresh=config.get_refresh_policy(),
        max_result_window=config.elasticsearch_max_result_window
    )
    return store, index


async def show_statistics():
    """Show primary store and search index counts."""
    print("\n📊 SEARCH INDEX STATISTICS")
    print("="*80)

    store, index = build_stores()
    try:
        await store.connect()
        await index.connect()

        book_count = await store.count()
        indexed_count = await index.count()

        print(f"📚 Books in MongoDB: {book_count}")
        print(f"🔍 Documents in Elasticsearch: {indexed_count}")

        if book_count == indexed_count:
            print("✅ Counts match")
        else:
            print(f"\n⚠️  Warning: counts differ by {abs(book_count - indexed_count)}")
            print("   Run reindex to rebuild the search index.")

    except Exception as e:
        print(f"❌ Error getting statistics: {e}")
    finally:
        await index.disconnect()
        await store.disconnect()


async def find_book(book_id: int):
    """Check whether a book is present in each store."""
    print(f"\n🔍 LOOKING UP BOOK {book_id}")
    print("="*80)

    store, index = build_stores()
    try:
        await store.connect()
        await index.connect()

        book = await store.find_by_id(book_id)
        if book:
            print(f"✅ MongoDB: {book.name} ({book.author or 'unknown author'}, {book.publish_date or 'no date'})")
        else:
            print("❌ MongoDB: not found")

        hits, _ = await index.query_page(f"id:{book_id}", PageSpec(per_page=1))
        if hits:
            print(f"✅ Elasticsearch: {hits[0].name}")
            if book and hits[0] != book:
                print("⚠️  Indexed copy differs from MongoDB")
        else:
            print("❌ Elasticsearch: not found")
            if book:
                print("⚠️  Book exists in MongoDB but is missing from the index")

    except Exception as e:
        print(f"❌ Error looking up book: {e}")
    finally:
        await index.disconnect()
        await store.disconnect()


async def reindex(fresh: bool = False):
    """Rebuild the search index from the primary store."""
    print("\n🔁 REINDEXING BOOKS")
    print("="*80)

    store, index = build_stores()
    try:
        await store.connect()
        await index.connect()

        service = BookService(store, index, IndexSyncMonitor(config.index_alert_max_per_hour))
        result = await service.reindex(page_size=config.max_page_size, fresh=fresh)

        print(f"📥 Books mirrored: {result['mirrored']}")
        if result["failed"]:
            print(f"❌ Failed ids: {', '.join(str(book_id) for book_id in result['failed'])}")
        else:
            print("✅ Reindex completed successfully")

    except Exception as e:
        print(f"❌ Error during reindex: {e}")
    finally:
        await index.disconnect()
        await store.disconnect()


async def main():
    """Main function."""
    if len(sys.argv) < 2:
        print("Usage: python manage_index.py [stats|find|reindex] [id|--fresh]")
        print()
        print("Commands:")
        print("  stats    - Compare MongoDB and Elasticsearch counts")
        print("  find     - Check whether a book id is present in each store")
        print("  reindex  - Rebuild the search index from MongoDB (--fresh clears it first)")
        print()
        print("Examples:")
        print("  python manage_index.py stats")
        print("  python manage_index.py find 42")
        print("  python manage_index.py reindex --fresh")
        sys.exit(1)

    command = sys.argv[1].lower()

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    if command == "stats":
        await show_statistics()
    elif command == "find":
        if len(sys.argv) < 3 or not sys.argv[2].isdigit():
            print("❌ Error: numeric book id required for find command")
            print("Usage: python manage_index.py find <id>")
            sys.exit(1)
        await find_book(int(sys.argv[2]))
    elif command == "reindex":
        await reindex(fresh="--fresh" in sys.argv[2:])
    else:
        print(f"❌ Unknown command: {command}")
        print("Available commands: stats, find, reindex")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
