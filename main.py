"""
Catalog query walkthrough.
Runs the lookup, update, listing, aggregation and indexing queries against the
configured books collection and logs each result.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from catalog import BookCatalogClient, CatalogError, PlanSummary, SortDirection
from utilities.config import config
from utilities.logger import setup_logging, get_logger, CatalogLogger


def _titles(books):
    return [book.title for book in books]


async def run_walkthrough(catalog: BookCatalogClient, log: CatalogLogger) -> None:
    """Run every catalog query once, in the order of the bookstore exercises."""
    log.log_section("Basic CRUD operations")
    books = await catalog.find_by_genre(config.demo_genre)
    log.log_query(f"genre == {config.demo_genre}", len(books), _titles(books))

    books = await catalog.find_published_after(config.demo_year)
    log.log_query(f"published_year > {config.demo_year}", len(books), _titles(books))

    books = await catalog.find_by_author(config.demo_author)
    log.log_query(f"author == {config.demo_author}", len(books), _titles(books))

    modified = await catalog.update_price(config.demo_title, config.demo_new_price)
    log.log_mutation("update_price", config.demo_title, modified)

    deleted = await catalog.delete_by_title(config.demo_delete_title)
    log.log_mutation("delete_by_title", config.demo_delete_title, deleted)

    log.log_section("Advanced queries")
    books = await catalog.find_in_stock_after(config.demo_in_stock_year)
    log.log_query(f"in stock and published_year > {config.demo_in_stock_year}", len(books), _titles(books))

    projected = await catalog.list_projected({"title", "author", "price"})
    log.log_query("projection title, author, price", len(projected),
                  [item.dict() for item in projected[:5]])

    for direction in (SortDirection.ASCENDING, SortDirection.DESCENDING):
        books = await catalog.list_sorted(direction)
        log.log_query(f"sorted by price {direction.name.lower()}", len(books),
                      [(book.title, str(book.price)) for book in books])

    total = await catalog.count_books()
    page_index = 0
    while page_index * config.demo_page_size < total:
        books = await catalog.list_page(config.demo_page_size, page_index)
        log.log_query(f"page {page_index + 1}", len(books), _titles(books))
        page_index += 1

    log.log_section("Aggregation pipelines")
    log.log_aggregation("average_price_by_genre", await catalog.average_price_by_genre())

    top = await catalog.author_with_most_books()
    log.log_aggregation("author_with_most_books", top.as_tuple() if top else None)

    decades = await catalog.count_by_decade()
    log.log_aggregation("count_by_decade", [decade.as_tuple() for decade in decades])

    log.log_section("Indexing")
    title_filter = {"title": config.demo_title}
    # The title index from an earlier run would hide the collection scan
    await catalog.drop_index(["title"])
    before = PlanSummary.from_explain(await catalog.explain_plan(title_filter))
    log.log_plan("before indexes", before.dict())

    for index_name in await catalog.ensure_default_indexes():
        log.log_index(index_name)

    after = PlanSummary.from_explain(await catalog.explain_plan(title_filter))
    log.log_plan("after indexes", after.dict())


async def main():
    """Main function to run the walkthrough."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    logger = get_logger(__name__)
    log = CatalogLogger("catalog.walkthrough").bind_context(
        database=config.mongodb_database,
        collection=config.mongodb_collection
    )

    try:
        async with BookCatalogClient.from_config(config) as catalog:
            await run_walkthrough(catalog, log)
    except CatalogError as e:
        logger.error("Walkthrough failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
