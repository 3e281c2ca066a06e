"""Content ingestion: scrape websites and snapshot pages for the chatbot."""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

import httpx
from bs4 import BeautifulSoup
from sqlalchemy.orm import Session

from cotrack.config import settings
from cotrack.constants import IngestionStatus, PageModel, SourceType
from cotrack.models.ingested_content import IngestedContent
from cotrack.models.page import PrivatePage, TeamPage
from cotrack.schemas.ingestion import PageSource, WebsiteSource
from cotrack.utils.logger import logger
from cotrack.utils.serialization import serialize_uuid
from cotrack.utils.timestamps import utc_now
from cotrack.utils.url import extract_domain

WEBSITE_ALREADY_INGESTED = "Website has already been ingested"
PAGE_ALREADY_INGESTED = "Page has already been ingested"

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
}
_STRIPPED_TAGS = ["script", "style", "noscript", "iframe", "embed", "object"]
_SPACES_RE = re.compile(r"[ \t\r\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n\s*\n(\s*\n)+")


@dataclass
class ScrapeResult:
    """Result of a website scrape."""
    success: bool
    url: str
    title: str = ""
    content: str = ""
    domain: str = ""
    error: Optional[str] = None


@dataclass
class IngestOutcome:
    """Result of ingesting one source."""
    success: bool
    ingested: Optional[IngestedContent] = None
    error: Optional[str] = None
    already_exists: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)


def normalize_whitespace(text: str) -> str:
    """Collapse runs of spaces and keep at most one blank line between blocks."""
    lines = [_SPACES_RE.sub(" ", line).strip() for line in text.splitlines()]
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()


def extract_page_text(html: str) -> Tuple[str, str]:
    """
    Pull the title and readable text out of an HTML document.

    Title falls back from ``<title>`` to ``og:title`` to the first ``<h1>``,
    then "Untitled".

    Returns:
        (title, content)
    """
    soup = BeautifulSoup(html, "lxml")
    for tag in soup.find_all(_STRIPPED_TAGS):
        tag.decompose()

    title = ""
    if soup.title and soup.title.get_text(strip=True):
        title = soup.title.get_text(strip=True)
    if not title:
        og_title = soup.find("meta", attrs={"property": "og:title"})
        if og_title and og_title.get("content"):
            title = og_title["content"].strip()
    if not title:
        h1 = soup.find("h1")
        if h1:
            title = h1.get_text(strip=True)

    body = soup.body or soup
    content = normalize_whitespace(body.get_text(separator="\n"))
    return title or "Untitled", content


def html_to_text(html: Optional[str]) -> str:
    """Plain text of a page's rich-text HTML."""
    if not html:
        return ""
    return normalize_whitespace(BeautifulSoup(html, "lxml").get_text(separator="\n"))


async def scrape_website(url: str) -> ScrapeResult:
    """
    Fetch a website and extract its text.

    Args:
        url: Website URL

    Returns:
        ScrapeResult; failures carry ``error`` instead of raising
    """
    domain = extract_domain(url) or url
    logger.info(f"[INGEST] Scraping website: {url}")
    try:
        async with httpx.AsyncClient(
            headers=_HEADERS,
            timeout=settings.scrape_timeout_seconds,
            follow_redirects=True,
            max_redirects=settings.scrape_max_redirects,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.TimeoutException:
        return ScrapeResult(False, url, domain=domain, error=f"Timed out after {settings.scrape_timeout_seconds} seconds")
    except httpx.TooManyRedirects:
        return ScrapeResult(False, url, domain=domain, error=f"Too many redirects (max {settings.scrape_max_redirects})")
    except httpx.HTTPStatusError as e:
        return ScrapeResult(False, url, domain=domain, error=f"HTTP {e.response.status_code} fetching {url}")
    except httpx.HTTPError as e:
        return ScrapeResult(False, url, domain=domain, error=str(e) or e.__class__.__name__)

    title, content = extract_page_text(response.text)
    return ScrapeResult(True, url, title=title, content=content, domain=domain)


def _find_existing_website(db: Session, url: str, session_code: str) -> Optional[IngestedContent]:
    return db.query(IngestedContent).filter(
        IngestedContent.source_type == SourceType.WEBSITE,
        IngestedContent.url == url,
        IngestedContent.session_code == session_code,
    ).first()


def _find_existing_page(db: Session, page_id: UUID, page_model: str, session_code: str) -> Optional[IngestedContent]:
    return db.query(IngestedContent).filter(
        IngestedContent.source_type == SourceType.PAGE,
        IngestedContent.page_id == page_id,
        IngestedContent.page_model == page_model,
        IngestedContent.session_code == session_code,
    ).first()


async def ingest_website(db: Session, url: str, user_code: Optional[str], session_code: str) -> IngestOutcome:
    """
    Scrape and store a website for a session.

    A completed ingestion of the same URL blocks a second one. A previous
    failed attempt is replaced by the new one.
    """
    existing = _find_existing_website(db, url, session_code)
    if existing and existing.status != IngestionStatus.FAILED:
        logger.info(f"[INGEST] Website {url} already ingested for session {session_code}")
        return IngestOutcome(False, ingested=existing, error=WEBSITE_ALREADY_INGESTED, already_exists=True)
    if existing:
        db.delete(existing)
        db.flush()

    result = await scrape_website(url)
    ingested = IngestedContent(
        source_type=SourceType.WEBSITE,
        url=url,
        domain=result.domain or "",
        title=result.title or "",
        content=result.content if result.success else "",
        status=IngestionStatus.COMPLETED if result.success else IngestionStatus.FAILED,
        error_message=result.error,
        scraped_at=utc_now(),
        scraped_by=user_code,
        session_code=session_code,
    )
    db.add(ingested)
    db.commit()
    db.refresh(ingested)

    if not result.success:
        logger.warning(f"[INGEST] Failed to scrape {url}: {result.error}")
        return IngestOutcome(False, ingested=ingested, error=result.error)

    logger.info(f"[INGEST] Ingested website {url} ({len(ingested.content)} chars)")
    return IngestOutcome(True, ingested=ingested)


def ingest_page(db: Session, page_id: str, is_team: bool, user_code: Optional[str], session_code: str) -> IngestOutcome:
    """Snapshot the text of a team or private page for a session."""
    try:
        page_uuid = UUID(str(page_id))
    except ValueError:
        return IngestOutcome(False, error="Invalid page ID format")

    page_model = PageModel.TEAM if is_team else PageModel.PRIVATE
    existing = _find_existing_page(db, page_uuid, page_model, session_code)
    if existing:
        logger.info(f"[INGEST] Page {page_id} already ingested for session {session_code}")
        return IngestOutcome(False, ingested=existing, error=PAGE_ALREADY_INGESTED, already_exists=True)

    model = TeamPage if is_team else PrivatePage
    page = db.query(model).filter(model.id == page_uuid, model.is_active.is_(True)).first()
    if not page:
        return IngestOutcome(False, error="Page not found")

    ingested = IngestedContent(
        source_type=SourceType.PAGE,
        page_id=page.id,
        page_model=page_model,
        page_title=page.title or "Untitled",
        title=page.title or "Untitled",
        content=html_to_text(page.content_html),
        status=IngestionStatus.COMPLETED,
        scraped_at=utc_now(),
        scraped_by=user_code,
        session_code=session_code,
    )
    db.add(ingested)
    db.commit()
    db.refresh(ingested)
    logger.info(f"[INGEST] Ingested {page_model} {page_id}")
    return IngestOutcome(True, ingested=ingested)


async def batch_ingest(
    db: Session,
    sources: List[PageSource | WebsiteSource],
    user_code: Optional[str],
    session_code: str,
) -> Dict[str, Dict[str, List[Dict[str, Any]]]]:
    """
    Ingest sources one by one, collecting per-source results.

    One source failing does not stop the others.
    """
    results = {
        "pages": {"success": [], "failed": []},
        "websites": {"success": [], "failed": []},
    }

    for source in sources:
        if isinstance(source, PageSource):
            bucket = results["pages"]
            entry = {"page_id": source.page_id, "is_team": source.is_team}
        else:
            bucket = results["websites"]
            entry = {"url": source.url}

        try:
            if isinstance(source, PageSource):
                outcome = ingest_page(db, source.page_id, source.is_team, user_code, session_code)
            else:
                outcome = await ingest_website(db, source.url, user_code, session_code)
        except Exception as e:
            db.rollback()
            logger.error(f"[INGEST] Error ingesting {entry}: {e}", exc_info=True)
            bucket["failed"].append({**entry, "error": str(e)})
            continue

        if outcome.success:
            bucket["success"].append({
                **entry,
                "id": serialize_uuid(outcome.ingested.id),
                "already_exists": False,
            })
        else:
            failed = {**entry, "error": outcome.error}
            if outcome.already_exists:
                failed["already_exists"] = True
            bucket["failed"].append(failed)

    return results


def source_key(source: PageSource | WebsiteSource) -> str:
    """Key used by the check endpoint: team_<id>, personal_<id> or the URL."""
    if isinstance(source, PageSource):
        return f"{'team' if source.is_team else 'personal'}_{source.page_id}"
    return source.url


def check_ingested(
    db: Session,
    sources: List[PageSource | WebsiteSource],
    session_code: str,
) -> Tuple[Dict[str, bool], Dict[str, Optional[Dict[str, Any]]]]:
    """
    Report which sources already have an ingestion record for the session.

    Returns:
        (ingested, status) maps keyed by ``source_key``
    """
    ingested_map: Dict[str, bool] = {}
    status_map: Dict[str, Optional[Dict[str, Any]]] = {}

    for source in sources:
        key = source_key(source)
        if isinstance(source, PageSource):
            try:
                page_uuid = UUID(str(source.page_id))
            except ValueError:
                existing = None
            else:
                page_model = PageModel.TEAM if source.is_team else PageModel.PRIVATE
                existing = _find_existing_page(db, page_uuid, page_model, session_code)
        else:
            existing = _find_existing_website(db, source.url, session_code)

        ingested_map[key] = existing is not None
        status_map[key] = (
            {"status": existing.status, "error_message": existing.error_message}
            if existing else None
        )

    return ingested_map, status_map
