"""Newsletter listing, detail and write operations on top of the key-value store."""

import asyncio
import json
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..clients.base import KeyValueStore, StoreError, WrongTypeError
from ..models.newsletter import (
    ArchiveResult,
    DashboardStats,
    NewsletterDetail,
    NewsletterMeta,
    NewsletterPage,
    NewsletterSummary,
    Pagination,
    ReadStatusResult,
)
from ..models.settings import Settings
from .content import (
    clean_newsletter_content,
    generate_preview_text,
    html_to_text,
    process_html,
    word_count,
)
from .dates import is_today, is_valid_date, sort_key, to_iso, utc_now_iso
from .keys import NEWSLETTER_IDS_KEY, meta_key, newsletter_key, normalize_id
from .normalizer import (
    as_bool,
    as_tags,
    decode_json_object,
    first_present,
    first_valid_date,
    parse_metadata,
)

logger = logging.getLogger(__name__)

PROCESSING_VERSION = "3.0.0-cleaner"


class RecordParseError(StoreError):
    """Raised when a stored record cannot be decoded."""


class NewsletterNotFound(LookupError):
    """Raised when a write targets a newsletter that does not exist."""


class NotReprocessable(ValueError):
    """Raised when a newsletter has no original content to reprocess."""


@dataclass
class StoredRecord:
    """A newsletter record together with how it is stored."""

    key: str
    data: Dict[str, Any]
    representation: str  # "string" or "hash"


def _hash_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value)


class NewsletterRepository:
    """Reads and writes newsletters stored under the ``newsletter:`` schema."""

    def __init__(self, store: KeyValueStore, settings: Optional[Settings] = None):
        """Initialize the repository.

        Args:
            store: Key-value store holding the newsletters
            settings: Settings instance for paging and preview values
        """
        self.store = store
        self.default_page_size = settings.default_page_size if settings else 10
        self.max_page_size = settings.max_page_size if settings else 100
        self.preview_length = settings.preview_length if settings else 200

    # ------------------------------------------------------------------
    # Record access
    # ------------------------------------------------------------------

    async def load(self, key: str) -> Optional[StoredRecord]:
        """Load the record at ``key`` in whichever representation it uses.

        Raises:
            RecordParseError: if a string value is not a JSON object
        """
        try:
            value = await self.store.get(key)
        except WrongTypeError:
            fields = await self.store.hgetall(key)
            if not fields:
                return None
            data: Dict[str, Any] = dict(fields)
            metadata = decode_json_object(data.get("metadata"))
            if metadata is not None:
                data["metadata"] = metadata
            return StoredRecord(key, data, "hash")

        if value is None:
            return None
        decoded = decode_json_object(value)
        if decoded is None:
            raise RecordParseError(f"Record at {key} is not a JSON object")
        return StoredRecord(key, decoded, "string")

    async def save(self, record: StoredRecord) -> None:
        """Write a record back in the representation it was loaded from."""
        if record.representation == "hash":
            await self.store.hset(
                record.key, {name: _hash_value(value) for name, value in record.data.items()}
            )
        else:
            await self.store.set(record.key, json.dumps(record.data))

    async def newsletter_ids(self) -> List[str]:
        ids = await self.store.lrange(NEWSLETTER_IDS_KEY, 0, -1)
        # LPUSH on re-ingest can leave duplicates
        return list(dict.fromkeys(ids))

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def _load_summary(self, newsletter_id: str) -> Optional[NewsletterSummary]:
        content_key = newsletter_key(newsletter_id)
        try:
            try:
                raw = await self.store.get(content_key)
                record = decode_json_object(raw) if raw is not None else None
                if raw is not None and record is None:
                    logger.info(f"Content for {newsletter_id} is not JSON, treating as raw content")
                    record = {
                        "content": raw,
                        "subject": f"Newsletter {newsletter_id}",
                        "date": utc_now_iso(),
                    }
            except WrongTypeError:
                stored = await self.load(content_key)
                record = stored.data if stored else None

            if record is None:
                logger.warning(f"No content found for newsletter {newsletter_id}")
                return None

            meta_fields = await self.store.hgetall(meta_key(newsletter_id))
            return self._summary(newsletter_id, record, meta_fields)
        except (StoreError, ValidationError) as e:
            logger.error(f"Error processing newsletter {newsletter_id}: {e}")
            return None

    def _summary(
        self, newsletter_id: str, record: Dict[str, Any], meta_fields: Dict[str, str]
    ) -> NewsletterSummary:
        defaults: Dict[str, Any] = {
            "isRead": False,
            "archived": False,
            "processedAt": utc_now_iso(),
            "processingVersion": "1.0",
        }
        meta = dict(defaults)
        meta.update(parse_metadata(record))
        meta.update(parse_metadata(meta_fields))
        # older writers stored numbers or nulls here
        for name in ("processedAt", "processingVersion"):
            value = meta.get(name)
            meta[name] = defaults[name] if value in (None, "") else str(value)

        if "isRead" in meta_fields:
            is_read = as_bool(meta_fields["isRead"])
        else:
            is_read = as_bool(record.get("isRead")) or as_bool(meta.get("isRead"))
        if "isArchived" in meta_fields:
            is_archived = as_bool(meta_fields["isArchived"])
        else:
            is_archived = (
                as_bool(record.get("isArchived"))
                or as_bool(meta.get("archived"))
                or as_bool(meta.get("isArchived"))
            )
        meta["isRead"] = is_read
        meta["archived"] = is_archived

        content = str(first_present(record, "content", "cleanContent", "rawContent", "body") or "")
        preview = record.get("previewText") or generate_preview_text(content, self.preview_length)

        return NewsletterSummary(
            id=newsletter_id,
            subject=str(first_present(record, "subject", "title") or "No Subject"),
            sender=str(first_present(record, "sender", "from") or "Unknown Sender"),
            date=to_iso(first_valid_date(record, "date", "publishDate", "receivedAt")),
            isNew=as_bool(record.get("isNew")) and not is_read,
            url=str(record.get("url") or f"/newsletters/{newsletter_id}"),
            content=content,
            cleanContent=str(record.get("cleanContent") or ""),
            rawContent=str(record.get("rawContent") or ""),
            previewText=str(preview),
            isRead=is_read,
            isArchived=is_archived,
            metadata=NewsletterMeta.model_validate(meta),
        )

    async def list_newsletters(
        self, page: int = 1, page_size: Optional[int] = None, filter_text: str = ""
    ) -> NewsletterPage:
        """Return one page of newsletters, newest first.

        Args:
            page: 1-based page number
            page_size: Items per page, clamped to the configured maximum
            filter_text: Case-insensitive substring matched against subject,
                sender and content

        Returns:
            NewsletterPage with pagination info and dashboard stats
        """
        page = max(page or 1, 1)
        page_size = min(max(page_size or self.default_page_size, 1), self.max_page_size)
        filter_text = (filter_text or "").strip().lower()

        ids = await self.newsletter_ids()
        logger.debug(f"Fetched {len(ids)} newsletter ids")

        results = await asyncio.gather(*(self._load_summary(i) for i in ids))
        newsletters = [n for n in results if n is not None]
        newsletters.sort(key=lambda n: sort_key(n.date), reverse=True)

        stats = DashboardStats(
            todayCount=sum(1 for n in newsletters if is_today(n.date)),
            uniqueSenders=len({n.sender for n in newsletters if n.sender != "Unknown Sender"}),
            total=len(newsletters),
            withCleanContent=sum(1 for n in newsletters if n.clean_content),
            withRawContent=sum(1 for n in newsletters if n.raw_content),
        )

        if filter_text:
            newsletters = [
                n
                for n in newsletters
                if filter_text in n.subject.lower()
                or filter_text in n.sender.lower()
                or filter_text in n.content.lower()
            ]

        total_items = len(newsletters)
        total_pages = math.ceil(total_items / page_size)
        start = (page - 1) * page_size
        stats.total_newsletters = total_items

        return NewsletterPage(
            newsletters=newsletters[start:start + page_size],
            pagination=Pagination(
                page=page,
                pageSize=page_size,
                totalItems=total_items,
                totalPages=total_pages,
                hasNextPage=page < total_pages,
            ),
            stats=stats,
        )

    # ------------------------------------------------------------------
    # Detail
    # ------------------------------------------------------------------

    async def get_newsletter(self, raw_id: str, include_raw: bool = False) -> Optional[NewsletterDetail]:
        """Return a newsletter with every content representation, or None."""
        newsletter_id = normalize_id(raw_id)
        if not newsletter_id:
            raise ValueError("Newsletter ID is required")

        record = await self.load(newsletter_key(newsletter_id))
        if record is None:
            logger.warning(f"Newsletter not found: {newsletter_key(newsletter_id)}")
            return None

        try:
            meta_fields = await self.store.hgetall(meta_key(newsletter_id))
        except StoreError as e:
            logger.warning(f"Error fetching metadata for {newsletter_id}, continuing without it: {e}")
            meta_fields = {}

        data = record.data
        content = first_present(data, "content", "cleanContent", "rawContent", "textContent", "body")
        clean = first_present(data, "cleanContent", "content", "rawContent", "body")
        raw = first_present(data, "rawContent", "content", "cleanContent", "body")

        tags = as_tags(meta_fields.get("tags")) or as_tags(data.get("tags"))

        detail = NewsletterDetail(
            id=str(data.get("id") or newsletter_id),
            title=str(first_present(data, "subject", "title") or "Untitled Newsletter"),
            content=process_html(content),
            cleanContent=process_html(clean),
            rawContent=process_html(raw),
            textContent=str(data.get("textContent") or html_to_text(content)),
            publishDate=to_iso(first_valid_date(data, "publishDate", "date", "receivedAt")),
            sender=str(first_present(data, "sender", "from") or "Unknown Sender"),
            url=str(data.get("url") or f"/newsletters/{newsletter_id}"),
            isRead=meta_fields.get("isRead") == "1" or as_bool(data.get("isRead")),
            isArchived=meta_fields.get("isArchived") == "1" or as_bool(data.get("isArchived")),
            tags=tags,
            _raw={"newsletter": data, "metaData": meta_fields} if include_raw else None,
        )
        logger.info(f"Serving newsletter {newsletter_id}: {len(detail.content)} chars of content")
        return detail

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def ingest(
        self,
        subject: Optional[str],
        body: Optional[str],
        sender: Optional[str],
        date: Any = None,
    ) -> str:
        """Store an incoming email as a new newsletter and return its id."""
        original = body or ""
        result = clean_newsletter_content(original)
        clean_content = result.cleaned_content or original
        for item in result.removed_items:
            logger.debug(f"- {item.description}: {item.matches} matches")

        newsletter_id = str(int(time.time() * 1000))
        while await self.store.exists(newsletter_key(newsletter_id)):
            newsletter_id = str(int(newsletter_id) + 1)

        now = utc_now_iso()
        newsletter = {
            "id": newsletter_id,
            "subject": subject or "No Subject",
            "sender": sender or "Unknown Sender",
            "date": to_iso(date),
            "isNew": True,
            "rawContent": original,
            "cleanContent": clean_content,
            "content": clean_content,
            "metadata": {
                "processingVersion": PROCESSING_VERSION,
                "processedAt": now,
                "wordCount": word_count(clean_content),
            },
        }

        await self.store.lpush(NEWSLETTER_IDS_KEY, newsletter_id)
        await self.store.set(newsletter_key(newsletter_id), json.dumps(newsletter))
        logger.info(f"✅ Newsletter saved: {newsletter_id} ({newsletter['subject']!r})")
        return newsletter_id

    async def set_read_status(self, raw_id: str, is_read: bool = True) -> ReadStatusResult:
        """Record the read flag in the meta hash and mirror it on the record."""
        newsletter_id = normalize_id(raw_id)
        if not newsletter_id:
            raise ValueError("Invalid newsletter ID")

        now = utc_now_iso()
        mkey = meta_key(newsletter_id)
        flag = "1" if is_read else "0"

        if await self.store.exists(mkey):
            await self.store.hset(mkey, {"isRead": flag, "lastAccessedAt": now})
            logger.info(f"Updated read status in {mkey}")
        else:
            await self.store.hset(
                mkey,
                {
                    "id": newsletter_id,
                    "isRead": flag,
                    "lastAccessedAt": now,
                    "subject": "",
                    "sender": "",
                    "receivedAt": now,
                    "wordCount": "0",
                    "tags": "[]",
                    "metadata": json.dumps(
                        {
                            "processingVersion": "1.0",
                            "processedAt": now,
                            "isRead": is_read,
                            "archived": False,
                        }
                    ),
                },
            )
            logger.info(f"Created metadata entry {mkey}")

        try:
            record = await self.load(newsletter_key(newsletter_id))
            if record is not None:
                record.data["isRead"] = is_read
                await self.save(record)
        except StoreError as e:
            logger.error(f"Error updating main newsletter object {newsletter_id}: {e}")

        return ReadStatusResult(isRead=is_read, timestamp=now, metaKey=mkey)

    async def _load_for_update(self, raw_id: str) -> StoredRecord:
        newsletter_id = normalize_id(raw_id)
        if not newsletter_id:
            raise ValueError("Invalid newsletter ID")
        record = await self.load(newsletter_key(newsletter_id))
        if record is None:
            raise NewsletterNotFound(newsletter_key(newsletter_id))
        return record

    def _merged_metadata(self, record: StoredRecord, **updates: Any) -> Dict[str, Any]:
        metadata = parse_metadata(record.data)
        metadata.update(updates)
        return metadata

    async def set_archived(
        self, raw_id: str, is_archived: bool = True, content: Optional[str] = None
    ) -> ArchiveResult:
        """Flag a newsletter as archived, optionally replacing its content.

        Raises:
            NewsletterNotFound: if no record exists for the id
        """
        record = await self._load_for_update(raw_id)
        now = utc_now_iso()

        record.data.update(
            {
                "isArchived": is_archived,
                "updatedAt": now,
                "archivedAt": now if is_archived else None,
            }
        )

        preview_text = None
        if content:
            result = clean_newsletter_content(content)
            cleaned = result.cleaned_content
            preview_text = generate_preview_text(cleaned, self.preview_length)
            record.data.update(
                {
                    "content": cleaned,
                    "cleanContent": cleaned,
                    "previewText": preview_text,
                    "metadata": self._merged_metadata(
                        record,
                        processingVersion="v2",
                        processedAt=now,
                        wordCount=word_count(cleaned),
                        removedItemsCount=len(result.removed_items),
                    ),
                }
            )
            logger.info(f"Content cleaned, removed {len(result.removed_items)} item types")

        await self.save(record)
        await self.store.hset(
            meta_key(normalize_id(raw_id)), {"isArchived": "1" if is_archived else "0"}
        )
        logger.info(f"Updated archive status for {record.key}: {is_archived}")

        return ArchiveResult(
            id=record.key, isArchived=is_archived, previewText=preview_text, timestamp=now
        )

    async def update_content(
        self, raw_id: str, content: str, preview_text: Optional[str] = None
    ) -> Dict[str, Any]:
        """Replace the displayed content of a newsletter.

        Raises:
            NewsletterNotFound: if no record exists for the id
        """
        record = await self._load_for_update(raw_id)
        now = utc_now_iso()
        record.data.update(
            {
                "content": content,
                "cleanContent": content,
                "updatedAt": now,
                "metadata": self._merged_metadata(
                    record,
                    processingVersion="v2",
                    processedAt=now,
                    wordCount=word_count(content),
                ),
            }
        )
        if isinstance(preview_text, str):
            record.data["previewText"] = preview_text

        await self.save(record)
        logger.debug(f"Updated content for newsletter {record.key}")
        return {"contentUpdated": True, "previewText": preview_text or "", "timestamp": now}

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def _iter_records(self) -> List[StoredRecord]:
        records = []
        for newsletter_id in await self.newsletter_ids():
            try:
                record = await self.load(newsletter_key(newsletter_id))
            except RecordParseError as e:
                logger.warning(f"Skipping {newsletter_id}: {e}")
                continue
            if record is not None:
                records.append(record)
        return records

    async def fix_dates(self) -> Dict[str, int]:
        """Replace unparseable record dates with the current time."""
        ids = await self.newsletter_ids()
        fixed = 0
        for record in await self._iter_records():
            current = first_present(record.data, "date", "publishDate")
            if not is_valid_date(current):
                logger.info(f"Fixing invalid date for {record.key}: {current!r}")
                record.data["date"] = utc_now_iso()
                await self.save(record)
                fixed += 1

        logger.info(f"Date fix complete. Fixed {fixed} out of {len(ids)} newsletters.")
        return {"totalNewsletters": len(ids), "fixedCount": fixed}

    async def migrate_content(self) -> Dict[str, int]:
        """Backfill the content/cleanContent/rawContent/textContent fields."""
        records = await self._iter_records()
        updated = 0
        for record in records:
            data = record.data
            if all(data.get(name) for name in ("content", "cleanContent", "rawContent", "textContent")):
                continue

            legacy = not data.get("rawContent")
            content = data.get("content") or data.get("cleanContent") or data.get("rawContent") or data.get("body") or ""
            data["content"] = content
            data["cleanContent"] = data.get("cleanContent") or content
            data["rawContent"] = data.get("rawContent") or data.get("body") or content
            data["textContent"] = data.get("textContent") or html_to_text(content)

            updates: Dict[str, Any] = {"processedAt": utc_now_iso(), "wordCount": word_count(content)}
            if legacy:
                updates["processingVersion"] = "legacy-migrated"
            data["metadata"] = self._merged_metadata(record, **updates)

            await self.save(record)
            updated += 1
            logger.debug(f"Migrated content fields for {record.key}")

        logger.info(f"Migration complete: {updated} of {len(records)} newsletters updated")
        return {"total": len(records), "updated": updated}

    async def reprocess(self, raw_id: str) -> Dict[str, Any]:
        """Re-run the content cleaner over a newsletter's original email body.

        Raises:
            NewsletterNotFound: if no record exists for the id
            NotReprocessable: if the record kept no ``rawContent``
        """
        record = await self._load_for_update(raw_id)
        return await self._reprocess_record(record)

    async def _reprocess_record(self, record: StoredRecord) -> Dict[str, Any]:
        data = record.data
        if not data.get("rawContent"):
            raise NotReprocessable(
                "No raw content available for reprocessing. Newsletter was created "
                "before content preservation was implemented."
            )

        previous = parse_metadata(data).get("processingVersion", "unknown")
        result = clean_newsletter_content(data["rawContent"])
        data["content"] = result.cleaned_content
        data["cleanContent"] = result.cleaned_content
        data["metadata"] = self._merged_metadata(
            record,
            processingVersion=PROCESSING_VERSION,
            processedAt=utc_now_iso(),
            reprocessedAt=utc_now_iso(),
            reprocessedFrom=previous,
            wordCount=word_count(result.cleaned_content),
        )
        await self.save(record)
        logger.info(f"✅ Reprocessed {record.key} ({previous} -> {PROCESSING_VERSION})")

        return {
            "id": str(data.get("id") or normalize_id(record.key)),
            "subject": data.get("subject") or data.get("title"),
            "success": True,
            "originalVersion": previous,
            "newVersion": PROCESSING_VERSION,
            "removedItems": len(result.removed_items),
        }

    async def reprocess_all(self, max_count: int = 10) -> Dict[str, Any]:
        """Reprocess up to ``max_count`` newsletters that kept their raw content.

        Raises:
            NotReprocessable: if no newsletter has raw content
        """
        records = [r for r in await self._iter_records() if r.data.get("rawContent")][:max_count]
        if not records:
            raise NotReprocessable("No newsletters with raw content found")

        results = []
        errors = 0
        for record in records:
            try:
                results.append(await self._reprocess_record(record))
            except StoreError as e:
                logger.error(f"❌ Error processing {record.key}: {e}")
                errors += 1
                results.append(
                    {
                        "id": normalize_id(record.key),
                        "subject": record.data.get("subject"),
                        "success": False,
                        "error": str(e),
                    }
                )

        logger.info(f"Bulk reprocessing complete: {len(records) - errors} success, {errors} errors")
        return {
            "success": True,
            "summary": {
                "totalProcessed": len(records),
                "successCount": len(records) - errors,
                "errorCount": errors,
            },
            "results": results,
        }
