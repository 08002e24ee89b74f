"""
Projection of raw catalogue metadata into DocumentRecord rows.

Each logical field is read from the first non-empty key in a fixed alias list.
Fields that are missing or malformed degrade to empty values; derived fields
(concepts, methodologies, themes) are computed once here.
"""
from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from concept_analytics.concepts import ConceptDictionary, concept_terms
from concept_analytics.config import RECORD_CONCEPT_LIMIT
from concept_analytics.domain_dictionary import DomainDictionary
from concept_analytics.lexicon import Lexicon
from concept_analytics.methodologies import detect_methodologies
from concept_analytics.ngrams import top_terms
from concept_analytics.text import extract_year, first_present, flatten_text, parse_page_count, to_list

logger = logging.getLogger(__name__)

ID_KEYS = ("_id", "id", "identifier", "Identifier")
TITLE_KEYS = ("title", "Title", "name", "Name")
CREATOR_KEYS = ("creator", "Creator", "author", "Author")
SUPERVISOR_KEYS = ("supervisor", "Supervisor")
DATE_KEYS = (
    "date_available", "DateAvailable", "dateAvailable",
    "dateIssued", "DateIssued",
    "graduationDate", "GraduationDate",
    "ubc_date_sort",
    "date", "Date",
    "year", "Year",
    "issued", "Issued",
)
DESCRIPTION_KEYS = ("description", "Description", "abstract", "Abstract")
FULL_TEXT_KEYS = ("full_text", "FullText", "transcript", "text", "ocr", "body")
SUBJECT_KEYS = ("subject", "Subject", "subjects", "keywords", "keyword")
PROGRAM_KEYS = ("program_theses", "program", "Program")
DEGREE_KEYS = ("degree_theses", "degree", "Degree")
EXTENT_KEYS = ("extent", "Extent")
URI_KEYS = ("uri", "URI", "isShownAt", "identifier", "Identifier")

UNSPECIFIED_SUBJECT = "(Unspecified)"
WORDS_PER_PAGE = 300
THEME_LIMIT = 12

_ITEM_ID_RE = re.compile(r"^\d+\.\d+$")
_ITEM_URL_RE = re.compile(r"/items/(\d+\.\d+)(?:[/?#]|$)", re.IGNORECASE)
_PDF_URL_RE = re.compile(r"/pdf/\d+/(\d+\.\d+)(?:[/?#]|$)", re.IGNORECASE)


@dataclass(frozen=True)
class DocumentRecord:
    id: str
    title: str
    abstract: str
    subjects: tuple[str, ...]
    supervisors: tuple[str, ...]
    methodologies: tuple[str, ...]
    concept_terms: tuple[str, ...]
    themes: tuple[str, ...]
    year: int | None
    word_count: int
    pages: int
    char_count: int
    authors: tuple[str, ...] = ()
    program: str = ""
    degree: str = ""
    date: str = ""
    word_count_source: str = "metadata_text"
    pages_source: str = "estimated_from_metadata_words"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "authors": list(self.authors),
            "supervisors": list(self.supervisors),
            "date": self.date,
            "year": self.year,
            "program": self.program,
            "degree": self.degree,
            "abstract": self.abstract,
            "subjects": list(self.subjects),
            "methodologies": list(self.methodologies),
            "concept_terms": list(self.concept_terms),
            "themes": list(self.themes),
            "word_count": self.word_count,
            "word_count_source": self.word_count_source,
            "pages": self.pages,
            "pages_source": self.pages_source,
            "char_count": self.char_count,
        }


def dedupe_names(names: Iterable[str]) -> list[str]:
    """Default supervisor normalizer: trimmed names, first spelling wins case-insensitively."""
    seen: set[str] = set()
    out: list[str] = []
    for name in names:
        cleaned = " ".join(str(name).split())
        key = cleaned.casefold()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        out.append(cleaned)
    return out


def extract_item_id(value: Any) -> str | None:
    text = flatten_text(value)
    if not text:
        return None
    if _ITEM_ID_RE.match(text):
        return text
    for pattern in (_ITEM_URL_RE, _PDF_URL_RE):
        m = pattern.search(text)
        if m:
            return m.group(1)
    return None


def record_id(doc: Mapping[str, Any]) -> str:
    """Repository item id from the id or uri fields, else "<title>:<first creator>"."""
    item_id = extract_item_id(first_present(doc, ID_KEYS)) or extract_item_id(first_present(doc, URI_KEYS))
    if item_id:
        return item_id
    creators = to_list(first_present(doc, CREATOR_KEYS))
    return f"{flatten_text(first_present(doc, TITLE_KEYS))}:{creators[0] if creators else ''}"


def _to_int(value: Any) -> int | None:
    try:
        n = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None
    return n if n > 0 else None


def _estimate_pages(words: int) -> int:
    # half-up rounding, not banker's rounding
    return max(1, int(math.floor(max(words, 1) / WORDS_PER_PAGE + 0.5)))


def normalize_record(
    doc: Mapping[str, Any],
    concept_dictionary: ConceptDictionary,
    domain: DomainDictionary | None = None,
    lexicon: Lexicon | None = None,
    *,
    file_metrics: Any = None,
    committee_names: Any = None,
    supervisor_normalizer: Callable[[Iterable[str]], list[str]] = dedupe_names,
    concept_limit: int = RECORD_CONCEPT_LIMIT,
) -> DocumentRecord:
    if not isinstance(doc, Mapping):
        raise TypeError(f"document metadata must be a mapping, got {type(doc).__name__}")

    title = flatten_text(first_present(doc, TITLE_KEYS))
    creators = to_list(first_present(doc, CREATOR_KEYS))
    date_raw = first_present(doc, DATE_KEYS)
    description = flatten_text(first_present(doc, DESCRIPTION_KEYS))
    full_text = flatten_text(first_present(doc, FULL_TEXT_KEYS))
    raw_subjects = to_list(first_present(doc, SUBJECT_KEYS))
    program = to_list(first_present(doc, PROGRAM_KEYS))
    degree = to_list(first_present(doc, DEGREE_KEYS))
    extent_values = to_list(first_present(doc, EXTENT_KEYS))

    supervisors = supervisor_normalizer(to_list(first_present(doc, SUPERVISOR_KEYS)))
    # A bare name or a list of names; other shapes are ignored.
    committee = to_list(committee_names) if isinstance(committee_names, (str, list, tuple)) else []
    if committee:
        supervisors = supervisor_normalizer(committee)

    stable_id = record_id(doc)

    cleaned = full_text or description
    word_count = len(cleaned.split(" ")) if cleaned else 0
    word_source = "metadata_text"
    extent_pages = parse_page_count(extent_values)
    pages = extent_pages or _estimate_pages(word_count)
    pages_source = "metadata_extent" if extent_pages else "estimated_from_metadata_words"

    if isinstance(file_metrics, Mapping):
        fm_words = _to_int(file_metrics.get("word_count"))
        if fm_words:
            word_count = fm_words
            word_source = str(file_metrics.get("word_source") or "pdf")
        fm_pages = _to_int(file_metrics.get("page_count"))
        if fm_pages:
            pages = fm_pages
            pages_source = str(file_metrics.get("page_source") or "pdf")

    theme_text = " ".join([title, description, " ".join(raw_subjects), " ".join(program), " ".join(degree)])
    method_text = " ".join([title, description, " ".join(raw_subjects)])

    return DocumentRecord(
        id=stable_id,
        title=title,
        abstract=description,
        subjects=tuple(raw_subjects or [UNSPECIFIED_SUBJECT]),
        supervisors=tuple(supervisors),
        methodologies=tuple(detect_methodologies(method_text)),
        concept_terms=tuple(concept_terms(title, description, raw_subjects, concept_limit, concept_dictionary, domain, lexicon)),
        themes=tuple(top_terms(theme_text, THEME_LIMIT, lexicon)),
        year=extract_year(date_raw),
        word_count=word_count,
        pages=pages,
        char_count=len(cleaned),
        authors=tuple(creators),
        program="; ".join(program),
        degree="; ".join(degree),
        date=flatten_text(date_raw),
        word_count_source=word_source,
        pages_source=pages_source,
    )


def _unwrap(item: Any) -> tuple[str | None, Any]:
    # Store rows arrive as {"docId", "metadata"}; bare metadata mappings are accepted too.
    if isinstance(item, Mapping) and "metadata" in item and ("docId" in item or "doc_id" in item):
        doc_id = item.get("docId", item.get("doc_id"))
        return (str(doc_id) if doc_id is not None else None), item.get("metadata")
    return None, item


def build_records(
    documents: Iterable[Any],
    concept_dictionary: ConceptDictionary,
    domain: DomainDictionary | None = None,
    lexicon: Lexicon | None = None,
    *,
    file_metrics: Mapping[str, Mapping[str, Any]] | None = None,
    committee: Mapping[str, Iterable[str]] | None = None,
    supervisor_normalizer: Callable[[Iterable[str]], list[str]] = dedupe_names,
    concept_limit: int = RECORD_CONCEPT_LIMIT,
) -> list[DocumentRecord]:
    """
    Project a batch of documents. Overlays are keyed by store docId when the input
    carries one, otherwise by the derived record id. A document that cannot be
    projected is logged and skipped.
    """
    file_metrics = file_metrics or {}
    committee = committee or {}
    records: list[DocumentRecord] = []
    for index, item in enumerate(documents):
        doc_id, metadata = _unwrap(item)
        try:
            key = doc_id or (record_id(metadata) if isinstance(metadata, Mapping) else None)
            record = normalize_record(
                metadata,
                concept_dictionary,
                domain,
                lexicon,
                file_metrics=file_metrics.get(key) if key else None,
                committee_names=committee.get(key) if key else None,
                supervisor_normalizer=supervisor_normalizer,
                concept_limit=concept_limit,
            )
        except (TypeError, ValueError) as e:
            logger.warning("Skipping document #%d (%s): %s", index, doc_id or "no docId", e)
            continue
        records.append(record)
    return records
