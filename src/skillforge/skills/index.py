"""
Search index for Skillforge.

Each skill gets its own SQLite FTS5 database inside its runtime entry
(<runtime>/<name>/.skillforge-meta/search.db). Rebuilding one skill's index
never touches another's, and a rebuild writes a complete new database
beside the live one before swapping it in with os.replace, so readers
never see a half-built index.

The index_meta table records the fingerprint, source path, tokenizer, and
schema version the index was built from; any mismatch marks it stale.
"""

import logging
import os
import re
import sqlite3
import uuid
from collections.abc import Callable
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from skillforge.config.schema import SearchConfig
from skillforge.errors import (
    EmptyQueryError,
    IndexCorruptError,
    IndexUnusableError,
    PathEscapeError,
    SkillIOError,
)
from skillforge.skills.fingerprint import iter_tracked_files
from skillforge.skills.models import META_DIR, SearchHit, SkillSource
from skillforge.skills.parser import extract_headings, frontmatter_length, read_text

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
INDEX_FILENAME = "search.db"
SNIPPET_TOKENS = 16

TOKENIZERS = {
    "ascii": "porter unicode61",
    "cjk": "unicode61",
}

# CJK punctuation, Hiragana, Katakana, Han (extension A and unified), Hangul,
# and compatibility ideographs.
CJK_RANGES = [
    (0x3000, 0x303F),
    (0x3040, 0x309F),
    (0x30A0, 0x30FF),
    (0x3400, 0x4DBF),
    (0x4E00, 0x9FFF),
    (0xAC00, 0xD7AF),
    (0xF900, 0xFAFF),
]
CJK_RE = re.compile("([" + "".join(f"{chr(lo)}-{chr(hi)}" for lo, hi in CJK_RANGES) + "])")
TERM_RE = re.compile(r"\w+", re.UNICODE)


class IndexState(str, Enum):
    """State of a skill's search index relative to its source."""

    MISSING = "missing"
    CORRUPT = "corrupt"
    STALE = "stale"
    UP_TO_DATE = "up-to-date"


@dataclass
class TextUnit:
    """One indexable piece of a file."""

    file: str
    section: str
    level: int
    line: int
    content: str


FormatExtractor = Callable[[str, str], list[TextUnit]]

_FORMATS: dict[str, FormatExtractor] = {}


def register_format(extension: str) -> Callable[[FormatExtractor], FormatExtractor]:
    """Register a text unit extractor for a file extension.

    Example:
        @register_format(".rst")
        def extract_rst(relpath: str, content: str) -> list[TextUnit]:
            ...
    """

    def decorator(func: FormatExtractor) -> FormatExtractor:
        _FORMATS[extension.lower()] = func
        return func

    return decorator


def get_format(extension: str) -> FormatExtractor | None:
    """Get the extractor registered for an extension."""
    return _FORMATS.get(extension.lower())


@register_format(".md")
def extract_markdown_units(relpath: str, content: str) -> list[TextUnit]:
    """Split Markdown into one unit per heading.

    Each unit runs from its heading to the line before the next heading.
    Text before the first heading forms a unit with an empty section name,
    and a file without headings is a single unit.
    """
    lines = content.split("\n")
    body_start = frontmatter_length(lines)
    headings = extract_headings(content)

    if not headings:
        body = "\n".join(lines[body_start:]).strip()
        if not body:
            return []
        return [TextUnit(file=relpath, section="", level=0, line=body_start + 1, content=body)]

    units: list[TextUnit] = []
    preamble = "\n".join(lines[body_start : headings[0][2] - 1]).strip()
    if preamble:
        units.append(
            TextUnit(file=relpath, section="", level=0, line=body_start + 1, content=preamble)
        )

    for position, (level, text, line) in enumerate(headings):
        end = headings[position + 1][2] - 1 if position + 1 < len(headings) else len(lines)
        section_text = "\n".join(lines[line - 1 : end]).strip()
        units.append(
            TextUnit(file=relpath, section=text, level=level, line=line, content=section_text)
        )

    return units


@register_format(".txt")
def extract_text_units(relpath: str, content: str) -> list[TextUnit]:
    """Index a plain text file as one unit."""
    if not content.strip():
        return []
    return [TextUnit(file=relpath, section="", level=0, line=1, content=content)]


def segment_cjk(text: str) -> str:
    """Surround every CJK character with spaces so each is its own token."""
    return CJK_RE.sub(r" \1 ", text)


def index_path(runtime_dir: Path) -> Path:
    """Location of a skill's search database."""
    return runtime_dir / META_DIR / INDEX_FILENAME


def collect_units(source: SkillSource, search_config: SearchConfig) -> list[TextUnit]:
    """Extract text units from every indexable file of a skill.

    Raises:
        PathEscapeError: If an indexable file resolves outside the skill root.
    """
    formats = {ext.lower() for ext in search_config.formats}
    canonical_root = source.path.resolve()
    units: list[TextUnit] = []

    for relpath, path in iter_tracked_files(source.path):
        extension = Path(relpath).suffix.lower()
        if extension not in formats or not path.is_file():
            continue
        resolved = path.resolve()
        if not resolved.is_relative_to(canonical_root):
            raise PathEscapeError(path, resolved)
        extractor = get_format(extension)
        if extractor is None:
            logger.debug(f"No extractor registered for {extension}, skipping {relpath}")
            continue
        units.extend(extractor(relpath, read_text(path)))

    return units


def _connect_readonly(db_path: Path) -> sqlite3.Connection:
    return sqlite3.connect(f"{db_path.as_uri()}?mode=ro", uri=True)


def read_index_meta(db_path: Path) -> dict[str, str]:
    """Read the index_meta table.

    Raises:
        IndexCorruptError: If the file is not a readable index database.
    """
    try:
        with closing(_connect_readonly(db_path)) as conn:
            rows = conn.execute("SELECT key, value FROM index_meta").fetchall()
    except sqlite3.DatabaseError as e:
        raise IndexCorruptError(f"unreadable search index: {e}", db_path) from e
    return {key: value for key, value in rows}


def check_index_state(
    db_path: Path, source: SkillSource, source_hash: str, tokenizer: str
) -> IndexState:
    """Compare an index against the source it should describe."""
    if not db_path.exists():
        return IndexState.MISSING

    try:
        meta = read_index_meta(db_path)
    except IndexCorruptError:
        return IndexState.CORRUPT

    expected = {
        "source_hash": source_hash,
        "source_path": str(source.path),
        "schema_version": str(SCHEMA_VERSION),
        "tokenizer": tokenizer,
    }
    for key, value in expected.items():
        if meta.get(key) != value:
            logger.debug(f"Index {db_path} stale: {key} is {meta.get(key)!r}, want {value!r}")
            return IndexState.STALE
    return IndexState.UP_TO_DATE


def _create_table(conn: sqlite3.Connection, tokenizer: str) -> None:
    tokenize_args = TOKENIZERS[tokenizer]
    statement = (
        "CREATE VIRTUAL TABLE sections USING fts5("
        "file UNINDEXED, title UNINDEXED, level UNINDEXED, line UNINDEXED, "
        "body UNINDEXED, section, content, "
        "tokenize = '{}')"
    )
    try:
        conn.execute(statement.format(tokenize_args))
    except sqlite3.OperationalError as e:
        if "porter" not in tokenize_args:
            raise
        logger.warning(f"Porter stemmer unavailable ({e}), indexing without stemming")
        conn.execute(statement.format("unicode61"))


def write_index(
    db_path: Path,
    source: SkillSource,
    source_hash: str,
    search_config: SearchConfig,
) -> int:
    """Write a complete index database to a fresh path.

    Args:
        db_path: Path that must not exist yet.
        source: Skill to index.
        source_hash: Fingerprint recorded in index_meta.
        search_config: Tokenizer and formats.

    Returns:
        Number of units indexed.

    Raises:
        IndexUnusableError: If SQLite cannot create the index (e.g. no FTS5).
        SkillIOError: If a source file cannot be read.
        PathEscapeError: If a source file resolves outside the skill root.
    """
    units = collect_units(source, search_config)
    tokenizer = search_config.tokenizer
    prepare = segment_cjk if tokenizer == "cjk" else (lambda text: text)

    db_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with closing(sqlite3.connect(db_path)) as conn:
            _create_table(conn, tokenizer)
            conn.execute("CREATE TABLE index_meta (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
            conn.executemany(
                "INSERT INTO sections (file, title, level, line, body, section, content) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        unit.file,
                        unit.section,
                        unit.level,
                        unit.line,
                        unit.content,
                        prepare(unit.section),
                        prepare(unit.content),
                    )
                    for unit in units
                ],
            )
            conn.executemany(
                "INSERT INTO index_meta (key, value) VALUES (?, ?)",
                [
                    ("skill", source.name),
                    ("source_path", str(source.path)),
                    ("source_hash", source_hash),
                    ("schema_version", str(SCHEMA_VERSION)),
                    ("tokenizer", tokenizer),
                    ("indexed_at", datetime.now(timezone.utc).isoformat()),
                ],
            )
            conn.commit()
    except sqlite3.Error as e:
        raise IndexUnusableError(f"failed to build search index: {e}", db_path) from e

    return len(units)


def build_index(
    source: SkillSource,
    runtime_dir: Path,
    source_hash: str,
    search_config: SearchConfig | None = None,
    force: bool = False,
) -> bool:
    """Bring a skill's search index up to date.

    The new database is written to a temporary file in the same directory
    and swapped in with os.replace. Missing, stale, and corrupt indexes are
    all rebuilt in full.

    Args:
        source: Skill to index.
        runtime_dir: The skill's runtime entry (or a staging copy of it).
        source_hash: Current fingerprint of the source.
        search_config: Tokenizer and formats. Defaults to SearchConfig().
        force: Rebuild even when up to date.

    Returns:
        True if the index was rebuilt, False if it was already up to date.
    """
    search_config = search_config or SearchConfig()
    db_path = index_path(runtime_dir)

    state = check_index_state(db_path, source, source_hash, search_config.tokenizer)
    if state == IndexState.UP_TO_DATE and not force:
        logger.debug(f"Index for '{source.name}' is up to date")
        return False
    if state == IndexState.CORRUPT:
        logger.warning(f"Search index for '{source.name}' is corrupt, rebuilding")

    tmp_path = db_path.with_name(f".{INDEX_FILENAME}.{uuid.uuid4().hex[:8]}.tmp")
    try:
        count = write_index(tmp_path, source, source_hash, search_config)
        os.replace(tmp_path, db_path)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        raise SkillIOError("failed to publish search index", db_path, e) from e
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.info(f"Indexed {count} section(s) for '{source.name}'")
    return True


def _queryable_meta(db_path: Path) -> dict[str, str]:
    if not db_path.exists():
        raise IndexUnusableError("search index not found; run build first", db_path)
    try:
        return read_index_meta(db_path)
    except IndexCorruptError as e:
        raise IndexUnusableError(
            f"search index is corrupt; rebuild the skill ({e.message})", db_path
        ) from e


def build_match_query(query: str, tokenizer: str) -> str:
    """Turn free text into an FTS5 query matching all terms.

    Raises:
        EmptyQueryError: If the query has no terms.
    """
    text = segment_cjk(query) if tokenizer == "cjk" else query
    terms = TERM_RE.findall(text)
    if not terms:
        raise EmptyQueryError()
    return " ".join('"{}"'.format(term.replace('"', '""')) for term in terms)


def search(runtime_dir: Path, query: str, limit: int = 10) -> list[SearchHit]:
    """Query one skill's index.

    Results are ordered by BM25 rank, then by insertion order, so identical
    index state and query always give identical results.

    Args:
        runtime_dir: The skill's runtime entry.
        query: Free-text query; all terms must match.
        limit: Maximum number of hits. Zero or less returns no hits.

    Returns:
        Ranked hits, best first.

    Raises:
        EmptyQueryError: If the query has no terms.
        IndexUnusableError: If the index is missing or unreadable.
    """
    if not query.strip():
        raise EmptyQueryError()

    db_path = index_path(runtime_dir)
    meta = _queryable_meta(db_path)
    match = build_match_query(query, meta.get("tokenizer", "ascii"))
    skill = meta.get("skill", runtime_dir.name)
    # SQLite reads a negative LIMIT as unlimited.
    if limit <= 0:
        return []

    try:
        with closing(_connect_readonly(db_path)) as conn:
            rows = conn.execute(
                "SELECT file, title, line, "
                f"snippet(sections, 6, '[', ']', '...', {SNIPPET_TOKENS}), bm25(sections) "
                "FROM sections WHERE sections MATCH ? "
                "ORDER BY bm25(sections), rowid LIMIT ?",
                (match, limit),
            ).fetchall()
    except sqlite3.DatabaseError as e:
        raise IndexUnusableError(f"search failed: {e}", db_path) from e

    return [
        SearchHit(
            skill=skill,
            file=file,
            section=section,
            line=int(line),
            excerpt=" ".join(excerpt.split()),
            score=-float(rank),
        )
        for file, section, line, excerpt, rank in rows
    ]


def search_many(runtime_dirs: list[Path], query: str, limit: int = 10) -> list[SearchHit]:
    """Query several skills and merge their hits by score.

    Skills whose index is unusable are skipped with a warning.
    """
    if not query.strip():
        raise EmptyQueryError()
    if limit <= 0:
        return []

    hits: list[SearchHit] = []
    for runtime_dir in runtime_dirs:
        try:
            hits.extend(search(runtime_dir, query, limit))
        except IndexUnusableError as e:
            logger.warning(str(e))

    hits.sort(key=lambda hit: (-hit.score, hit.skill, hit.file, hit.line))
    return hits[:limit]


def read_sections(runtime_dir: Path) -> list[TextUnit]:
    """Read every stored unit in document order.

    Raises:
        IndexUnusableError: If the index is missing or unreadable.
    """
    db_path = index_path(runtime_dir)
    _queryable_meta(db_path)
    try:
        with closing(_connect_readonly(db_path)) as conn:
            rows = conn.execute(
                "SELECT file, title, level, line, body FROM sections ORDER BY rowid"
            ).fetchall()
    except sqlite3.DatabaseError as e:
        raise IndexUnusableError(f"failed to read index: {e}", db_path) from e

    return [
        TextUnit(file=file, section=section, level=int(level), line=int(line), content=content)
        for file, section, level, line, content in rows
    ]
