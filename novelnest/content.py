"""Novel aggregate management.

A novel's body is either one flat text or an ordered list of chapters,
modelled here as the ``FlatContent`` / ``ChapteredContent`` pair. Every write
goes through :func:`parse_content` and :func:`_apply_content`, which keep
exactly one shape populated and renumber chapters 1..N in list order.
Client-supplied chapter numbers are never trusted.
"""

import logging
from collections.abc import Mapping
from typing import List, NamedTuple, Union

from sqlalchemy import or_
from sqlalchemy.orm import contains_eager, selectinload

from . import db
from .errors import ForbiddenError, NotFoundError, ValidationError
from .models import Chapter, GENRES, Novel, NovelGenre, User
from .models.novel import SYNOPSIS_MAX_LENGTH, TITLE_MAX_LENGTH
from .models.user import utcnow
from .transactions import run_in_transaction

logger = logging.getLogger(__name__)

CHAPTER_TITLE_MAX_LENGTH = 200

_GENRE_LOOKUP = {g.lower(): g for g in GENRES}


class ChapterDraft(NamedTuple):
    title: str
    content: str


class FlatContent(NamedTuple):
    text: str


class ChapteredContent(NamedTuple):
    chapters: List[ChapterDraft]


Content = Union[FlatContent, ChapteredContent]


# --- validation ---

def _clean_text(value, field, max_length=None):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required", details={'field': field})
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={'field': field})
    value = value.strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} cannot be more than {max_length} characters",
                              details={'field': field})
    return value


def normalize_genres(genres, strict=True):
    """Map genre names onto the canonical enumeration, case-insensitively.

    With ``strict`` an empty list or an unknown genre is a validation error;
    otherwise unknown names are dropped (used for search filters).
    """
    if isinstance(genres, str):
        genres = [genres]
    if not isinstance(genres, (list, tuple, set)):
        raise ValidationError("genres must be a list", details={'field': 'genres'})
    result = []
    for name in genres:
        canonical = _GENRE_LOOKUP.get(name.strip().lower()) if isinstance(name, str) else None
        if canonical is None:
            if strict:
                raise ValidationError(f"Unknown genre: {name}", details={'field': 'genres'})
            continue
        if canonical not in result:
            result.append(canonical)
    if strict and not result:
        raise ValidationError("At least one genre is required", details={'field': 'genres'})
    return result


def _chapter_draft(raw, position):
    if isinstance(raw, ChapterDraft):
        raw = raw._asdict()
    if not isinstance(raw, Mapping):
        raise ValidationError(f"Chapter {position} must be an object", details={'chapter': position})
    title = raw.get('title')
    body = raw.get('content')
    if not isinstance(title, str) or not title.strip():
        raise ValidationError(f"Chapter {position} is missing a title", details={'chapter': position})
    if len(title.strip()) > CHAPTER_TITLE_MAX_LENGTH:
        raise ValidationError(f"Chapter {position} title cannot be more than "
                              f"{CHAPTER_TITLE_MAX_LENGTH} characters", details={'chapter': position})
    if not isinstance(body, str) or not body.strip():
        raise ValidationError(f"Chapter {position} is missing content", details={'chapter': position})
    return ChapterDraft(title=title.strip(), content=body)


def parse_content(has_chapters, content=None, chapters=None) -> Content:
    """Turn the loose request fields into exactly one content shape."""
    if not isinstance(has_chapters, bool):
        raise ValidationError("hasChapters must be a boolean", details={'field': 'hasChapters'})
    if has_chapters:
        if not chapters:
            raise ValidationError("At least one chapter is required", details={'field': 'chapters'})
        if not isinstance(chapters, (list, tuple)):
            raise ValidationError("chapters must be a list", details={'field': 'chapters'})
        return ChapteredContent([_chapter_draft(raw, i) for i, raw in enumerate(chapters, start=1)])
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Content is required for non-chaptered novels", details={'field': 'content'})
    return FlatContent(content)


def _drafts_of(novel):
    return [ChapterDraft(c.title, c.content) for c in novel.chapters]


def _replace_chapters(novel, drafts):
    # Old rows go first so the (novel_id, chapter_number) constraint never sees two rows per number
    if novel.chapters:
        novel.chapters.clear()
        db.session.flush()
    novel.chapters = [
        Chapter(title=d.title, content=d.content, chapter_number=number)
        for number, d in enumerate(drafts, start=1)
    ]


def _apply_content(novel, parsed: Content):
    if isinstance(parsed, FlatContent):
        novel.has_chapters = False
        novel.content = parsed.text
        _replace_chapters(novel, [])
    else:
        novel.has_chapters = True
        novel.content = None
        _replace_chapters(novel, parsed.chapters)


# --- lookups ---

def get_novel(novel_id) -> Novel:
    novel = db.session.get(Novel, novel_id)
    if novel is None:
        raise NotFoundError("Novel not found", details={'novel_id': novel_id})
    return novel


def get_chapter(novel_id, chapter_number) -> Chapter:
    novel = get_novel(novel_id)
    if not novel.has_chapters or not novel.chapters:
        raise NotFoundError("No chapters found for this novel", details={'novel_id': novel_id})
    if not isinstance(chapter_number, int) or not 1 <= chapter_number <= len(novel.chapters):
        raise NotFoundError("Chapter not found",
                            details={'novel_id': novel_id, 'chapter_number': chapter_number})
    return novel.chapters[chapter_number - 1]


def _load_owned(novel_id, caller) -> Novel:
    novel = get_novel(novel_id)
    if novel.author_id != caller.id:
        raise ForbiddenError("Not authorized to modify this novel",
                             details={'novel_id': novel_id})
    return novel


def _listing_loads():
    # listings only count chapters, so their bodies stay unloaded
    return selectinload(Novel.chapters).load_only(Chapter.chapter_number)


def search_novels(text=None, genres=None) -> List[Novel]:
    query = (Novel.query.join(Novel.author)
             .options(contains_eager(Novel.author), _listing_loads()))
    if text and text.strip():
        term = text.strip()
        query = query.filter(or_(
            Novel.title.icontains(term, autoescape=True),
            Novel.synopsis.icontains(term, autoescape=True),
            User.name.icontains(term, autoescape=True),
        ))
    if genres:
        wanted = normalize_genres(genres, strict=False)
        if not wanted:
            return []
        query = query.filter(Novel.genre_links.any(NovelGenre.genre.in_(wanted)))
    return query.order_by(Novel.created_at.desc(), Novel.id.desc()).all()


def list_author_novels(author) -> List[Novel]:
    return (Novel.query.filter_by(author_id=author.id)
            .options(selectinload(Novel.author), _listing_loads())
            .order_by(Novel.created_at.desc(), Novel.id.desc())
            .all())


# --- writes ---

def create_novel(author, title, synopsis, genres, has_chapters, content=None, chapters=None) -> Novel:
    title = _clean_text(title, 'title', TITLE_MAX_LENGTH)
    synopsis = _clean_text(synopsis, 'synopsis', SYNOPSIS_MAX_LENGTH)
    genres = normalize_genres(genres if genres is not None else [])
    parsed = parse_content(has_chapters, content, chapters)

    def operation():
        novel = Novel(title=title, synopsis=synopsis, author_id=author.id,
                      rating_total=0, rating_count=0, average_rating=0.0)
        novel.genres = genres
        _apply_content(novel, parsed)
        db.session.add(novel)
        return novel

    novel = run_in_transaction(operation, 'create novel', author_id=author.id)
    logger.info("Novel %s created by user %s (%s)", novel.id, author.id,
                'chaptered' if novel.has_chapters else 'flat')
    return novel


def update_novel(novel_id, caller, patch) -> Novel:
    """Merge ``patch`` over the stored novel and re-validate the result.

    Keys left out of ``patch`` keep their stored value. Switching
    ``has_chapters`` discards the old shape, so the new one must be supplied.
    """
    def operation():
        novel = _load_owned(novel_id, caller)
        title = _clean_text(patch.get('title', novel.title), 'title', TITLE_MAX_LENGTH)
        synopsis = _clean_text(patch.get('synopsis', novel.synopsis), 'synopsis', SYNOPSIS_MAX_LENGTH)
        genres = normalize_genres(patch['genres'] if 'genres' in patch else novel.genres)
        has_chapters = patch.get('has_chapters', novel.has_chapters)

        if has_chapters:
            if 'chapters' in patch:
                chapters = patch['chapters']
            else:
                chapters = _drafts_of(novel) if novel.has_chapters else None
            parsed = parse_content(has_chapters, chapters=chapters)
        else:
            if 'content' in patch:
                content = patch['content']
            else:
                content = None if novel.has_chapters else novel.content
            parsed = parse_content(has_chapters, content=content)

        novel.title = title
        novel.synopsis = synopsis
        novel.genres = genres
        _apply_content(novel, parsed)
        # Touch the row so the version check covers chapter-only edits too
        novel.updated_at = utcnow()
        return novel

    novel = run_in_transaction(operation, 'update novel', novel_id=novel_id)
    logger.info("Novel %s updated by user %s", novel.id, caller.id)
    return novel


def delete_novel(novel_id, caller):
    def operation():
        novel = _load_owned(novel_id, caller)
        db.session.delete(novel)

    run_in_transaction(operation, 'delete novel', novel_id=novel_id)
    logger.info("Novel %s deleted by user %s", novel_id, caller.id)


def add_chapter(novel_id, caller, title, content, position=None) -> Novel:
    """Insert a chapter at 1-based ``position`` (append when omitted)."""
    draft = _chapter_draft({'title': title, 'content': content},
                           position if position is not None else 'new')

    def operation():
        novel = _load_owned(novel_id, caller)
        if not novel.has_chapters:
            raise ValidationError("This novel does not support chapters", details={'novel_id': novel_id})
        drafts = _drafts_of(novel)
        index = len(drafts) + 1 if position is None else position
        if isinstance(index, bool) or not isinstance(index, int) or not 1 <= index <= len(drafts) + 1:
            raise ValidationError(f"position must be between 1 and {len(drafts) + 1}",
                                  details={'field': 'position'})
        drafts.insert(index - 1, draft)
        _replace_chapters(novel, drafts)
        novel.updated_at = utcnow()
        return novel

    novel = run_in_transaction(operation, 'add chapter', novel_id=novel_id)
    logger.info("Chapter added to novel %s, now %d chapters", novel.id, len(novel.chapters))
    return novel


def remove_chapter(novel_id, caller, chapter_number) -> Novel:
    def operation():
        novel = _load_owned(novel_id, caller)
        if not novel.has_chapters or not 1 <= chapter_number <= len(novel.chapters):
            raise NotFoundError("Chapter not found",
                                details={'novel_id': novel_id, 'chapter_number': chapter_number})
        if len(novel.chapters) == 1:
            raise ValidationError("A chaptered novel must keep at least one chapter",
                                  details={'novel_id': novel_id})
        drafts = _drafts_of(novel)
        del drafts[chapter_number - 1]
        _replace_chapters(novel, drafts)
        novel.updated_at = utcnow()
        return novel

    novel = run_in_transaction(operation, 'remove chapter', novel_id=novel_id)
    logger.info("Chapter %d removed from novel %s", chapter_number, novel.id)
    return novel
