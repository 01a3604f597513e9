# app/pages.py
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

from app.errors import MalformedPageSpec, PageRangeOutOfBounds


class Segment(NamedTuple):
    start: int
    end: int


def _tokens(spec: str) -> List[str]:
    return [part.strip() for part in spec.split(",")]


def _flatten(tokens: Iterable[str]) -> List[str]:
    # Form fields arrive either repeated ("1-3", "4-10") or joined ("1-3,4-10").
    out: List[str] = []
    for token in tokens:
        out.extend(_tokens(token or ""))
    return out


def _to_int(text: str, token: str) -> int:
    text = text.strip()
    if not (text.isascii() and text.isdigit()):
        raise MalformedPageSpec(token)
    return int(text)


def _split_token(token: str) -> Tuple[int, int]:
    if not token:
        raise MalformedPageSpec(token, "empty entry")
    if "-" in token:
        a, b = token.split("-", 1)
        return _to_int(a, token), _to_int(b, token)
    page = _to_int(token, token)
    return page, page


# ----------------------------
# Lenient selection (convert / extract)
# ----------------------------
def parse_page_selection(spec: Optional[str], total_pages: int) -> List[int]:
    """
    Parse "1,3,5", "1-5" or a mix into page numbers, in the order given.

    Blank means every page. Pages outside 1..total_pages are dropped, repeats
    are kept ("1-3,2" -> [1, 2, 3, 2]).
    """
    if spec is None or not spec.strip():
        return list(range(1, total_pages + 1))

    pages: List[int] = []
    for token in _tokens(spec):
        start, end = _split_token(token)
        if end < start:
            raise MalformedPageSpec(token, "range end is before its start")
        pages.extend(range(max(start, 1), min(end, total_pages) + 1))
    return pages


# ----------------------------
# Strict ranges (split by ranges)
# ----------------------------
def parse_page_ranges(tokens: Sequence[str], total_pages: int) -> List[Segment]:
    ranges: List[Segment] = []
    for token in _flatten(tokens):
        start, end = _split_token(token)
        if start < 1 or start > total_pages:
            raise PageRangeOutOfBounds(
                token,
                page=start,
                bound=total_pages,
                message=(
                    f"Start page {start} is out of range. "
                    f"PDF has {total_pages} pages (valid range: 1-{total_pages})"
                ),
            )
        if end < start or end > total_pages:
            raise PageRangeOutOfBounds(
                token,
                page=end,
                bound=total_pages,
                message=(
                    f"End page {end} is out of range. "
                    f"PDF has {total_pages} pages (valid range: {start}-{total_pages})"
                ),
            )
        ranges.append(Segment(start, end))
    if not ranges:
        raise MalformedPageSpec("", "no page ranges given")
    return ranges


# ----------------------------
# Split points (split by pages)
# ----------------------------
def parse_split_points(tokens: Sequence[str], total_pages: int) -> List[int]:
    points: List[int] = []
    for token in _flatten(tokens):
        if not token:
            raise MalformedPageSpec(token, "empty entry")
        point = _to_int(token, token)
        if point < 1 or point > total_pages:
            raise PageRangeOutOfBounds(token, page=point, bound=total_pages)
        points.append(point)
    return points


def plan_split_by_points(points: Sequence[int], total_pages: int) -> List[Segment]:
    """
    Turn split points into segments: [1] + points + [total_pages + 1] taken pairwise.

    Points keep their input order. Pairs that collapse (a point at page 1, a
    repeated point) yield nothing.
    """
    bounds = [1, *points, total_pages + 1]
    segments: List[Segment] = []
    for lo, hi in zip(bounds, bounds[1:]):
        start, end = lo, hi - 1
        if start > end:
            continue
        segments.append(Segment(start, end))
    return segments
