from math import ceil
from typing import Callable, Dict, Tuple


def normalize_paging(page, page_size, max_page_size: int = 100) -> Tuple[int, int]:
    try:
        p = int(page)
    except (TypeError, ValueError):
        p = 1
    try:
        ps = int(page_size)
    except (TypeError, ValueError):
        ps = 10
    p = p if p > 0 else 1
    ps = ps if ps > 0 else 10
    return p, min(ps, max_page_size)


def paginate(query, page, page_size, to_dto: Callable) -> Dict:
    p, ps = normalize_paging(page, page_size)
    total = query.count()
    rows = query.offset((p - 1) * ps).limit(ps).all()
    return {
        "items": [to_dto(r) for r in rows],
        "page": p,
        "page_size": ps,
        "pages": ceil(total / ps) if total else 0,
        "total": total,
    }
