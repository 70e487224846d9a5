from flask import request

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def page_args(default_limit=DEFAULT_LIMIT):
    """Read ?page=&limit= from the current request, clamped to sane bounds."""
    page = request.args.get("page", 1, type=int) or 1
    limit = request.args.get("limit", default_limit, type=int) or default_limit
    return max(page, 1), min(max(limit, 1), MAX_LIMIT)


def paginate(query, page, limit):
    return query.paginate(page=page, per_page=limit, error_out=False)


def pagination_meta(pagination):
    return {
        "page": pagination.page,
        "limit": pagination.per_page,
        "total": pagination.total,
        "pages": pagination.pages,
    }
