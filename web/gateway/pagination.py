from django.core.paginator import Paginator

from apps.orders.errors import ValidationError

MAX_PAGE_SIZE = 100


def _positive_int(raw, name: str, default: int) -> int:
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer", field=name) from None
    if value < 1:
        raise ValidationError(f"{name} must be positive", field=name)
    return value


def paginate(request, queryset, serialize) -> dict:
    """Page ``queryset`` using the ``page``/``page_size`` query params.

    Returns the response body ``{count, page, page_size, results}``, with
    each row passed through ``serialize``.
    """
    page = _positive_int(request.GET.get("page"), "page", 1)
    page_size = min(_positive_int(request.GET.get("page_size"), "page_size", 20), MAX_PAGE_SIZE)
    p = Paginator(queryset, page_size)
    page_obj = p.get_page(page)
    return {
        "count": p.count,
        "page": page_obj.number,
        "page_size": page_size,
        "results": [serialize(row) for row in page_obj.object_list],
    }
