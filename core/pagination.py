from django.conf import settings
from rest_framework.pagination import PageNumberPagination


class MarketplacePagination(PageNumberPagination):
    """
    Page-number pagination for marketplace listings.

    Default page size comes from ``MARKETPLACE['PAGE_SIZE']``; clients may ask
    for up to 100 items with ``page_size``.
    """

    page_size_query_param = 'page_size'
    max_page_size = 100

    def get_page_size(self, request):
        self.page_size = getattr(settings, 'MARKETPLACE', {}).get('PAGE_SIZE', 12)
        return super().get_page_size(request)
