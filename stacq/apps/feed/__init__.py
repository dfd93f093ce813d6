from stacq.apps.feed.models import FeedPage, FeedQuery
from stacq.apps.feed.service import FeedService, SupabaseFeedSource
from stacq.apps.feed.supabase_client import SupabaseClient, SupabaseError

__all__ = [
    "FeedPage",
    "FeedQuery",
    "FeedService",
    "SupabaseClient",
    "SupabaseError",
    "SupabaseFeedSource",
]
