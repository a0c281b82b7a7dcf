"""
Backend API Field Names

JSON keys used by the reels endpoints. Kept in one place so the record
parser and the HTTP gateway agree on the wire shape.
"""


class APIFields:
    """Reel payload keys."""

    MONGO_ID = "_id"
    ID = "id"
    PROJECT_ID = "projectId"
    TITLE = "title"
    DESCRIPTION = "description"
    VIDEO_URL = "videoUrl"
    THUMBNAIL = "thumbnail"
    IS_ASSET = "isAsset"
    DEVELOPER_ID = "developerId"
    DEVELOPER_NAME = "developerName"
    DEVELOPER_LOGO = "developerLogo"
    NAME = "name"
    LOGO_URL = "logoUrl"
    LOGO = "logo"
    LIKES = "likes"
    LIKE_COUNT = "likeCount"
    IS_LIKED = "isLiked"
    HAS_WHATSAPP = "hasWhatsApp"
    CREATED_AT = "createdAt"

    # List envelope keys, in lookup order
    LIST_ENVELOPE_KEYS = ("reels", "data", "clips")

    # Multipart upload parts
    FILE = "file"


class Endpoints:
    """Backend paths."""

    REELS = "/reels"
    REEL = "/reels/{record_id}"
    LIKE = "/reels/{record_id}/like"
    UNLIKE = "/reels/{record_id}/unlike"

    PAGE_PARAM = "page"
    LIMIT_PARAM = "limit"
