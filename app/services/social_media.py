PLATFORMS = ("INSTAGRAM", "FACEBOOK", "TWITTER", "LINKEDIN", "TIKTOK")
CONTENT_TYPES = ("POST", "STORY", "REELS")
POST_STATUSES = ("DRAFT", "PENDING_REVIEW", "APPROVED", "REJECTED", "PUBLISHED")

# Portrait 9:16 frame used by stories and reels everywhere
VERTICAL = {
    "image_min_width": 1080,
    "image_max_width": 1080,
    "image_min_height": 1920,
    "image_max_height": 1920,
}


def _limits(caption_max, hashtags_max, video_mb, video_seconds, multiple_images=False,
            caption_min=None, image=None):
    return {
        "caption_max_length": caption_max,
        "caption_min_length": caption_min,
        "hashtags_max": hashtags_max,
        **(image or VERTICAL),
        "video_max_size_mb": video_mb,
        "video_max_duration": video_seconds,
        "supports_video": True,
        "supports_multiple_images": multiple_images,
    }


def _box(min_width, max_width, min_height, max_height):
    return {
        "image_min_width": min_width,
        "image_max_width": max_width,
        "image_min_height": min_height,
        "image_max_height": max_height,
    }


PLATFORM_LIMITS = {
    "INSTAGRAM": {
        "POST": _limits(2200, 30, 100, 60, True, caption_min=0, image=_box(320, 1080, 320, 1350)),
        "STORY": _limits(0, 10, 100, 15),
        "REELS": _limits(2200, 30, 100, 90),
    },
    "FACEBOOK": {
        "POST": _limits(63206, 30, 1024, 240, True, image=_box(600, 2048, 600, 2048)),
        "STORY": _limits(0, 10, 100, 20),
        "REELS": _limits(2200, 30, 100, 90),
    },
    "TWITTER": {
        "POST": _limits(280, 10, 512, 140, True, caption_min=0, image=_box(600, 4096, 600, 4096)),
        "STORY": _limits(0, 0, 512, 140),
        "REELS": _limits(280, 10, 512, 140),
    },
    "LINKEDIN": {
        "POST": _limits(3000, 5, 200, 600, image=_box(1200, 1200, 627, 627)),
        "STORY": _limits(0, 0, 200, 20),
        "REELS": _limits(3000, 5, 200, 600),
    },
    "TIKTOK": {
        "POST": _limits(2200, 100, 287, 600),
        "STORY": _limits(0, 0, 287, 15),
        "REELS": _limits(2200, 100, 287, 600),
    },
}


def get_limits(platform, content_type):
    try:
        return PLATFORM_LIMITS[platform][content_type]
    except KeyError:
        raise ValueError(f"Unsupported platform/content type: {platform}/{content_type}")


def validate_post(platform, content_type, caption="", hashtags=None, images=None, videos=None):
    """Check a planned post against the platform's publishing limits.

    Returns a dict with ``is_valid``, ``errors`` and ``warnings``.
    """
    limits = get_limits(platform, content_type)
    caption = caption or ""
    hashtags = hashtags or []
    images = images or []
    videos = videos or []
    errors = []
    warnings = []

    if content_type != "STORY" and len(caption) > limits["caption_max_length"]:
        errors.append(
            f"Caption exceeds maximum length of {limits['caption_max_length']} characters "
            f"(current: {len(caption)})"
        )

    caption_min = limits["caption_min_length"]
    if caption_min is not None and len(caption) < caption_min:
        errors.append(
            f"Caption must be at least {caption_min} characters (current: {len(caption)})"
        )

    if len(hashtags) > limits["hashtags_max"]:
        errors.append(
            f"Too many hashtags. Maximum is {limits['hashtags_max']} (current: {len(hashtags)})"
        )

    if not images and not videos:
        errors.append("At least one image or video is required")
    if videos and not limits["supports_video"]:
        errors.append(f"{platform} does not support video for {content_type}")
    if len(images) > 1 and not limits["supports_multiple_images"]:
        errors.append(f"{platform} does not support multiple images for {content_type}")
    if len(videos) > 1:
        errors.append("Only one video is allowed per post")
    if images and videos:
        errors.append("Cannot mix images and videos in a single post")

    # stories carry no caption, so there is nothing to count down
    if limits["caption_max_length"] > 0:
        remaining = limits["caption_max_length"] - len(caption)
        if 0 <= remaining < 50:
            warnings.append(f"Only {remaining} characters remaining in caption")

    return {"is_valid": not errors, "errors": errors, "warnings": warnings}
