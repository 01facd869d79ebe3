"""
Static classification table for well-known packages.

Only social media and entertainment are tracked separately; everything else
falls into AppCategory.OTHER.
"""

from timeleak.models.domain import AppCategory

SOCIAL_MEDIA: dict[str, str] = {
    "com.facebook.katana": "Facebook",
    "com.facebook.lite": "Facebook Lite",
    "com.instagram.android": "Instagram",
    "com.instagram.barcelona": "Threads",
    "com.zhiliaoapp.musically": "TikTok",
    "com.ss.android.ugc.trill": "TikTok",
    "com.ss.android.ugc.aweme": "Douyin",
    "com.snapchat.android": "Snapchat",
    "com.twitter.android": "X",
    "xyz.blueskyweb.app": "Bluesky",
    "com.reddit.frontpage": "Reddit",
    "com.pinterest": "Pinterest",
    "com.pinterest.app_lite": "Pinterest Lite",
    "com.linkedin.android": "LinkedIn",
    "com.discord": "Discord",
    "com.tumblr": "Tumblr",
}

ENTERTAINMENT: dict[str, str] = {
    "com.disney.disneyplus": "Disney+",
    "com.netflix.mediaclient": "Netflix",
    "com.amazon.avod.thirdpartyclient": "Prime Video",
    "com.hulu.plus": "Hulu",
    "com.hbo.max": "Max",
    "com.peacock.android": "Peacock",
    "com.google.android.youtube": "YouTube",
    "com.google.android.apps.youtube.kids": "YouTube Kids",
    "app.revanced.android.youtube": "YouTube ReVanced",
    "com.spotify.music": "Spotify",
    "com.apple.atv": "Apple TV",
    "com.paramount.plus": "Paramount+",
    "com.plexapp.android": "Plex",
    "tv.pluto.android": "Pluto TV",
    "com.tubi": "Tubi",
    "com.crunchyroll.crunchyroid": "Crunchyroll",
    "com.twitch.android": "Twitch",
}

SOCIAL_MEDIA_PACKAGES = frozenset(SOCIAL_MEDIA)
ENTERTAINMENT_PACKAGES = frozenset(ENTERTAINMENT)


def categorize(package_name: str) -> AppCategory:
    if package_name in SOCIAL_MEDIA_PACKAGES:
        return AppCategory.SOCIAL_MEDIA
    if package_name in ENTERTAINMENT_PACKAGES:
        return AppCategory.ENTERTAINMENT
    return AppCategory.OTHER


def app_name_for(package_name: str) -> str:
    """Human-readable name, falling back to the package name itself."""
    return SOCIAL_MEDIA.get(package_name) or ENTERTAINMENT.get(package_name) or package_name
