"""Platform classifier for deciding which deployment targets an order needs.

Keyword rules with explicit priority:

1. Strong android phrases select android.
2. Strong web phrases select web.
3. Both present selects both.
4. Weak mobile phrases (mobile app, phone app, ...) with no strong android
   phrase select android, flagged ambiguous.
5. No signal at all selects web, flagged ambiguous.

A bare "app" is never a platform signal.
"""

import re
from typing import List, Tuple

from contracts import Platform, PlatformDetection


def _pattern(phrases: List[str]) -> List[Tuple[str, re.Pattern]]:
    return [(p, re.compile(r"\b" + re.escape(p).replace(r"\ ", r"[\s-]+") + r"\b", re.IGNORECASE)) for p in phrases]


class PlatformClassifier:
    """Classifies free-text requirements into platforms."""

    ANDROID_INDICATORS = [
        "android", "google play", "play store", "apk", "aab",
    ]

    MOBILE_INDICATORS = [
        "mobile app", "mobile application", "phone app", "smartphone app", "native app",
    ]

    WEB_INDICATORS = [
        "website", "web site", "web app", "web application", "webpage", "web page",
        "landing page", "vercel", "browser", "web",
    ]

    def __init__(self):
        self._android = _pattern(self.ANDROID_INDICATORS)
        self._mobile = _pattern(self.MOBILE_INDICATORS)
        self._web = _pattern(self.WEB_INDICATORS)

    @staticmethod
    def _matches(text: str, patterns) -> List[str]:
        return [phrase for phrase, regex in patterns if regex.search(text)]

    def classify(self, requirements: str) -> PlatformDetection:
        """Classify requirements text.

        Returns:
            PlatformDetection with the selected platforms, the ambiguous flag
            and the phrases that matched.
        """
        text = requirements or ""
        android = self._matches(text, self._android)
        mobile = self._matches(text, self._mobile)
        web = self._matches(text, self._web)
        evidence = [f"android:{p}" for p in android] + [f"mobile:{p}" for p in mobile] + [f"web:{p}" for p in web]

        platforms = []
        ambiguous = False
        if web:
            platforms.append(Platform.WEB)
        if android:
            platforms.append(Platform.ANDROID)
        elif mobile:
            platforms.append(Platform.ANDROID)
            ambiguous = True

        if not platforms:
            platforms = [Platform.WEB]
            ambiguous = True
            evidence.append("no platform indicators found; defaulting to web")

        return PlatformDetection(platforms=platforms, ambiguous=ambiguous, evidence=evidence)


def detect_platforms(requirements: str) -> set:
    """Convenience function returning just the platform set."""
    return set(PlatformClassifier().classify(requirements).platforms)
