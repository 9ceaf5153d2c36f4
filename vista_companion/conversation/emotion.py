"""Keyword emotion tagging for the animated face."""

from __future__ import annotations

NEUTRAL = "neutral"
LISTENING = "listening"

# Checked in order; the first emotion with a matching keyword wins.
EMOTION_KEYWORDS = (
    ("happy", ("happy", "joy", "excited", "great", "awesome", "wonderful", "amazing",
               "love", "laugh", "good", "nice")),
    ("sad", ("sad", "sorrow", "depressed", "unhappy", "cry", "tears", "lonely", "bad", "sorry")),
    ("angry", ("angry", "mad", "furious", "annoyed", "hate", "rage", "frustrated")),
    ("surprised", ("surprised", "shocked", "wow", "unexpected", "really", "seriously")),
    ("confused", ("confused", "dont understand", "what", "huh", "puzzled", "dont know")),
    ("excited", ("excited", "thrilled", "cant wait", "awesome", "yeah")),
    ("love", ("love", "like", "adore", "heart", "beautiful")),
)


def detect_emotion(text: str) -> str:
    lower = text.lower()
    for emotion, keywords in EMOTION_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return emotion
    return NEUTRAL
