"""Turn a Phabricator feed callback into a message for a Matrix room.

Feed callbacks are form posts. ``storyText`` makes the post a story; any
other field may carry PHIDs worth resolving into reference links. Tagged
stories (``storyType=PhabricatorFeedTaggedStory``) instead carry a JSON
object in ``storyText`` naming the destination room in ``tag`` and the
message in ``title``; remaining keys are appended as ``(key -> value)``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from phab_relay.phids import is_resolvable

logger = logging.getLogger("phab-relay")

STORY_TEXT = "storyText"
STORY_TYPE = "storyType"
TAGGED_STORY = "PhabricatorFeedTaggedStory"
TAG_KEY = "tag"
TITLE_KEY = "title"


class TaggedStoryError(ValueError):
    pass


@dataclass(frozen=True)
class RoutedMessage:
    room_url: str
    text: str
    references: list[str] = field(default_factory=list)


def parse_tagged_story(story_text: str) -> tuple[str, str]:
    """Return (room name, message text) for a tagged story payload.

    Extra keys are appended in sorted key order.
    """
    try:
        payload = json.loads(story_text)
    except json.JSONDecodeError as exc:
        raise TaggedStoryError(f"unable to read tagged story: {exc}") from exc
    if not isinstance(payload, dict) or not all(isinstance(v, str) for v in payload.values()):
        raise TaggedStoryError("unable to read tagged story: expected an object of strings")
    if TAG_KEY not in payload:
        raise TaggedStoryError("unable to parse tagged story: no tag")
    if TITLE_KEY not in payload:
        raise TaggedStoryError("unable to parse tagged story: no title")

    extras = "".join(
        f" ({key} -> {value})"
        for key, value in sorted(payload.items())
        if key not in (TAG_KEY, TITLE_KEY)
    )
    return payload[TAG_KEY], payload[TITLE_KEY] + extras


def route_story(
    form: Mapping[str, list[str]],
    *,
    default_room_url: str,
    allowed_types: Iterable[str],
    resolve: Callable[[list[str]], list[str]],
    room_url_for: Callable[[str], str],
) -> tuple[RoutedMessage | None, str]:
    """Return (message to emit or None, routing reason)."""
    allowed_types = tuple(allowed_types)
    is_story = False
    is_tagged = False
    story: list[str] = []
    phids: list[str] = []

    for key, values in form.items():
        logger.debug("kv: %s %s", key, values)
        if not values:
            continue
        if key == STORY_TEXT:
            is_story = True
            story.extend(values)
            continue
        for value in values:
            if is_resolvable(value, allowed_types):
                phids.append(value)
            elif key == STORY_TYPE and value == TAGGED_STORY:
                is_tagged = True

    if not is_story:
        return None, "not a story"

    story_text = "".join(story)
    if is_tagged:
        try:
            room, text = parse_tagged_story(story_text)
        except TaggedStoryError as exc:
            logger.error("%s: %s", exc, story_text)
            return None, str(exc)
        logger.debug("routing tagged story to %s", room)
        return RoutedMessage(room_url_for(room), text), f"tagged story for room {room}"

    references = resolve(phids) if phids else []
    return RoutedMessage(default_room_url, story_text, references), "feed story"
