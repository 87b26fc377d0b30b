from __future__ import annotations

from enum import Enum
from typing import List, Optional, Union


class EventCategory(str, Enum):
    PASS = "pass"
    AERIAL = "aerial"
    INTERCEPTION = "interception"
    OUT_OF_BOUNDS = "outofbounds"
    OTHER = "other"


_BY_TYPE = {
    # passes, clearances, shots
    1: EventCategory.PASS,
    12: EventCategory.PASS,
    13: EventCategory.PASS,
    14: EventCategory.PASS,
    15: EventCategory.PASS,
    16: EventCategory.PASS,
    44: EventCategory.AERIAL,
    8: EventCategory.INTERCEPTION,
    49: EventCategory.INTERCEPTION,
    5: EventCategory.OUT_OF_BOUNDS,
    6: EventCategory.OUT_OF_BOUNDS,
}

_NAMES = {
    EventCategory.PASS: "Passes, Clearances & Shots",
    EventCategory.AERIAL: "Aerial Duels",
    EventCategory.INTERCEPTION: "Interceptions & Recoveries",
    EventCategory.OUT_OF_BOUNDS: "Out of Bounds & Corners",
    EventCategory.OTHER: "General",
}

_COLORS = {
    EventCategory.PASS: "#3b82f6",
    EventCategory.AERIAL: "#f59e0b",
    EventCategory.INTERCEPTION: "#10b981",
    EventCategory.OUT_OF_BOUNDS: "#ef4444",
    EventCategory.OTHER: "#6b7280",
}

_INSTRUCTIONS = {
    EventCategory.PASS: [
        "Look for a clear frame where the ball starts accelerating away from the player. "
        "The sync point is the **last frame before the acceleration starts**.",
        "If there is no clear acceleration, use the **last frame where the ball and player overlap**, "
        "before the ball travels in the direction of the pass or shot.",
        "If there is no clear acceleration and they never overlap, use the **first frame where the ball "
        "starts accelerating** in the direction of the pass or shot.",
    ],
    EventCategory.AERIAL: [
        "If the ball keeps travelling in the same general direction, sync when the **ball is as close as "
        "possible to both players** in the duel.",
        "If the ball changes direction significantly, follow the pass/shot rules.",
        "**Both aerial duel events should be synced to the same moment**, together with any pass, shot or "
        "clearance that results from it.",
    ],
    EventCategory.INTERCEPTION: [
        "Look for the **first frame where the ball and player overlap**.",
        "If they never overlap, use the frame where the **ball stops moving towards the player**.",
        "An interception or recovery is often followed by another event; sync it **before** that event.",
    ],
    EventCategory.OUT_OF_BOUNDS: [
        "Out of bounds can be hard to see: the ball rarely crosses the line fully and sometimes stops short of it.",
        "Follow the ball's trajectory and estimate the frame at which **the ball would have crossed the line**.",
        "The **last frame where the ball moved towards the line** is the sync point.",
        "**Out of bounds events come in pairs. Always match them to the same frame.**",
    ],
    EventCategory.OTHER: [
        "Sync this event to the most appropriate frame based on when the action occurs.",
    ],
}


def event_category(event_type_id: Optional[Union[int, str]]) -> EventCategory:
    if event_type_id is None:
        return EventCategory.OTHER
    try:
        type_id = int(event_type_id)
    except (TypeError, ValueError):
        return EventCategory.OTHER
    return _BY_TYPE.get(type_id, EventCategory.OTHER)


def category_name(category: EventCategory) -> str:
    return _NAMES[category]


def category_color(category: EventCategory) -> str:
    return _COLORS[category]


def category_instructions(category: EventCategory) -> List[str]:
    return list(_INSTRUCTIONS[category])
