"""
RTM event type tags.
"""


class EventType:
    """Inbound ``type`` tags the router knows about."""

    HELLO = "hello"
    MESSAGE = "message"
    USER_TYPING = "user_typing"
    CHANNEL_JOINED = "channel_joined"
    CHANNEL_LEFT = "channel_left"
    PRESENCE_CHANGE = "presence_change"
    RECONNECT_URL = "reconnect_url"


# Recognized, observed and dropped without any handling.
IGNORED_EVENTS = frozenset({
    EventType.USER_TYPING,
    EventType.CHANNEL_JOINED,
    EventType.CHANNEL_LEFT,
    EventType.PRESENCE_CHANGE,
    EventType.RECONNECT_URL,
})
