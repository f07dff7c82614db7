from collections.abc import Iterable, Mapping
from functools import lru_cache
from types import MappingProxyType

EMOJI_WEIGHTS: dict[str, float] = {
    # faces
    "😀": 0.8, "😃": 0.8, "😄": 0.9, "😁": 0.8, "😆": 0.7, "😅": 0.6,
    "🤣": 0.7, "😂": 0.7, "🙂": 0.6, "😊": 0.8, "😇": 0.8, "🥰": 0.9,
    "😍": 0.9, "🤩": 0.8, "😘": 0.7, "😗": 0.6, "😚": 0.7, "😙": 0.6,
    "🥲": 0.4, "😋": 0.7, "😛": 0.6, "😜": 0.7, "🤪": 0.6, "😝": 0.6,
    "🤑": 0.5, "🤗": 0.8, "🤭": 0.5, "🤫": 0.3, "🤔": 0.2, "🤐": 0.1,
    "🤨": 0.0, "😐": 0.0, "😑": -0.1, "😶": 0.0, "😏": 0.3, "😒": -0.3,
    "🙄": -0.4, "😬": -0.2, "🤥": -0.3, "😔": -0.6, "😕": -0.5, "🙁": -0.5,
    "☹️": -0.6, "😣": -0.5, "😖": -0.5, "😫": -0.7, "😩": -0.7, "🥺": -0.3,
    "😢": -0.8, "😭": -0.8, "😤": -0.4, "😠": -0.8, "😡": -0.9, "🤬": -0.9,
    "🤯": -0.6, "😳": -0.2, "🥵": -0.3, "🥶": -0.3, "😱": -0.7, "😨": -0.7,
    "😰": -0.8, "😥": -0.6, "😓": -0.5,
    # hands and body
    "🤝": 0.7, "👍": 0.7, "👎": -0.7, "👌": 0.6, "🤞": 0.5, "✌️": 0.6,
    "🤟": 0.7, "🤘": 0.6, "👏": 0.8, "🙌": 0.9, "👐": 0.5, "🤲": 0.6,
    "🙏": 0.7, "✍️": 0.4, "💪": 0.8, "🦾": 0.7, "🦿": 0.3, "🦵": 0.2,
    "🦶": 0.1, "👂": 0.1, "🧠": 0.5, "🫀": 0.4, "🫁": 0.2, "🦷": 0.1,
    "🦴": 0.0, "👀": 0.2, "👁️": 0.1, "👅": 0.2, "👄": 0.3, "💋": 0.6,
    "🩸": -0.3,
    # hearts and symbols
    "💔": -0.9, "❤️": 0.9, "🧡": 0.8, "💛": 0.8, "💚": 0.8, "💙": 0.8,
    "💜": 0.8, "🤎": 0.5, "🖤": 0.3, "🤍": 0.7, "💯": 0.9, "💢": -0.7,
    "💥": -0.2, "💫": 0.6, "💦": 0.1, "💨": 0.2, "🕳️": -0.4, "💣": -0.8,
    "💬": 0.3, "👁️‍🗨️": 0.2, "🗨️": 0.3, "🗯️": -0.2, "💭": 0.4, "💤": 0.2,
    # work objects
    "💻": 0.3, "⌨️": 0.2, "🖥️": 0.2, "🖨️": 0.1, "🖱️": 0.1, "🖲️": 0.1,
    "💽": 0.1, "💾": 0.1, "💿": 0.1, "📀": 0.1, "🧮": 0.2, "🎬": 0.4,
    "📺": 0.2, "📷": 0.4, "📸": 0.4, "📹": 0.3, "📼": 0.2, "🔍": 0.3,
    "🔎": 0.3, "🕯️": 0.4, "💡": 0.7, "🔦": 0.3, "🏮": 0.5, "🪔": 0.4,
    "📔": 0.4, "📕": 0.3, "📖": 0.5, "📗": 0.4, "📘": 0.4, "📙": 0.4,
    "📚": 0.6, "📓": 0.4, "📒": 0.4, "📃": 0.2, "📜": 0.3, "📄": 0.2,
    "📰": 0.3, "🗞️": 0.2, "📑": 0.2, "🔖": 0.3, "🏷️": 0.2, "💰": 0.6,
    "🪙": 0.5, "💴": 0.4, "💵": 0.5, "💶": 0.4, "💷": 0.4, "💸": -0.3,
    "💳": 0.2, "🧾": 0.1, "💹": 0.7, "✉️": 0.3, "📧": 0.3, "📨": 0.4,
    "📩": 0.4, "📤": 0.3, "📥": 0.3, "📦": 0.3, "📫": 0.4, "📪": 0.2,
    "📬": 0.4, "📭": 0.2, "📮": 0.3, "🗳️": 0.5, "✏️": 0.4, "✒️": 0.3,
    "🖋️": 0.4, "🖊️": 0.3, "🖌️": 0.5, "🖍️": 0.4, "📝": 0.4, "💼": 0.4,
    "📁": 0.3, "📂": 0.3, "🗂️": 0.3, "📅": 0.4, "📆": 0.4, "🗒️": 0.3,
    "🗓️": 0.4, "📇": 0.3, "📈": 0.8, "📉": -0.5, "📊": 0.5, "📋": 0.4,
    "📌": 0.3, "📍": 0.3, "📎": 0.2, "🖇️": 0.2, "📏": 0.2, "📐": 0.2,
    "✂️": -0.1, "🗃️": 0.2, "🗄️": 0.2, "🗑️": -0.2, "🔒": 0.2, "🔓": 0.1,
    "🔏": 0.3, "🔐": 0.4, "🔑": 0.5, "🗝️": 0.4, "🔨": 0.2, "🪓": -0.1,
    "⛏️": 0.1, "⚒️": 0.2, "🛠️": 0.4, "🗡️": -0.3, "⚔️": -0.4, "🔫": -0.8,
    "🪃": 0.1, "🏹": 0.2, "🛡️": 0.4, "🪚": 0.1, "🔧": 0.3, "🪛": 0.2,
    "🔩": 0.2, "⚙️": 0.3, "🗜️": 0.1, "⚖️": 0.5, "🦯": 0.2, "🔗": 0.4,
    "⛓️": -0.2, "🪝": 0.1, "🧰": 0.4, "🧲": 0.3, "🪜": 0.2, "⚗️": 0.4,
    "🧪": 0.4, "🧫": 0.2, "🧬": 0.5, "🔬": 0.5, "🔭": 0.6, "📡": 0.4,
}

# Slack reports reactions by short name rather than by symbol.
SLACK_REACTION_ALIASES: dict[str, str] = {
    "grinning": "😀", "smiley": "😃", "smile": "😄", "grin": "😁", "laughing": "😆",
    "sweat_smile": "😅", "rolling_on_the_floor_laughing": "🤣", "joy": "😂",
    "slightly_smiling_face": "🙂", "blush": "😊", "innocent": "😇",
    "smiling_face_with_3_hearts": "🥰", "heart_eyes": "😍", "star-struck": "🤩",
    "hugging_face": "🤗", "thinking_face": "🤔", "neutral_face": "😐",
    "expressionless": "😑", "smirk": "😏", "unamused": "😒", "face_with_rolling_eyes": "🙄",
    "grimacing": "😬", "pensive": "😔", "confused": "😕", "slightly_frowning_face": "🙁",
    "white_frowning_face": "☹️", "persevere": "😣", "confounded": "😖", "tired_face": "😫",
    "weary": "😩", "pleading_face": "🥺", "cry": "😢", "sob": "😭", "triumph": "😤",
    "angry": "😠", "rage": "😡", "exploding_head": "🤯", "flushed": "😳", "hot_face": "🥵",
    "scream": "😱", "fearful": "😨", "cold_sweat": "😰", "sweat": "😓",
    "handshake": "🤝", "+1": "👍", "thumbsup": "👍", "-1": "👎", "thumbsdown": "👎",
    "ok_hand": "👌", "crossed_fingers": "🤞", "v": "✌️", "the_horns": "🤘",
    "clap": "👏", "raised_hands": "🙌", "pray": "🙏", "muscle": "💪", "brain": "🧠",
    "eyes": "👀", "broken_heart": "💔", "heart": "❤️", "orange_heart": "🧡",
    "yellow_heart": "💛", "green_heart": "💚", "blue_heart": "💙", "purple_heart": "💜",
    "100": "💯", "anger": "💢", "boom": "💥", "dizzy": "💫", "speech_balloon": "💬",
    "thought_balloon": "💭", "zzz": "💤", "computer": "💻", "bulb": "💡", "books": "📚",
    "moneybag": "💰", "money_with_wings": "💸", "memo": "📝", "briefcase": "💼",
    "calendar": "📆", "chart_with_upwards_trend": "📈", "chart_with_downwards_trend": "📉",
    "bar_chart": "📊", "clipboard": "📋", "pushpin": "📌", "key": "🔑",
    "hammer_and_wrench": "🛠️", "wrench": "🔧", "gear": "⚙️", "link": "🔗",
    "microscope": "🔬", "telescope": "🔭",
}


class EmojiSentimentTable:
    def __init__(self, weights: Mapping[str, float], aliases: Mapping[str, str] | None = None):
        self._weights = MappingProxyType(dict(weights))
        self._aliases = MappingProxyType(dict(aliases or {}))

    def weight(self, emoji: str) -> float | None:
        # Slack appends skin tones as "+1::skin-tone-2"
        key = emoji.strip(":").split("::", 1)[0]
        if key in self._weights:
            return self._weights[key]
        symbol = self._aliases.get(key)
        if symbol is None:
            return None
        return self._weights.get(symbol)

    def reaction_sentiment(self, reactions: Iterable[tuple[str, int]]) -> float | None:
        """Count-weighted mean weight of the mapped reactions, in [-1, 1].

        Returns None when nothing maps, which callers treat as "no signal".
        """
        total = 0.0
        total_count = 0
        for emoji, count in reactions:
            value = self.weight(emoji)
            if value is None or count <= 0:
                continue
            total += value * count
            total_count += count
        if total_count == 0:
            return None
        return total / total_count


@lru_cache
def get_emoji_table() -> EmojiSentimentTable:
    return EmojiSentimentTable(EMOJI_WEIGHTS, SLACK_REACTION_ALIASES)
