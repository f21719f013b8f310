import json
import logging
import string
from collections import deque
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

WRAP_WIDTH = 70
LINE_BREAK = "\n"
SENTENCE_END = (".", "?")


# ----------------- ERRORS -----------------
class MadlibError(Exception):
    """Base for loader and CLI errors. The fill engine itself never raises."""


class DataLoadError(MadlibError):
    def __init__(self, path: str, detail: str):
        super().__init__(f"Failed loading '{path}': {detail}")
        self.path = path
        self.detail = detail


class DictionaryFormatError(MadlibError):
    pass


# ----------------- DATA -----------------
@dataclass(frozen=True)
class Entry:
    key: str
    value: str


class TokenKind(str, Enum):
    PLAIN_WORD = "plain"
    RESOLVED_VALUE = "resolved"
    UNRESOLVED_PLACEHOLDER = "unresolved"


@dataclass(frozen=True)
class ResolvedToken:
    kind: TokenKind
    text: str
    original: str
    key: Optional[str] = None  # None when the token is not bracket-shaped


@dataclass
class FillResult:
    text: str
    tokens: List[ResolvedToken] = field(default_factory=list)
    entries_left: int = 0

    def count(self, kind: TokenKind) -> int:
        return sum(1 for t in self.tokens if t.kind is kind)


# ----------------- DICTIONARY QUEUE -----------------
class DictionaryQueue:
    """Remaining dictionary entries, consumed strictly front to back.

    A lookup drops every entry it walks past. Nothing dropped ever comes back,
    so a key whose entry was skipped while looking for another key can no
    longer be resolved.
    """

    def __init__(self, entries: Iterable[Entry] = ()):
        self._entries: Deque[Entry] = deque(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def remaining(self) -> List[Entry]:
        return list(self._entries)

    def take_matching(self, key: str) -> Optional[str]:
        while self._entries:
            entry = self._entries.popleft()
            if entry.key == key:
                return entry.value
            logger.debug("Discarded entry %s=%s while looking for %s", entry.key, entry.value, key)
        return None


def is_valid_key(snapshot: Sequence[Entry], candidate: str) -> bool:
    for entry in snapshot:
        if entry.key == candidate:
            return True
    return False


# ----------------- PLACEHOLDERS -----------------
def split_placeholder(token: str) -> Optional[Tuple[str, str]]:
    """Return ``(key, trailing_punct)`` for a bracketed token, else None.

    ``[noun]`` gives ``("noun", "")`` and ``[noun].`` gives ``("noun", ".")``.
    Only a single trailing punctuation character is recognized.
    """
    if len(token) < 2 or not token.startswith("["):
        return None
    if token.endswith("]"):
        return token[1:-1], ""
    if token[-2] == "]" and token[-1] in string.punctuation:
        return token[1:-2], token[-1]
    return None


class PlaceholderResolver:
    def __init__(self, queue: DictionaryQueue, snapshot: Sequence[Entry]):
        self.queue = queue
        self.snapshot = tuple(snapshot)

    def resolve(self, token: str) -> ResolvedToken:
        parts = split_placeholder(token)
        if parts is None:
            return ResolvedToken(TokenKind.PLAIN_WORD, token, token)
        key, punct = parts
        if not is_valid_key(self.snapshot, key):
            # Not a dictionary category: leave it visible as written.
            return ResolvedToken(TokenKind.PLAIN_WORD, token, token, key)
        value = self.queue.take_matching(key)
        if value is None:
            logger.debug("No entry left for [%s]", key)
            return ResolvedToken(TokenKind.UNRESOLVED_PLACEHOLDER, f"[{key}]", token, key)
        return ResolvedToken(TokenKind.RESOLVED_VALUE, value + punct, token, key)


# ----------------- LINE WRAPPING -----------------
def trailing_spaces(word: str) -> str:
    return "  " if word.endswith(SENTENCE_END) else " "


class LineWrapper:
    def __init__(self, width: int = WRAP_WIDTH):
        self.width = width
        self._out: List[str] = []
        self._line = ""

    def append(self, word: str, trailing: Optional[str] = None) -> None:
        if trailing is None:
            trailing = trailing_spaces(word)
        if len(self._line) + len(word) + len(trailing) <= self.width:
            self._line += word + trailing
            return
        logger.debug("Line break before %r at length %d", word, len(self._line))
        self._out.append(self._line)
        self._out.append(LINE_BREAK)
        self._line = word + " "
        if word.endswith(SENTENCE_END):
            self._line += "  "

    def flush(self) -> List[str]:
        out = self._out + [self._line]
        self._out = []
        self._line = ""
        return out


# ----------------- STORY ASSEMBLY -----------------
def fill_story(story_text: str, entries: Sequence[Entry], spacing_from_resolved: bool = False) -> FillResult:
    """Fill every placeholder in ``story_text`` and wrap the result.

    Spacing after each word is decided from the story token as written, so a
    substituted value ending in ``.`` does not get two spaces unless the
    placeholder did. ``spacing_from_resolved`` decides it from the
    substituted text instead.
    """
    queue = DictionaryQueue(entries)
    resolver = PlaceholderResolver(queue, entries)
    wrapper = LineWrapper()
    tokens: List[ResolvedToken] = []
    for raw in story_text.split():
        resolved = resolver.resolve(raw)
        spacing_source = resolved.text if spacing_from_resolved else raw
        wrapper.append(resolved.text, trailing_spaces(spacing_source))
        tokens.append(resolved)
    text = "".join(wrapper.flush())
    logger.debug("Filled %d tokens, %d entries left", len(tokens), len(queue))
    return FillResult(text=text, tokens=tokens, entries_left=len(queue))


def fill(story_text: str, dictionary_text: str, spacing_from_resolved: bool = False) -> str:
    return fill_story(story_text, parse_dictionary(dictionary_text), spacing_from_resolved).text


# ----------------- LOADING -----------------
def parse_dictionary(text: str, source: str = "<dictionary>") -> List[Entry]:
    words = text.split()
    if len(words) % 2:
        raise DictionaryFormatError(
            f"{source}: key '{words[-1]}' has no value (dictionary must hold key/value pairs)"
        )
    return [Entry(k, v) for k, v in zip(words[0::2], words[1::2])]


def read_text(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise DataLoadError(path, str(e)) from e


def load_dictionary(path: str) -> List[Entry]:
    entries = parse_dictionary(read_text(path), source=path)
    logger.debug("Loaded %d entries from %s", len(entries), path)
    return entries


def write_output(text: str, path: str) -> None:
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
    except OSError as e:
        raise DataLoadError(path, str(e)) from e


# ----------------- CONFIG -----------------
@dataclass
class MadlibConfig:
    story_path: Optional[str] = None
    dictionary_path: Optional[str] = None
    output_path: Optional[str] = None
    # Decide one/two trailing spaces from the substituted word, not the story token
    spacing_from_resolved: bool = False

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "MadlibConfig":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        for name, value in values.items():
            if name == "spacing_from_resolved":
                if not isinstance(value, bool):
                    raise ValueError(f"'{name}' must be true or false, got {value!r}")
            elif value is not None and not isinstance(value, str):
                raise ValueError(f"'{name}' must be a string path, got {value!r}")
        return cls(**values)


def load_config(path: str) -> MadlibConfig:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise DataLoadError(path, str(e)) from e
    if not isinstance(data, dict):
        raise DataLoadError(path, "expected a JSON object")
    try:
        return MadlibConfig.from_dict(data)
    except ValueError as e:
        raise DataLoadError(path, str(e)) from e


def save_config(cfg: MadlibConfig, path: str) -> None:
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(cfg.to_dict(), f, indent=2)
    except OSError as e:
        raise DataLoadError(path, str(e)) from e
