import re
from typing import Iterable, List

MAX_KEYWORDS = 5
MIN_TOKEN_LEN = 3

_TOKEN_RE = re.compile(r"[a-z0-9']+")

STOPWORDS = frozenset("""
a an and or but if so of in on at to for from by with about into over after before
i me my mine myself we us our ours you your yours he him his she her hers they them their
it its this that these those there here what which who whom whose when where why how
is am are was were be been being have has had do does did done will would could should
may might must can cant cannot shall just very really too also not no yes than then
all any some each every much many more most other such only own same again once
i'm i've i'd i'll you're you've it's that's don't didn't doesn't isn't wasn't won't
get got getting go going gone went like feel felt think thought know knew want wanted
today tonight now still even ever never always something anything nothing everything
one thing things way lot bit kind sort
""".split())

# Ordered: ties between categories are won by the earlier entry.
CATEGORY_KEYWORDS: tuple[tuple[str, frozenset[str]], ...] = (
    ("joy", frozenset({"happy", "happiness", "excited", "joy", "glad", "thrilled", "celebrate",
                       "celebrating", "amazing", "wonderful", "proud", "promoted", "promotion"})),
    ("sadness", frozenset({"sad", "sadness", "cry", "crying", "cried", "lonely", "alone", "miss",
                           "missing", "grief", "grieving", "heartbroken", "depressed", "lost"})),
    ("love", frozenset({"love", "loved", "loving", "romance", "romantic", "partner", "dating",
                        "date", "crush", "boyfriend", "girlfriend", "husband", "wife", "marriage",
                        "married", "engaged", "relationship"})),
    ("anxiety", frozenset({"anxious", "anxiety", "worried", "worry", "worrying", "scared", "afraid",
                           "fear", "nervous", "stress", "stressed", "panic", "overwhelmed"})),
    ("work", frozenset({"work", "job", "career", "boss", "colleague", "coworker", "office",
                        "meeting", "project", "interview", "hired", "fired", "salary"})),
    ("family", frozenset({"family", "mother", "father", "mom", "dad", "sister", "brother",
                          "parent", "parents", "son", "daughter", "grandma", "grandpa", "kids"})),
    ("friendship", frozenset({"friend", "friends", "friendship", "bestie", "buddy"})),
    ("health", frozenset({"health", "sick", "doctor", "hospital", "therapy", "therapist",
                          "medication", "sleep", "tired", "pain", "diagnosed"})),
    ("aspirations", frozenset({"dream", "dreams", "goal", "goals", "hope", "hopes", "wish",
                               "future", "plan", "plans", "someday", "ambition"})),
    ("interests", frozenset({"hobby", "hobbies", "fun", "enjoy", "favorite", "music", "movie",
                             "movies", "book", "books", "game", "games", "travel", "cooking",
                             "painting", "reading"})),
)

DEFAULT_CATEGORY = "general"


def tokenize(text: str) -> List[str]:
    """Lowercased word tokens with stopwords and very short words removed."""
    if not text:
        return []
    out = []
    for tok in _TOKEN_RE.findall(str(text).lower()):
        tok = tok.strip("'")
        if len(tok) < MIN_TOKEN_LEN or tok in STOPWORDS:
            continue
        out.append(tok)
    return out


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> List[str]:
    """Deduplicated tokens in first-occurrence order, capped at `limit`."""
    seen: dict[str, None] = {}
    for tok in tokenize(text):
        if tok not in seen:
            seen[tok] = None
            if len(seen) >= limit:
                break
    return list(seen)


def categorize(tokens: Iterable[str]) -> str:
    """
    Category with the most keyword hits; earlier table entries win ties.
    Falls back to "general" when nothing matches.
    """
    counts = {name: 0 for name, _ in CATEGORY_KEYWORDS}
    for tok in tokens:
        for name, words in CATEGORY_KEYWORDS:
            if tok in words:
                counts[name] += 1

    best, best_n = DEFAULT_CATEGORY, 0
    for name, _ in CATEGORY_KEYWORDS:
        if counts[name] > best_n:
            best, best_n = name, counts[name]
    return best
