"""Topic tagging and query expansion tables.

Both tables are static data. Adding a topic or a synonym is a table edit; the
matching code below never needs to change.
"""

import re
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple


class Topic(str, Enum):
    GAMING = "gaming"
    STARTUP = "startup"
    RESTAURANT = "restaurant"
    TECH = "tech"
    INVESTING = "investing"
    MARKETING = "marketing"
    REAL_ESTATE = "real-estate"
    EV = "ev"


TOPIC_RULES_VERSION = "2"

# Case-insensitive, presence only
TOPIC_RULES: Dict[Topic, str] = {
    Topic.GAMING: r"\b(?:gaming|games?|gamers?|esports|mobile gaming|pc gaming)\b",
    Topic.STARTUP: r"\b(?:start-?ups?|business(?:es)?|entrepreneurs?(?:hip)?|compan(?:y|ies)|ventures?|founders?)\b",
    Topic.RESTAURANT: r"\b(?:restaurants?|food|dining|kitchens?|chefs?|menus?)\b",
    Topic.TECH: r"\b(?:tech|technology|software|coding|programming|ai|saas)\b",
    Topic.INVESTING: r"\b(?:invest(?:ing|ment|ments|ors?)?|finance|financial|money|funding|fundrais(?:e|ing)|vc|valuation)\b",
    Topic.MARKETING: r"\b(?:marketing|brands?|branding|advertising|content|social media|influencers?)\b",
    Topic.REAL_ESTATE: r"\b(?:real[\s-]estate|property|properties|housing|construction)\b",
    Topic.EV: r"\b(?:evs?|electric vehicles?|automotive|cars?|vehicles?|batter(?:y|ies))\b",
}

QUERY_EXPANSIONS: Dict[str, List[str]] = {
    "edtech": ["education technology", "online learning", "educational software", "learning platforms"],
    "fintech": ["financial technology", "digital payments", "banking technology", "financial services"],
    "games": ["gaming", "video games", "mobile games", "game development", "esports"],
    "startup": ["business", "entrepreneur", "company", "venture", "new business"],
    "restaurant": ["food business", "dining", "food service", "hospitality", "culinary"],
    "build": ["create", "develop", "start", "establish", "launch", "make"],
    "opportunities": ["chances", "prospects", "possibilities", "potential", "options"],
}


class TopicTagger:
    def __init__(self, rules: Optional[Mapping[Topic, str]] = None) -> None:
        table = TOPIC_RULES if rules is None else rules
        self._patterns: List[Tuple[Topic, "re.Pattern[str]"]] = [
            (topic, re.compile(pattern, re.IGNORECASE)) for topic, pattern in table.items()
        ]

    def tag(self, text: str) -> FrozenSet[Topic]:
        if not text:
            return frozenset()
        found = [topic for topic, pat in self._patterns if pat.search(text)]
        return frozenset(found)


def expand_query(query: str, expansions: Optional[Mapping[str, List[str]]] = None) -> str:
    """Append synonyms for every expansion key found in the query.

    Returns the query untouched when nothing matches.
    """
    table = QUERY_EXPANSIONS if expansions is None else expansions
    lowered = query.lower()
    extra: List[str] = []
    for key, synonyms in table.items():
        if key in lowered:
            extra.extend(synonyms)
    if not extra:
        return query
    return query + " " + " ".join(extra)
