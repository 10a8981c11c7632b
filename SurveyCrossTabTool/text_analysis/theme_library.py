"""
Keyword theme library for open-ended survey responses.

Both the open-ended cross-tab and the keyword strategy of OpenEndCoder
read this single table, so a response always lands in the same theme.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from ..descriptive_analysis.univariate_stats import percentage_of

OTHER_THEME = 'Other'


@dataclass(frozen=True)
class ThemeDefinition:
    """A named theme and the keywords that signal it."""
    name: str
    description: str
    keywords: tuple

    def count_hits(self, lower_text: str) -> int:
        """Count how many keywords occur in already-lowercased text."""
        return sum(1 for keyword in self.keywords if keyword in lower_text)


THEME_LIBRARY = (
    ThemeDefinition(
        'Price/Cost/Value',
        'Comments about pricing, cost, and value for money',
        ('price', 'cost', 'cheap', 'expensive', 'affordable', 'budget', 'money', 'value',
         'worth', 'pricing', 'fee', 'charge', 'rate', 'economical', 'inexpensive')
    ),
    ThemeDefinition(
        'Quality/Performance',
        'Comments about product or service quality and performance',
        ('quality', 'good', 'bad', 'excellent', 'poor', 'high-quality', 'low-quality',
         'performance', 'reliable', 'durable', 'effective', 'efficient', 'superior')
    ),
    ThemeDefinition(
        'Customer Service',
        'Comments about customer service and staff interactions',
        ('service', 'staff', 'customer', 'help', 'support', 'friendly', 'rude',
         'assistance', 'representative', 'team', 'personnel', 'helpful', 'professional')
    ),
    ThemeDefinition(
        'Location/Accessibility',
        'Comments about location and accessibility',
        ('location', 'close', 'near', 'far', 'convenient', 'accessible', 'parking',
         'distance', 'proximity', 'nearby', 'remote', 'central', 'easy to find')
    ),
    ThemeDefinition(
        'Product Features',
        'Comments about product features and functionality',
        ('product', 'feature', 'function', 'design', 'style', 'variety', 'selection',
         'options', 'functionality', 'capability', 'specification', 'attribute')
    ),
    ThemeDefinition(
        'User Experience',
        'Comments about the overall experience and atmosphere',
        ('experience', 'feel', 'atmosphere', 'environment', 'comfortable', 'pleasant',
         'enjoyable', 'satisfaction', 'impression', 'usability', 'interface')
    ),
    ThemeDefinition(
        'Speed/Efficiency',
        'Comments about speed, timing, and efficiency',
        ('time', 'fast', 'slow', 'quick', 'wait', 'delay', 'speed', 'efficient',
         'prompt', 'rapid', 'immediate', 'timely', 'responsive')
    ),
    ThemeDefinition(
        'Recommendation/Loyalty',
        'Comments about recommending, trust, and repeat business',
        ('recommend', 'suggest', 'refer', 'tell', 'friends', 'family',
         'loyalty', 'trust', 'confidence', 'satisfaction', 'repeat')
    ),
    ThemeDefinition(
        'Communication',
        'Comments about communication and information clarity',
        ('communication', 'information', 'clear', 'confusing', 'explanation',
         'instructions', 'guidance', 'feedback', 'response', 'contact')
    ),
    ThemeDefinition(
        'Convenience/Ease',
        'Comments about convenience and ease of use',
        ('convenient', 'easy', 'simple', 'straightforward', 'hassle',
         'complicated', 'difficult', 'user-friendly', 'intuitive')
    ),
)


def match_theme(text: str, library=THEME_LIBRARY) -> Optional[int]:
    """
    Find the theme with the most keyword hits.

    Returns the index of the winning theme in ``library`` (ties go to the
    earlier theme) or None when no keyword occurs in the text.
    """
    lower_text = text.lower()
    best_index = None
    max_hits = 0
    for index, theme in enumerate(library):
        hits = theme.count_hits(lower_text)
        if hits > max_hits:
            max_hits = hits
            best_index = index
    return best_index


def theme_for_keyword(keyword: str, library=THEME_LIBRARY) -> Optional[str]:
    """Name of the first theme with a keyword contained in ``keyword``."""
    for theme in library:
        if any(theme_keyword in keyword for theme_keyword in theme.keywords):
            return theme.name
    return None


def extract_themes(responses: List[str], max_samples: int = 3) -> List[Dict]:
    """
    Count keyword themes across a list of responses.

    Unmatched responses are counted under ``"Other"``. Themes without
    responses are dropped and the rest are sorted by count, descending.
    """
    valid_responses = [r.strip() for r in responses if isinstance(r, str) and r.strip()]
    if not valid_responses:
        return []

    names = [theme.name for theme in THEME_LIBRARY] + [OTHER_THEME]
    counts = {name: 0 for name in names}
    samples: Dict[str, List[str]] = {name: [] for name in names}

    for response in valid_responses:
        index = match_theme(response)
        name = OTHER_THEME if index is None else THEME_LIBRARY[index].name
        counts[name] += 1
        if len(samples[name]) < max_samples:
            samples[name].append(response)

    themes = [
        {
            'theme': name,
            'count': counts[name],
            'percentage': percentage_of(counts[name], len(valid_responses)),
            'samples': samples[name]
        }
        for name in names if counts[name] > 0
    ]
    return sorted(themes, key=lambda item: item['count'], reverse=True)
