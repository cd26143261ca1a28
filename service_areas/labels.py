"""
Display labels for resolved service-area entries
"""
import re
from typing import Optional

from .normalizer import is_zip

US_STATE_ABBREVIATIONS = {
    'Alabama': 'AL', 'Alaska': 'AK', 'Arizona': 'AZ', 'Arkansas': 'AR', 'California': 'CA',
    'Colorado': 'CO', 'Connecticut': 'CT', 'Delaware': 'DE', 'Florida': 'FL', 'Georgia': 'GA',
    'Hawaii': 'HI', 'Idaho': 'ID', 'Illinois': 'IL', 'Indiana': 'IN', 'Iowa': 'IA',
    'Kansas': 'KS', 'Kentucky': 'KY', 'Louisiana': 'LA', 'Maine': 'ME', 'Maryland': 'MD',
    'Massachusetts': 'MA', 'Michigan': 'MI', 'Minnesota': 'MN', 'Mississippi': 'MS', 'Missouri': 'MO',
    'Montana': 'MT', 'Nebraska': 'NE', 'Nevada': 'NV', 'New Hampshire': 'NH', 'New Jersey': 'NJ',
    'New Mexico': 'NM', 'New York': 'NY', 'North Carolina': 'NC', 'North Dakota': 'ND', 'Ohio': 'OH',
    'Oklahoma': 'OK', 'Oregon': 'OR', 'Pennsylvania': 'PA', 'Rhode Island': 'RI', 'South Carolina': 'SC',
    'South Dakota': 'SD', 'Tennessee': 'TN', 'Texas': 'TX', 'Utah': 'UT', 'Vermont': 'VT',
    'Virginia': 'VA', 'Washington': 'WA', 'West Virginia': 'WV', 'Wisconsin': 'WI', 'Wyoming': 'WY',
    'District of Columbia': 'DC', 'Puerto Rico': 'PR',
}

POSTAL_PART_RE = re.compile(r'^\d{5}(?:-\d{4})?$')
STATE_ABBR_RE = re.compile(r'\b[A-Z]{2}\b')


def state_abbreviation(part: str) -> Optional[str]:
    """Two-letter state code for a display-name part, if it names a state."""
    if part in US_STATE_ABBREVIATIONS:
        return US_STATE_ABBREVIATIONS[part]
    if part in US_STATE_ABBREVIATIONS.values():
        return part
    match = STATE_ABBR_RE.search(part)
    if match and match.group(0) in US_STATE_ABBREVIATIONS.values():
        return match.group(0)
    return None


def build_label(token: str, display_name: Optional[str]) -> str:
    """
    Build a "City ST ZIP" label for ZIP entries.

    Place-name entries keep the text the user typed. ZIP entries degrade to
    "City ZIP" and finally the bare ZIP as parts of the provider's display
    name are missing.
    """
    if not is_zip(token):
        return token

    parts = [p.strip() for p in (display_name or '').split(',')]
    parts = [p for p in parts if p and p != token and not POSTAL_PART_RE.match(p)]
    if not parts:
        return token

    city = parts[0]
    state = None
    for part in parts[1:]:
        state = state_abbreviation(part)
        if state:
            break

    if city and state:
        return f"{city} {state} {token}"
    if city:
        return f"{city} {token}"
    return token
