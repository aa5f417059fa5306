"""
Parsing and classification of `iwconfig` link status output.

Each field is extracted by its own FieldMatcher, so a missing or garbled
field never affects the others. Numeric fields are graded into a
QualityTier using fixed threshold tables and rendered as one summary line.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

TIMESTAMP_FORMAT = '%Y年%m月%d日 %H:%M:%S'
CLAUSE_SEPARATOR = '、'

# Frequencies below this many GHz belong to the 2.4GHz band
BAND_SPLIT_GHZ = 3.0


class QualityTier(Enum):
    """Qualitative grade attached to a link metric."""

    EXCELLENT = 'excellent'
    GOOD = 'good'
    FAIR = 'fair'
    WEAK = 'weak'
    VERY_WEAK = 'very weak'

    @property
    def label(self) -> str:
        return TIER_LABELS[self]


TIER_LABELS = {
    QualityTier.EXCELLENT: '優良',
    QualityTier.GOOD: '良好',
    QualityTier.FAIR: '普通',
    QualityTier.WEAK: '弱い',
    QualityTier.VERY_WEAK: '非常に弱い',
}


class FrequencyBand(Enum):
    BAND_2_4GHZ = '2.4GHz band'
    BAND_5GHZ = '5GHz band'

    @property
    def label(self) -> str:
        return '2.4GHz帯' if self is FrequencyBand.BAND_2_4GHZ else '5GHz帯'


# Closed (low, high) buckets checked in order; anything outside falls through.
# Note that strong readings above -30 dBm also fall through to VERY_WEAK.
SIGNAL_TIERS = (
    (-50, -30, QualityTier.EXCELLENT),
    (-60, -51, QualityTier.GOOD),
    (-70, -61, QualityTier.FAIR),
    (-80, -71, QualityTier.WEAK),
)

LINK_QUALITY_TIERS = (
    (80, 100, QualityTier.EXCELLENT),
    (60, 79, QualityTier.GOOD),
    (40, 59, QualityTier.FAIR),
)

# Minimum Mb/s for each tier, highest first
BIT_RATE_TIERS = (
    (100.0, QualityTier.EXCELLENT),
    (50.0, QualityTier.GOOD),
    (20.0, QualityTier.FAIR),
)


def _grade_closed(value: float, table, default: QualityTier) -> QualityTier:
    for low, high, tier in table:
        if low <= value <= high:
            return tier
    return default


def classify_band(frequency_ghz: float) -> FrequencyBand:
    if frequency_ghz < BAND_SPLIT_GHZ:
        return FrequencyBand.BAND_2_4GHZ
    return FrequencyBand.BAND_5GHZ


def classify_signal(signal_dbm: int) -> QualityTier:
    """Grade a signal level in dBm (more negative is weaker)."""
    return _grade_closed(signal_dbm, SIGNAL_TIERS, QualityTier.VERY_WEAK)


def link_quality_ratio(value: int, maximum: int) -> Optional[float]:
    """Return link quality as a percentage, or None when maximum is zero."""
    if maximum <= 0:
        return None
    return value / maximum * 100


def classify_link_quality(ratio: Optional[float]) -> QualityTier:
    """
    Grade a link quality percentage.

    Buckets are closed integer ranges, so a ratio that lands between two of
    them (79.5, for example) or above 100 grades as WEAK.
    """
    if ratio is None or math.isnan(ratio):
        return QualityTier.WEAK
    return _grade_closed(ratio, LINK_QUALITY_TIERS, QualityTier.WEAK)


def classify_bit_rate(bit_rate_mbps: float) -> QualityTier:
    for minimum, tier in BIT_RATE_TIERS:
        if bit_rate_mbps >= minimum:
            return tier
    return QualityTier.WEAK


@dataclass(frozen=True)
class FieldMatcher:
    """A single regex extraction with a converter for its captured groups."""

    name: str
    pattern: re.Pattern
    convert: Callable

    def match(self, text: str):
        """Return the converted value, or None if the field is absent."""
        found = self.pattern.search(text)
        if not found:
            return None
        return self.convert(*found.groups())


NETWORK_NAME = FieldMatcher('network_name', re.compile(r'ESSID:"(.+?)"'), str)
FREQUENCY = FieldMatcher('frequency_ghz', re.compile(r'Frequency:(\d+\.\d+) GHz'), float)
SIGNAL_LEVEL = FieldMatcher('signal_dbm', re.compile(r'Signal level=(-?\d+) dBm'), int)
LINK_QUALITY = FieldMatcher(
    'link_quality',
    re.compile(r'Link Quality=(\d+)/(\d+)'),
    lambda value, maximum: (int(value), int(maximum)),
)
BIT_RATE = FieldMatcher('bit_rate_mbps', re.compile(r'Bit Rate=(\d+\.?\d*) Mb/s'), float)

# Output clause order follows this tuple
MATCHERS = (NETWORK_NAME, FREQUENCY, SIGNAL_LEVEL, LINK_QUALITY, BIT_RATE)


def extract_fields(text: str, matchers=MATCHERS) -> dict:
    """Run every matcher over text, keeping only the fields that were found."""
    fields = {}
    for matcher in matchers:
        value = matcher.match(text)
        if value is not None:
            fields[matcher.name] = value
    return fields


@dataclass
class LinkSample:
    """One reading of the wireless link, built fresh for every iteration."""

    timestamp: datetime = field(default_factory=datetime.now)
    network_name: Optional[str] = None
    frequency_ghz: Optional[float] = None
    signal_dbm: Optional[int] = None
    link_quality: Optional[tuple[int, int]] = None
    bit_rate_mbps: Optional[float] = None

    @classmethod
    def from_output(cls, text: str, timestamp: Optional[datetime] = None) -> 'LinkSample':
        if timestamp is None:
            timestamp = datetime.now()
        return cls(timestamp=timestamp, **extract_fields(text))

    @property
    def band(self) -> Optional[FrequencyBand]:
        if self.frequency_ghz is None:
            return None
        return classify_band(self.frequency_ghz)

    @property
    def signal_tier(self) -> Optional[QualityTier]:
        if self.signal_dbm is None:
            return None
        return classify_signal(self.signal_dbm)

    @property
    def link_quality_percent(self) -> Optional[float]:
        if self.link_quality is None:
            return None
        return link_quality_ratio(*self.link_quality)

    @property
    def link_quality_tier(self) -> Optional[QualityTier]:
        if self.link_quality is None:
            return None
        return classify_link_quality(self.link_quality_percent)

    @property
    def bit_rate_tier(self) -> Optional[QualityTier]:
        if self.bit_rate_mbps is None:
            return None
        return classify_bit_rate(self.bit_rate_mbps)

    def clauses(self) -> list[str]:
        """Labeled, tier-annotated clauses for the fields that were found."""
        parts = []
        if self.network_name is not None:
            parts.append(f'ネットワーク名: {self.network_name}')
        if self.frequency_ghz is not None:
            parts.append(f'周波数帯: {self.frequency_ghz} GHz（{self.band.label}）')
        if self.signal_dbm is not None:
            parts.append(f'信号強度: {self.signal_dbm} dBm（{self.signal_tier.label}）')
        if self.link_quality is not None:
            value, maximum = self.link_quality
            parts.append(f'リンク品質: {value}/{maximum}（{self.link_quality_tier.label}）')
        if self.bit_rate_mbps is not None:
            parts.append(f'ビットレート: {self.bit_rate_mbps} Mb/s（{self.bit_rate_tier.label}）')
        return parts

    def format(self) -> str:
        timestamp = self.timestamp.strftime(TIMESTAMP_FORMAT)
        return f'{timestamp}  {CLAUSE_SEPARATOR.join(self.clauses())}'

    def to_dict(self) -> dict:
        return {
            'timestamp': self.timestamp.isoformat(),
            'network_name': self.network_name,
            'frequency_ghz': self.frequency_ghz,
            'band': self.band.value if self.band else None,
            'signal_dbm': self.signal_dbm,
            'signal_tier': self.signal_tier.value if self.signal_tier else None,
            'link_quality': list(self.link_quality) if self.link_quality else None,
            'link_quality_percent': self.link_quality_percent,
            'link_quality_tier': self.link_quality_tier.value if self.link_quality_tier else None,
            'bit_rate_mbps': self.bit_rate_mbps,
            'bit_rate_tier': self.bit_rate_tier.value if self.bit_rate_tier else None,
        }
