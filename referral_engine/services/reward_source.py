"""Typed reward source and dedup key.

Rewards persist their source as a ``(source_type, source_id)`` column pair and
their dedup key as a ``"<kind>:<value>"`` string. These helpers are the only
place that converts between the columns and the typed values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from referral_engine.core.enums import DedupKind, RewardSourceType


@dataclass(frozen=True)
class ReferralSource:
    referral_id: str


@dataclass(frozen=True)
class CampaignSource:
    campaign_id: str


@dataclass(frozen=True)
class MilestoneSource:
    milestone: int


@dataclass(frozen=True)
class ManualSource:
    pass


RewardSource = Union[ReferralSource, CampaignSource, MilestoneSource, ManualSource]


def source_to_columns(source: RewardSource) -> Tuple[RewardSourceType, Optional[str]]:
    if isinstance(source, ReferralSource):
        return RewardSourceType.REFERRAL, source.referral_id
    if isinstance(source, CampaignSource):
        return RewardSourceType.CAMPAIGN, source.campaign_id
    if isinstance(source, MilestoneSource):
        return RewardSourceType.MILESTONE, str(source.milestone)
    if isinstance(source, ManualSource):
        return RewardSourceType.MANUAL, None
    raise TypeError(f"Unsupported reward source: {source!r}")


def source_from_columns(
    source_type: Union[RewardSourceType, str], source_id: Optional[str]
) -> RewardSource:
    kind = RewardSourceType(source_type)
    if kind is RewardSourceType.REFERRAL:
        return ReferralSource(referral_id=_require(source_id, kind))
    if kind is RewardSourceType.CAMPAIGN:
        return CampaignSource(campaign_id=_require(source_id, kind))
    if kind is RewardSourceType.MILESTONE:
        return MilestoneSource(milestone=int(_require(source_id, kind)))
    if kind is RewardSourceType.MANUAL:
        return ManualSource()
    raise ValueError(f"Unknown reward source type: {source_type!r}")  # pragma: no cover


def _require(source_id: Optional[str], kind: RewardSourceType) -> str:
    if not source_id:
        raise ValueError(f"Reward source {kind.value} requires a source id")
    return source_id


@dataclass(frozen=True)
class DedupKey:
    """Per-recipient uniqueness key for a reward."""

    kind: DedupKind
    value: str

    def encode(self) -> str:
        return f"{self.kind.value}:{self.value}"

    @classmethod
    def decode(cls, raw: str) -> "DedupKey":
        kind, sep, value = raw.partition(":")
        if not sep or not value:
            raise ValueError(f"Malformed dedup key: {raw!r}")
        return cls(kind=DedupKind(kind), value=value)

    @classmethod
    def for_referral(cls, referral_id: str) -> "DedupKey":
        return cls(DedupKind.REFERRAL, referral_id)

    @classmethod
    def for_milestone(cls, milestone: int) -> "DedupKey":
        return cls(DedupKind.MILESTONE, str(milestone))

    @classmethod
    def for_campaign(cls, campaign_id: str) -> "DedupKey":
        return cls(DedupKind.CAMPAIGN, campaign_id)

    @classmethod
    def first_time(cls) -> "DedupKey":
        return cls(DedupKind.LOYALTY, "first_time")


__all__ = [
    "CampaignSource",
    "DedupKey",
    "ManualSource",
    "MilestoneSource",
    "ReferralSource",
    "RewardSource",
    "source_from_columns",
    "source_to_columns",
]
