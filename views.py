import time
from typing import Callable, List, Optional

from schemas import Campaign, CampaignCard, CampaignStatus, CampaignWithIdea, Idea
from stores import CampaignStore, IdeaStore

SECONDS_PER_DAY = 86_400


def now_secs() -> int:
    return int(time.time())


def days_left(end_date: int, now: int) -> int:
    """Whole days from ``now`` to ``end_date``, truncated toward zero."""
    delta = end_date - now
    days = abs(delta) // SECONDS_PER_DAY
    return days if delta >= 0 else -days


def to_card(campaign: Campaign, idea: Idea, now: int) -> CampaignCard:
    return CampaignCard(
        id=campaign.id,
        idea_id=campaign.idea_id,
        title=idea.title,
        category=idea.category,
        amount_raised=campaign.amount_raised,
        goal=campaign.goal,
        end_date=campaign.end_date,
        days_left=days_left(campaign.end_date, now),
    )


def classify(card: CampaignCard, now: int) -> CampaignStatus:
    if card.days_left >= 0 and card.end_date >= now:
        return CampaignStatus.active
    return CampaignStatus.ended


class ViewComposer:
    """Joins campaigns with their ideas. Never writes."""

    def __init__(self, campaigns: CampaignStore, ideas: IdeaStore, clock: Callable[[], int] = now_secs):
        self.campaigns = campaigns
        self.ideas = ideas
        self.clock = clock

    def _cards(self, now: int) -> List[CampaignCard]:
        cards = []
        for campaign in self.campaigns.list_campaigns():
            idea = self.ideas.get_idea(campaign.idea_id)
            if idea is None:
                continue
            cards.append(to_card(campaign, idea, now))
        return cards

    def get_campaign_cards(self) -> List[CampaignCard]:
        return self._cards(self.clock())

    def get_campaign_cards_by_status(self, status: CampaignStatus) -> List[CampaignCard]:
        now = self.clock()
        return [card for card in self._cards(now) if classify(card, now) == status]

    def get_campaign_with_idea(self, campaign_id: int) -> Optional[CampaignWithIdea]:
        campaign = self.campaigns.get_campaign(campaign_id)
        if campaign is None:
            return None
        idea = self.ideas.get_idea(campaign.idea_id)
        if idea is None:
            return None
        return CampaignWithIdea(campaign=to_card(campaign, idea, self.clock()), idea=idea)
