"""
Insight Generator: short observations derived from an AnalyticsSnapshot.
"""

from dataclasses import dataclass
from typing import List, Optional

from ..models.core import AnalyticsSnapshot, Insight, InsightType
from ..utils.config import AnalyticsConfig


@dataclass
class InsightThresholds:
    high_activity_ratio: float = 1.5
    positive_ratio: float = 0.7
    negative_ratio: float = 0.3

    @classmethod
    def from_config(cls, config: AnalyticsConfig) -> 'InsightThresholds':
        return cls(high_activity_ratio=config.high_activity_ratio,
                   positive_ratio=config.positive_ratio,
                   negative_ratio=config.negative_ratio)


def generate_insights(snapshot: AnalyticsSnapshot, thresholds: Optional[InsightThresholds] = None) -> List[Insight]:
    """Apply every insight rule to ``snapshot``.

    Rules are independent; all that apply fire, in a fixed order.
    """
    thresholds = thresholds or InsightThresholds()
    insights = []

    if snapshot.this_week > snapshot.average_per_week * thresholds.high_activity_ratio:
        insights.append(
            Insight(id='high_activity',
                    type=InsightType.POSITIVE,
                    title='High Memory Activity',
                    description=(f"You've been more active this week, creating {snapshot.this_week} memories "
                                 f'compared to your average of {round(snapshot.average_per_week)}.'),
                    action='Keep up the great work!'))

    if snapshot.this_week == 0:
        insights.append(
            Insight(id='no_activity',
                    type=InsightType.WARNING,
                    title='No Memories This Week',
                    description="You haven't created any memories this week. Try sharing something that happened recently!",
                    action='Add a memory now'))

    total_sentiment = sum(snapshot.sentiment_breakdown.values())
    if total_sentiment > 0:
        positive_ratio = snapshot.sentiment_breakdown.get('positive', 0) / total_sentiment
        if positive_ratio > thresholds.positive_ratio:
            insights.append(
                Insight(id='positive_sentiment',
                        type=InsightType.POSITIVE,
                        title='Positive Vibes',
                        description=f'{round(positive_ratio * 100)}% of your memories have positive sentiment.'))
        elif positive_ratio < thresholds.negative_ratio:
            insights.append(
                Insight(id='low_sentiment',
                        type=InsightType.WARNING,
                        title='Tough Times',
                        description='Your recent memories seem to have lower sentiment. Remember that difficult times pass.',
                        action='Consider reaching out to friends or family'))

    if snapshot.top_people:
        # top_people is already ordered by count with first-seen tie-break
        person, count = next(iter(snapshot.top_people.items()))
        insights.append(
            Insight(id='top_person',
                    type=InsightType.INFO,
                    title='Most Mentioned Person',
                    description=f"You've mentioned {person} in {count} memories. They seem important to you!"))

    insights.append(
        Insight(id='backup_reminder',
                type=InsightType.INFO,
                title='Backup Your Memories',
                description='Consider backing up your memories to keep them safe.',
                action='Set up backup'))

    return insights
