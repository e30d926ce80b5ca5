"""
Statistical Signal Generator

Local directional opinion built from indicator extremes. Each extreme
casts one vote with a fixed confidence:

    RSI < 30 -> UP 0.70          RSI > 70 -> DOWN 0.70
    MACD histogram > 0 -> UP 0.60  < 0 -> DOWN 0.60
    Bollinger position < 0.1 -> UP 0.65   > 0.9 -> DOWN 0.65
    Stochastic < 20 -> UP 0.65   > 80 -> DOWN 0.65

The direction with more votes wins, then the larger summed confidence.
Confidence is the winners' mean confidence times their share of votes.
"""

from typing import List, Tuple

from ..logger import get_logger
from ..models.features import IndicatorSet
from ..models.signals import Direction, PredictionSignal, SignalSource


logger = get_logger(__name__)

Vote = Tuple[Direction, float, str]


class StatisticalSignalGenerator:
    """Majority vote over indicator extremes."""

    rsi_oversold = 30.0
    rsi_overbought = 70.0
    bollinger_low = 0.1
    bollinger_high = 0.9
    stochastic_low = 20.0
    stochastic_high = 80.0

    def votes(self, indicators: IndicatorSet) -> List[Vote]:
        """Every vote the indicator set casts."""
        votes: List[Vote] = []

        if indicators.rsi < self.rsi_oversold:
            votes.append((Direction.UP, 0.7, f"RSI oversold ({indicators.rsi:.1f})"))
        elif indicators.rsi > self.rsi_overbought:
            votes.append((Direction.DOWN, 0.7, f"RSI overbought ({indicators.rsi:.1f})"))

        if indicators.macd_histogram > 0:
            votes.append((Direction.UP, 0.6, "MACD histogram positive"))
        elif indicators.macd_histogram < 0:
            votes.append((Direction.DOWN, 0.6, "MACD histogram negative"))

        if indicators.bollinger_position < self.bollinger_low:
            votes.append((Direction.UP, 0.65, "Price at lower Bollinger band"))
        elif indicators.bollinger_position > self.bollinger_high:
            votes.append((Direction.DOWN, 0.65, "Price at upper Bollinger band"))

        if indicators.stochastic < self.stochastic_low:
            votes.append((Direction.UP, 0.65, f"Stochastic oversold ({indicators.stochastic:.1f})"))
        elif indicators.stochastic > self.stochastic_high:
            votes.append((Direction.DOWN, 0.65, f"Stochastic overbought ({indicators.stochastic:.1f})"))

        return votes

    def generate(self, indicators: IndicatorSet) -> PredictionSignal:
        """
        Produce the statistical opinion.

        Returns NEUTRAL at 0.5 when there are no votes or the vote is tied
        on both count and summed confidence.
        """
        votes = self.votes(indicators)
        if not votes:
            return PredictionSignal.neutral(SignalSource.STATISTICAL, "No indicator extremes")

        up = [v for v in votes if v[0] == Direction.UP]
        down = [v for v in votes if v[0] == Direction.DOWN]

        if len(up) != len(down):
            winners = up if len(up) > len(down) else down
        else:
            up_sum = sum(v[1] for v in up)
            down_sum = sum(v[1] for v in down)
            if up_sum == down_sum:
                return PredictionSignal.neutral(SignalSource.STATISTICAL, "Indicator votes are split")
            winners = up if up_sum > down_sum else down

        mean_confidence = sum(v[1] for v in winners) / len(winners)
        share = len(winners) / len(votes)
        confidence = mean_confidence * share

        signal = PredictionSignal(
            direction=winners[0][0],
            confidence=confidence,
            rationale="; ".join(v[2] for v in winners),
            source=SignalSource.STATISTICAL,
        )
        logger.debug(f"Statistical signal {signal.direction.value} @ {confidence:.3f} from {len(votes)} votes")
        return signal
