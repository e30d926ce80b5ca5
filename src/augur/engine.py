"""
Prediction Engine

Orchestrates one prediction request: snapshot the symbol's buffer, run the
local analysis pipeline (indicators, regime, patterns, timeframes, volume,
statistical signal), ask the external inference service for an opinion
within a time bound, combine, size and gate the result into a
TradingDirective.

Only invalid inputs raise to the caller. Inference failures, timeouts and
cancellations all degrade to the statistical-only path.
"""

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Sequence, Union

from .config import Config
from .config_manager import ConfigManager, get_config_manager
from .data.buffer import BufferManager, BufferSnapshot, candles_from_ticks
from .ensemble.combiner import CombinationResult, EnsembleCombiner
from .ensemble.gate import (
    REJECTED_CONFIDENCE,
    GateDecision,
    ValidationGate,
    fallback_levels,
    fallback_position,
    rejected_levels,
)
from .ensemble.risk import RiskLevelsSizer, RiskProfile
from .exceptions import InferenceError, InsufficientDataError, InvalidMarketDataError
from .indicators.engine import IndicatorEngine
from .indicators.regime import RegimeClassifier
from .inference.client import HttpInferenceClient, InferenceProvider
from .inference.parser import parse_inference_response
from .logger import configure_logging, get_logger, get_prediction_adapter
from .models.features import MarketFeatures
from .models.market_data import Candle, Timeframe
from .models.patterns import PatternAnalysis
from .models.signals import (
    DirectiveMode,
    ExternalOpinion,
    GateState,
    PredictionSignal,
    TradingDirective,
)
from .models.symbols import get_symbol_spec
from .models.timeframes import MultiTimeframeAnalysis
from .models.volume import VolumeAnalysis
from .strategies.narrative_generator import PromptBuilder
from .strategies.patterns.recognizer import PatternRecognizer
from .strategies.statistical_signal import StatisticalSignalGenerator
from .strategies.timeframe_analyzer import MultiTimeframeAnalyzer
from .strategies.volume_analyzer import VolumeAnalyzer


logger = get_logger(__name__)

# MACD slow + signal for the default parameter row
FULL_INDICATOR_HISTORY = 35


@dataclass
class SnapshotAnalysis:
    """Everything the local pipeline derives from one snapshot."""
    candles: List[Candle]
    features: MarketFeatures
    patterns: PatternAnalysis
    volume: VolumeAnalysis
    multi_timeframe: MultiTimeframeAnalysis
    statistical: PredictionSignal
    warnings: List[str] = field(default_factory=list)
    data_quality_ok: bool = True


class PredictionEngine:
    """
    Ensemble prediction engine.

    Example:
        engine = PredictionEngine(Config.load_from_env())
        engine.buffers.extend_candles(candles)
        directive = await engine.predict("R_75", "5m", Decimal("512.34"))
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        buffer_manager: Optional[BufferManager] = None,
        provider: Optional[InferenceProvider] = None,
        config_manager: Optional[ConfigManager] = None,
    ):
        """
        Args:
            config: Runtime configuration, defaults to Config()
            buffer_manager: Shared buffers, a new one is created if omitted
            provider: External inference provider; when omitted an HTTP
                client is built if an endpoint is configured
            config_manager: JSON tunables, defaults to the global manager
        """
        self.config = config or Config()
        configure_logging(
            level=self.config.logging.level,
            log_file=self.config.logging.file_path,
            max_size=self.config.logging.max_size,
            backup_count=self.config.logging.backup_count,
        )
        tunables = config_manager or get_config_manager()
        allow_unknown = self.config.engine.allow_unknown_symbols

        self.buffers = buffer_manager or BufferManager(
            max_ticks=self.config.buffer.max_ticks,
            max_candles=self.config.buffer.max_candles,
        )
        if provider is None and self.config.inference.enabled:
            provider = HttpInferenceClient(self.config.inference)
        self.provider = provider
        self.inference_timeout = self.config.inference.timeout_seconds

        self.profile = RiskProfile.load(self.config.engine.risk_profile, tunables)
        self.allow_unknown_symbols = allow_unknown
        self.max_price_deviation = tunables.get_float('engine', 'gate', 'max_price_deviation', default=0.05)

        self.indicator_engine = IndicatorEngine(tunables, allow_unknown)
        self.regime_classifier = RegimeClassifier(tunables, allow_unknown)
        self.pattern_recognizer = PatternRecognizer(config_manager=tunables)
        self.timeframe_analyzer = MultiTimeframeAnalyzer(tunables)
        self.volume_analyzer = VolumeAnalyzer(tunables)
        self.statistical = StatisticalSignalGenerator()
        self.prompt_builder = PromptBuilder()
        self.combiner = EnsembleCombiner(self.profile, tunables)
        self.sizer = RiskLevelsSizer(self.profile, allow_unknown)
        self.gate = ValidationGate(self.profile)

        self._inflight: Dict[str, asyncio.Task] = {}

        logger.info(
            f"Prediction engine ready: profile={self.profile.name}, "
            f"external={'on' if self.provider is not None else 'off'}"
        )

    # -- Input validation -------------------------------------------------

    @staticmethod
    def _validate_timeframe(timeframe: Union[str, Timeframe]) -> Timeframe:
        try:
            return Timeframe(timeframe)
        except ValueError as e:
            valid = ", ".join(t.value for t in Timeframe)
            raise InvalidMarketDataError(f"Unknown timeframe '{timeframe}', expected one of {valid}") from e

    @staticmethod
    def _validate_price(price: Union[Decimal, float, int, str]) -> Decimal:
        try:
            value = Decimal(str(price))
        except (InvalidOperation, ValueError) as e:
            raise InvalidMarketDataError(f"Invalid current price: {price!r}") from e
        if not value.is_finite() or value <= 0:
            raise InvalidMarketDataError(f"Current price must be positive and finite, got {price!r}")
        return value

    # -- Local analysis ---------------------------------------------------

    def analyze(self, snapshot: BufferSnapshot, current_price: Decimal) -> SnapshotAnalysis:
        """
        Run the local pipeline over a snapshot.

        Candles come from the buffer; when it only holds ticks they are
        bucketed into one-minute candles.
        """
        warnings = []
        candles: Sequence[Candle] = snapshot.candles
        if not candles:
            candles = candles_from_ticks(snapshot.ticks, Timeframe.ONE_MINUTE.seconds)
            warnings.append("Candles built from ticks")
        candles = list(candles)
        if len(candles) < self.config.engine.min_candles:
            raise InsufficientDataError(
                f"{snapshot.symbol}: {len(candles)} candles, at least {self.config.engine.min_candles} required"
            )

        if len(candles) < FULL_INDICATOR_HISTORY:
            warnings.append(f"Only {len(candles)} candles, some indicators use neutral defaults")
        if all(c.volume is None for c in candles):
            warnings.append("No volume data, volume analysis uses defaults")

        data_quality_ok = True
        last_close = candles[-1].close
        deviation = abs(current_price - last_close) / last_close
        if deviation > Decimal(str(self.max_price_deviation)):
            warnings.append(f"Current price deviates {float(deviation):.2%} from the last close")
            data_quality_ok = False

        indicators = self.indicator_engine.compute(candles, snapshot.symbol)
        features = self.regime_classifier.features(
            indicators,
            snapshot.symbol,
            ticks_since_spike=snapshot.ticks_since_spike,
            as_of=snapshot.latest_timestamp,
        )

        return SnapshotAnalysis(
            candles=candles,
            features=features,
            patterns=self.pattern_recognizer.analyze(candles),
            volume=self.volume_analyzer.analyze(candles),
            multi_timeframe=self.timeframe_analyzer.analyze(candles, self.config.engine.mtf_timeframes),
            statistical=self.statistical.generate(indicators),
            warnings=warnings,
            data_quality_ok=data_quality_ok,
        )

    # -- External opinion -------------------------------------------------

    async def _external_opinion(self, symbol: str, prompt: str, log) -> Optional[ExternalOpinion]:
        """
        Ask the provider for an opinion within the time bound.

        Returns None on timeout, cancellation, inference errors and
        unparseable answers. Cancelling the caller cancels the request too.
        """
        if self.provider is None:
            return None

        task = asyncio.ensure_future(self.provider.complete(prompt))
        self._inflight[symbol] = task
        try:
            done, _ = await asyncio.wait({task}, timeout=self.inference_timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._inflight.get(symbol) is task:
                del self._inflight[symbol]

        if not done:
            task.cancel()
            log.warning(f"External inference timed out after {self.inference_timeout}s")
            return None
        if task.cancelled():
            log.warning("External inference cancelled")
            return None

        error = task.exception()
        if isinstance(error, InferenceError):
            log.warning(f"External inference failed: {error}")
            return None
        if error is not None:
            raise error

        try:
            opinion = parse_inference_response(task.result())
        except InferenceError as e:
            log.warning(f"Unusable external response: {e}")
            return None

        log.debug(f"External opinion {opinion.signal.direction.value} @ {opinion.signal.confidence:.2f}")
        return opinion

    def cancel_inference(self, symbol: str) -> bool:
        """
        Cancel the in-flight inference request for a symbol.

        The pending prediction continues without an external opinion.
        Returns True when a request was cancelled.
        """
        task = self._inflight.get(symbol.upper().strip())
        if task is None or task.done():
            return False
        task.cancel()
        logger.info(f"{symbol}: inference cancelled on request")
        return True

    # -- Prediction -------------------------------------------------------

    async def predict(
        self,
        symbol: str,
        timeframe: Union[str, Timeframe],
        current_price: Union[Decimal, float, int, str],
    ) -> TradingDirective:
        """
        Produce a trading directive for a symbol.

        Args:
            symbol: Instrument symbol (e.g. 'R_75', 'BOOM1000')
            timeframe: Prediction timeframe ('1m', '5m', '15m', '30m', '1h')
            current_price: Entry reference price

        Returns:
            TradingDirective, VALID or REJECTED

        Raises:
            InvalidMarketDataError: bad price or unknown timeframe
            UnknownSymbolError: unknown symbol with defaults disabled
            InsufficientDataError: nothing buffered for the symbol, or fewer
                candles than the configured minimum
        """
        tf = self._validate_timeframe(timeframe)
        entry = self._validate_price(current_price)
        symbol = get_symbol_spec(symbol, allow_unknown=self.allow_unknown_symbols).symbol

        snapshot = self.buffers.snapshot(symbol)
        if snapshot.is_empty:
            raise InsufficientDataError(f"No market data buffered for {symbol}")

        log = get_prediction_adapter(symbol=symbol, timeframe=tf.value)
        analysis = self.analyze(snapshot, entry)

        prompt = self.prompt_builder.build(
            symbol,
            tf.value,
            entry,
            analysis.features,
            patterns=analysis.patterns,
            volume=analysis.volume,
            multi_timeframe=analysis.multi_timeframe,
            statistical=analysis.statistical,
        )
        opinion = await self._external_opinion(symbol, prompt, log)

        combination = self.combiner.combine(
            analysis.statistical,
            opinion.signal if opinion is not None else None,
            analysis.features.indicators,
        )
        directive = self._build_directive(symbol, tf, entry, analysis, combination, snapshot)

        log.info(
            f"{directive.direction.value} {directive.gate_state.value} ({directive.mode.value}) "
            f"conf={directive.confidence:.3f} RR={directive.risk_reward_ratio:.2f} "
            f"size={directive.position_size_fraction:.3f}"
        )
        return directive

    def predict_sync(
        self,
        symbol: str,
        timeframe: Union[str, Timeframe],
        current_price: Union[Decimal, float, int, str],
    ) -> TradingDirective:
        """Blocking wrapper around predict()."""
        return asyncio.run(self.predict(symbol, timeframe, current_price))

    def _build_directive(
        self,
        symbol: str,
        timeframe: Timeframe,
        entry: Decimal,
        analysis: SnapshotAnalysis,
        combination: CombinationResult,
        snapshot: BufferSnapshot,
    ) -> TradingDirective:
        features = analysis.features
        signal = combination.signal
        direction = signal.direction
        volatility = self.sizer.volatility_profile(symbol, features)

        levels = None
        price_targets = None
        success_probability = self.sizer.success_probability(signal.confidence, volatility)

        if combination.external_used:
            mode = DirectiveMode.ENSEMBLE
            position = self.profile.min_position
            if direction.sign:
                sizing = self.sizer.size(
                    entry,
                    direction,
                    signal.confidence,
                    features,
                    symbol,
                    timeframe.value,
                    timeframe_confluence=analysis.multi_timeframe.confluence,
                )
                levels = sizing.levels
                position = sizing.position_size_fraction
                price_targets = sizing.price_targets
                success_probability = sizing.success_probability
        else:
            mode = DirectiveMode.STATISTICAL_FALLBACK
            position = fallback_position(features.regime.confluence_score, self.profile)
            if direction.sign:
                levels = fallback_levels(entry, direction, symbol)
                price_targets = self.sizer.price_targets(entry, direction, volatility)

        decision: GateDecision = self.gate.evaluate(symbol, combination, levels, analysis.data_quality_ok)

        confidence = signal.confidence
        rationale = signal.rationale
        if not decision.is_valid:
            mode = DirectiveMode.REJECTED
            levels = rejected_levels(entry, direction, self.profile, symbol)
            confidence = REJECTED_CONFIDENCE
            position = self.profile.min_position
            price_targets = None
            success_probability = REJECTED_CONFIDENCE
            rationale = f"Rejected: {', '.join(r.value for r in decision.reasons)}. {signal.rationale}".strip()

        return TradingDirective(
            symbol=symbol,
            timeframe=timeframe.value,
            direction=direction,
            confidence=confidence,
            entry_price=levels.entry_price,
            stop_loss=levels.stop_loss,
            take_profit=levels.take_profit,
            risk_reward_ratio=levels.risk_reward_ratio,
            max_drawdown_pips=levels.max_drawdown_pips,
            target_pips=levels.target_pips,
            position_size_fraction=position,
            gate_state=GateState.VALID if decision.is_valid else GateState.REJECTED,
            mode=mode,
            rejection_reasons=decision.reasons,
            rationale=rationale,
            price_targets=price_targets,
            success_probability=success_probability,
            market_regime=features.regime.overall_regime,
            confluence_score=features.regime.confluence_score,
            external_opinion_used=combination.external_used,
            data_quality_warnings=analysis.warnings,
            as_of=snapshot.latest_timestamp,
        )
