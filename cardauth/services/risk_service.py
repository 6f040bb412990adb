"""
Fraud risk scoring for login attempts.

The login path only ever calls ``RiskClassifier.score``. Training is a
separate lifecycle: ``DecisionTreeRiskClassifier.train`` is called at startup
(see ``build_risk_classifier``) or by an operator, never per request.
"""

from __future__ import annotations

import asyncio
import inspect
import ipaddress
import threading
import zlib
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, Awaitable, Iterable, Optional, Protocol, Union

from sklearn.tree import DecisionTreeClassifier

from cardauth.core.config import Settings
from cardauth.core.logging import get_logger
from cardauth.domain.entities import LoginFeatures, LoginRecord, RiskDecision
from cardauth.domain.errors import RiskClassifierError

logger = get_logger(__name__)


class RiskClassifier(Protocol):
    def score(self, features: LoginFeatures) -> Union[RiskDecision, Awaitable[RiskDecision]]:
        ...


class MalformedFeaturesError(ValueError):
    pass


def encode_features(features: LoginFeatures) -> list[int]:
    """Numeric vector ``[hour, ip, location]`` for the tree model."""
    hour = features.hour
    if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour <= 23:
        raise MalformedFeaturesError(f"hour out of range: {hour!r}")
    raw_ip = (features.ip_address or "").strip()
    if not raw_ip:
        raise MalformedFeaturesError("missing ip address")
    try:
        ip_value = int(ipaddress.ip_address(raw_ip)) % (2**32)
    except ValueError as exc:
        raise MalformedFeaturesError(f"unparsable ip address: {raw_ip!r}") from exc
    location = zlib.crc32((features.location or "").strip().lower().encode("utf-8"))
    return [hour, ip_value, location]


class StaticRiskClassifier:
    """Returns the same decision for every attempt."""

    def __init__(self, fraudulent: bool = False) -> None:
        self.fraudulent = fraudulent

    def score(self, features: LoginFeatures) -> RiskDecision:
        return RiskDecision(fraudulent=self.fraudulent, reason="static")


class DecisionTreeRiskClassifier:
    """scikit-learn decision tree over (hour, ip, location)."""

    def __init__(self, random_state: int = 0, max_depth: Optional[int] = None) -> None:
        self.random_state = random_state
        self.max_depth = max_depth
        self._model: Optional[DecisionTreeClassifier] = None
        self._lock = threading.Lock()

    @property
    def is_trained(self) -> bool:
        return self._model is not None

    def train(self, records: Iterable[LoginRecord]) -> int:
        X: list[list[int]] = []
        y: list[int] = []
        skipped = 0
        for record in records:
            features = LoginFeatures(
                hour=record.login_time_hour, ip_address=record.ip_address, location=record.location
            )
            try:
                X.append(encode_features(features))
            except MalformedFeaturesError:
                skipped += 1
                continue
            y.append(1 if record.is_fraudulent else 0)
        if not X:
            raise RiskClassifierError("no usable login records to train on")
        if len(set(y)) < 2:
            raise RiskClassifierError("training data needs both fraudulent and legitimate logins")

        model = DecisionTreeClassifier(random_state=self.random_state, max_depth=self.max_depth)
        model.fit(X, y)
        with self._lock:
            self._model = model
        logger.info("risk_model_trained", samples=len(X), skipped=skipped, fraudulent=sum(y))
        return len(X)

    def score(self, features: LoginFeatures) -> RiskDecision:
        with self._lock:
            model = self._model
        if model is None:
            raise RiskClassifierError("risk model has not been trained")
        try:
            vector = encode_features(features)
        except MalformedFeaturesError as exc:
            logger.warning("risk_features_malformed", error=str(exc))
            return RiskDecision(fraudulent=False, reason="malformed-features")
        try:
            prediction = model.predict([vector])
        except Exception as exc:
            raise RiskClassifierError("risk model prediction failed") from exc
        return RiskDecision(fraudulent=int(prediction[0]) == 1, reason="model")


class RiskGate:
    """Runs a classifier with a bounded timeout and applies the fail-open/closed policy."""

    def __init__(
        self,
        classifier: RiskClassifier,
        *,
        timeout_seconds: float = 2.0,
        fail_open: bool = False,
        max_workers: int = 4,
    ) -> None:
        self.classifier = classifier
        self.timeout_seconds = timeout_seconds
        self.fail_open = fail_open
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="risk-score")

    def _run(self, features: LoginFeatures) -> Any:
        result = self.classifier.score(features)
        if inspect.isawaitable(result):
            return asyncio.run(_drain(result))
        return result

    def _inconclusive(self, reason: str) -> RiskDecision:
        return RiskDecision(fraudulent=not self.fail_open, reason=reason)

    def evaluate(self, features: LoginFeatures) -> RiskDecision:
        future = self._executor.submit(self._run, features)
        try:
            result = future.result(timeout=self.timeout_seconds)
        except FuturesTimeoutError:
            future.cancel()
            logger.error("risk_score_timeout", timeout_seconds=self.timeout_seconds, fail_open=self.fail_open)
            return self._inconclusive("timeout")
        except RiskClassifierError as exc:
            logger.error("risk_score_unavailable", error=str(exc), fail_open=self.fail_open)
            return self._inconclusive("unavailable")
        except Exception:
            logger.exception("risk_score_failed", fail_open=self.fail_open)
            return self._inconclusive("error")

        if isinstance(result, RiskDecision):
            return result
        # tolerate classifiers that answer with a mapping such as {"fraudulent": True}
        if isinstance(result, dict) and "fraudulent" in result:
            return RiskDecision(fraudulent=bool(result["fraudulent"]), reason=str(result.get("reason", "")))
        logger.error("risk_score_unexpected_result", result_type=type(result).__name__)
        return self._inconclusive("bad-result")

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


async def _drain(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def build_risk_classifier(settings: Settings, login_records=None) -> RiskClassifier:
    """Build the configured classifier; ``decision_tree`` is trained once here."""
    if settings.risk_model == "decision_tree":
        classifier = DecisionTreeRiskClassifier()
        records = login_records.list_all() if login_records is not None else []
        try:
            classifier.train(records)
        except RiskClassifierError as exc:
            # untrained model raises on score, so the gate applies its fail policy
            logger.warning("risk_model_untrained", error=str(exc))
        return classifier
    if settings.risk_model != "static":
        logger.warning("risk_model_unknown", risk_model=settings.risk_model)
    return StaticRiskClassifier(fraudulent=False)
