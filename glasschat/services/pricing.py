import logging
from typing import NamedTuple

logger = logging.getLogger(__name__)

STANDARD_TIER = "standard"


class ModelPricing(NamedTuple):
    """USD per 1K tokens."""
    input: float
    output: float


FALLBACK_PRICING = ModelPricing(input=0.001, output=0.002)


def _table(value) -> dict:
    return value if isinstance(value, dict) else {}


class PricingTable:
    """Provider -> model -> rate lookup backed by the ``pricing`` config section.

    Only OpenAI publishes tiered rates (batch/flex/priority); a tier without an
    entry for the requested model falls through to the standard table. Unknown
    providers and models resolve to the fallback rate instead of raising, since
    price lists drift faster than this table is edited.
    """

    def __init__(self, config: dict | None = None):
        config = config if isinstance(config, dict) else {}
        self._providers: dict = _table(config.get("providers"))
        self._aliases: dict = {
            str(k).lower(): str(v).lower() for k, v in _table(config.get("aliases")).items()
        }
        self._fallback = self._parse(config.get("fallback")) or FALLBACK_PRICING
        self.last_updated: str = str(config.get("last_updated", ""))
        self.disclaimer: str = str(config.get("disclaimer", ""))

    @staticmethod
    def _parse(entry) -> ModelPricing | None:
        if not isinstance(entry, dict) or "input" not in entry or "output" not in entry:
            return None
        try:
            return ModelPricing(input=float(entry["input"]), output=float(entry["output"]))
        except (TypeError, ValueError):
            return None

    def normalize_provider(self, provider: str | None) -> str:
        name = (provider or "").strip().lower()
        return self._aliases.get(name, name)

    def get_model_pricing(
        self, provider: str | None, model: str | None, tier: str | None = None
    ) -> ModelPricing:
        name = self.normalize_provider(provider)
        provider_cfg = self._providers.get(name)
        if not isinstance(provider_cfg, dict):
            logger.debug(f"No pricing for provider '{provider}', using fallback")
            return self._fallback

        if name == "openai" and tier and tier.lower() != STANDARD_TIER:
            tier_table = _table(_table(provider_cfg.get("tiers")).get(tier.lower()))
            pricing = self._parse(tier_table.get(model))
            if pricing:
                return pricing

        pricing = self._parse(_table(provider_cfg.get("models")).get(model))
        if pricing:
            return pricing
        logger.debug(f"No pricing for {name}/{model}, using fallback")
        return self._fallback

    def to_dict(self) -> dict:
        return {
            "last_updated": self.last_updated,
            "disclaimer": self.disclaimer,
            "fallback": self._fallback._asdict(),
            "providers": self._providers,
        }
