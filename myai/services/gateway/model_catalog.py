from typing import Any

from myai.models.model.models import ModelDescription, ModelPricing


def _parse_rate(value: Any) -> float | None:
    """Parse an upstream price string. Negative values mean 'variable' upstream and count as unknown."""
    if value is None or value == "":
        return None
    try:
        rate = float(value)
    except (TypeError, ValueError):
        return None
    return rate if rate >= 0 else None


def parse_pricing(pricing_data: dict[str, Any] | None) -> ModelPricing | None:
    """Convert upstream per-token USD rates into per-1000-token rates"""
    if not pricing_data:
        return None

    prompt_rate = _parse_rate(pricing_data.get("prompt"))
    completion_rate = _parse_rate(pricing_data.get("completion"))
    if prompt_rate is None and completion_rate is None:
        return None

    request_cost = _parse_rate(pricing_data.get("request"))
    image_cost = _parse_rate(pricing_data.get("image"))

    return ModelPricing(
        prompt_per_thousand=(prompt_rate or 0.0) * 1000,
        completion_per_thousand=(completion_rate or 0.0) * 1000,
        request=request_cost if request_cost else None,
        image=image_cost if image_cost else None,
    )


def _parse_input_modalities(arch_data: dict[str, Any]) -> list[str]:
    modalities = arch_data.get("input_modalities")
    if modalities:
        return list(modalities)

    # Older catalog records only carry e.g. "text+image->text"
    modality = arch_data.get("modality") or "text->text"
    inputs = modality.split("->")[0]
    return [m for m in inputs.split("+") if m] or ["text"]


def parse_model_description(model_data: dict[str, Any]) -> ModelDescription:
    """Parse a single model record from the upstream catalog"""
    model_id = model_data.get("id", "")
    model_provider = model_id.split("/")[0] if "/" in model_id else ""

    return ModelDescription(
        id=model_id,
        name=model_data.get("name") or model_id,
        provider=model_provider,
        description=model_data.get("description") or "",
        context_length=int(model_data.get("context_length") or 0),
        input_modalities=_parse_input_modalities(model_data.get("architecture") or {}),
        supported_parameters=list(model_data.get("supported_parameters") or []),
        pricing=parse_pricing(model_data.get("pricing")),
        top_provider=model_data.get("top_provider") or {},
        per_request_limits=model_data.get("per_request_limits"),
    )
