"""Parameter definitions and best-effort validation of user selections.

Categories and their parameters are owned by an external catalogue; this
module only reads them.  A definition is one of four tagged shapes,
discriminated by its ``type`` field:

==================  =========================  ==========================
``type``            Model                      Accepted value
==================  =========================  ==========================
Dropdown            :class:`ChoiceParameter`   one option label
Radio Buttons       :class:`ChoiceParameter`   one option label
Slider              :class:`RangeParameter`    number within ``min..max``
Toggle Switch       :class:`ToggleParameter`   bool
Checkbox            :class:`MultiChoiceParameter`  list of option labels
==================  =========================  ==========================

Validation never raises.  :func:`filter_parameter_values` returns the valid
subset together with a list of discarded selections so the caller can log
them and carry on with whatever remains.
"""

from __future__ import annotations

import json
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Definition models.
# ---------------------------------------------------------------------------


class ParameterOption(BaseModel):
    """One selectable option of a choice parameter."""

    label: str
    id: str | None = None


class _ParameterBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="Parameter identifier used in selections.")
    name: str = Field(..., description="Display name.")
    description: str | None = Field(default=None, description="Help text.")


class _OptionsMixin(BaseModel):
    values: list[ParameterOption] = Field(default_factory=list)

    @field_validator("values", mode="before")
    @classmethod
    def _coerce_plain_labels(cls, values: Any) -> Any:
        if isinstance(values, list):
            return [{"label": v} if isinstance(v, str) else v for v in values]
        return values

    @property
    def labels(self) -> set[str]:
        return {option.label for option in self.values}


class ChoiceParameter(_OptionsMixin, _ParameterBase):
    """Single selection from a fixed label set."""

    type: Literal["Dropdown", "Radio Buttons"]


class MultiChoiceParameter(_OptionsMixin, _ParameterBase):
    """Any subset of a fixed label set."""

    type: Literal["Checkbox"]


class RangeParameter(_ParameterBase):
    """Numeric value within ``min`` and ``max``."""

    type: Literal["Slider"]
    min: float = 0
    max: float = 100
    step: float = 1


class ToggleParameter(_ParameterBase):
    """On/off flag."""

    type: Literal["Toggle Switch"]


ParameterDefinition = Annotated[
    Union[ChoiceParameter, MultiChoiceParameter, RangeParameter, ToggleParameter],
    Field(discriminator="type"),
]


class Category(BaseModel):
    """A named group of parameter definitions."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: str | None = None
    parameters: list[ParameterDefinition] = Field(default_factory=list)


_DEFINITION_LIST = TypeAdapter(list[ParameterDefinition])


# ---------------------------------------------------------------------------
# Definition sources.
# ---------------------------------------------------------------------------


class ParameterSource(ABC):
    """Read-only lookup of parameter definitions by category id."""

    @abstractmethod
    def get_parameters(self, category_id: str) -> list[ParameterDefinition] | None:
        """Return the category's definitions, or ``None`` for an unknown category."""


class StaticParameterSource(ParameterSource):
    """In-memory source built from a mapping of category id to definitions.

    Definitions may be given as models or as plain dicts in the JSON shape.
    """

    def __init__(self, categories: Mapping[str, Sequence[Any]]):
        self._categories = {
            category_id: _DEFINITION_LIST.validate_python(
                [d.model_dump() if isinstance(d, BaseModel) else d for d in definitions]
            )
            for category_id, definitions in categories.items()
        }

    def get_parameters(self, category_id: str) -> list[ParameterDefinition] | None:
        return self._categories.get(category_id)


class JsonParameterSource(ParameterSource):
    """Source backed by a categories JSON file.

    The file holds either a list of categories or ``{"categories": [...]}``.
    Loading is forgiving: a missing or unreadable file means no categories,
    and a malformed category is skipped, each with a warning.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._categories: dict[str, Category] | None = None

    def reload(self) -> None:
        self._categories = self._load()
        logger.info(f"Loaded {len(self._categories)} categories from {self.path}")

    def _load(self) -> dict[str, Category]:
        try:
            with open(self.path, encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read categories file {self.path}: {e}")
            return {}

        if isinstance(raw, dict):
            raw = raw.get("categories", [])
        if not isinstance(raw, list):
            logger.warning(f"Categories file {self.path} does not hold a list")
            return {}

        categories: dict[str, Category] = {}
        for entry in raw:
            try:
                category = Category.model_validate(entry)
            except ValidationError as e:
                logger.warning(f"Skipping malformed category in {self.path}: {e}")
                continue
            categories[category.id] = category
        return categories

    @property
    def categories(self) -> dict[str, Category]:
        if self._categories is None:
            self.reload()
        return self._categories

    def get_parameters(self, category_id: str) -> list[ParameterDefinition] | None:
        category = self.categories.get(category_id)
        return None if category is None else list(category.parameters)


# ---------------------------------------------------------------------------
# Validation.
# ---------------------------------------------------------------------------


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


def validate_parameter_value(definition: ParameterDefinition, value: Any) -> str | None:
    """Check one value against its definition.

    Returns:
        ``None`` when the value is acceptable, otherwise a short reason.
    """
    if isinstance(definition, ChoiceParameter):
        if not isinstance(value, str) or value not in definition.labels:
            return f"{value!r} is not one of the options for {definition.name}"
        return None

    if isinstance(definition, MultiChoiceParameter):
        if not isinstance(value, list):
            return f"{definition.name} expects a list of options"
        invalid = [item for item in value if not isinstance(item, str) or item not in definition.labels]
        if invalid:
            return f"{invalid!r} are not options for {definition.name}"
        return None

    if isinstance(definition, RangeParameter):
        number = _as_number(value)
        if number is None:
            return f"{definition.name} expects a number"
        if not definition.min <= number <= definition.max:
            return f"{definition.name} must be between {definition.min:g} and {definition.max:g}"
        return None

    if isinstance(definition, ToggleParameter):
        if not isinstance(value, bool):
            return f"{definition.name} expects true or false"
        return None

    return f"Unsupported parameter type for {getattr(definition, 'name', definition)!r}"


@dataclass
class DiscardedParameter:
    """A selection dropped by :func:`filter_parameter_values`."""

    category_id: str
    parameter_id: str | None
    reason: str


@dataclass
class ParameterFilterResult:
    accepted: dict[str, dict[str, Any]] = field(default_factory=dict)
    discarded: list[DiscardedParameter] = field(default_factory=list)


def filter_parameter_values(values: Any, source: ParameterSource) -> ParameterFilterResult:
    """Keep the selections that match their definitions.

    Unknown categories, unknown parameters, wrong types and out-of-range
    values are moved to ``discarded``.  ``None`` values mean "not selected"
    and are skipped without a discard entry.

    Args:
        values: category-id -> parameter-id -> value, as submitted.
        source: Where definitions are looked up.

    Returns:
        The accepted subset (same nested shape) and the discards.
    """
    result = ParameterFilterResult()

    if not isinstance(values, Mapping):
        if values is not None:
            result.discarded.append(
                DiscardedParameter("*", None, "parameter values must be an object")
            )
        return result

    for category_id, selections in values.items():
        if not isinstance(selections, Mapping):
            result.discarded.append(
                DiscardedParameter(category_id, None, "category selections must be an object")
            )
            continue

        definitions = source.get_parameters(category_id)
        if definitions is None:
            result.discarded.append(DiscardedParameter(category_id, None, "unknown category"))
            continue

        by_id = {definition.id: definition for definition in definitions}
        kept: dict[str, Any] = {}
        for parameter_id, value in selections.items():
            if value is None:
                continue
            definition = by_id.get(parameter_id)
            if definition is None:
                result.discarded.append(
                    DiscardedParameter(category_id, parameter_id, "unknown parameter")
                )
                continue
            reason = validate_parameter_value(definition, value)
            if reason:
                result.discarded.append(DiscardedParameter(category_id, parameter_id, reason))
                continue
            kept[parameter_id] = value

        if kept:
            result.accepted[category_id] = kept

    return result
