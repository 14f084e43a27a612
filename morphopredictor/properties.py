import json
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from morphopredictor.constants import PROPERTIES, PROPERTY_ALIASES


@dataclass(frozen=True)
class GrammaticalProperty:
    """
    A categorical morphological feature with a fixed, ordered set of values.

    The classifier of a property has one class per value plus a reserved last
    class meaning "no value applies".
    """

    name: str
    values: Tuple[str, ...]
    aliases: Tuple[Tuple[str, str], ...] = ()

    @property
    def output_size(self) -> int:
        return len(self.values) + 1

    @property
    def no_value_index(self) -> int:
        return len(self.values)

    def normalize(self, value: Optional[str]) -> Optional[str]:
        """
        Map an annotation to one of the values of this property.
        Returns None if the annotation is missing or unknown.
        """
        if value is None:
            return None

        value = str(value).strip().lower()
        if value in self.values:
            return value

        return dict(self.aliases).get(value)

    def index_of(self, value: Optional[str]) -> int:
        normalized = self.normalize(value)
        if normalized is None:
            return self.no_value_index
        return self.values.index(normalized)

    def value_at(self, index: int) -> Optional[str]:
        if not 0 <= index < self.output_size:
            raise IndexError(f"Class {index} out of range for property '{self.name}'")
        if index == self.no_value_index:
            return None
        return self.values[index]


class PropertyRegistry(Mapping[str, GrammaticalProperty]):
    """
    Immutable table of the grammatical properties predicted by a model,
    associated by name. Built once and passed to whatever needs it.
    """

    def __init__(
        self,
        properties: Mapping[str, Sequence[str]],
        aliases: Optional[Mapping[str, Mapping[str, str]]] = None,
    ):
        aliases = aliases or {}
        table = {}

        for name, values in properties.items():
            values = tuple(str(v).lower() for v in values)
            if not values:
                raise ValueError(f"Property '{name}' has no values")
            if len(set(values)) != len(values):
                raise ValueError(f"Property '{name}' has duplicate values")

            property_aliases = tuple(
                sorted((k.lower(), v) for k, v in aliases.get(name, {}).items() if v in values)
            )
            table[name] = GrammaticalProperty(name, values, property_aliases)

        if not table:
            raise ValueError("At least one grammatical property is required")

        self._properties = MappingProxyType(table)

    @classmethod
    def default(cls) -> "PropertyRegistry":
        return cls(PROPERTIES, PROPERTY_ALIASES)

    @classmethod
    def from_file(cls, path: str) -> "PropertyRegistry":
        """
        Load a registry from a JSON file of the form
        {"properties": {name: [values]}, "aliases": {name: {annotation: value}}}
        or simply {name: [values]}.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if "properties" in data:
            return cls(data["properties"], data.get("aliases"))

        return cls(data)

    def __getitem__(self, name: str) -> GrammaticalProperty:
        return self._properties[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._properties)

    def __len__(self) -> int:
        return len(self._properties)

    def __repr__(self) -> str:
        return f"PropertyRegistry({list(self._properties)})"

    def gold_indices(self, properties: Mapping[str, Optional[str]]) -> Dict[str, int]:
        """
        The gold class of each property given the annotated properties of a
        token. Missing or unknown values fall on the "no value" class.
        """
        return {
            name: prop.index_of(properties.get(name))
            for name, prop in self._properties.items()
        }

    def to_dict(self) -> Dict[str, Dict[str, List]]:
        return {
            "properties": {name: list(p.values) for name, p in self._properties.items()},
            "aliases": {name: dict(p.aliases) for name, p in self._properties.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "PropertyRegistry":
        return cls(data["properties"], data.get("aliases"))
