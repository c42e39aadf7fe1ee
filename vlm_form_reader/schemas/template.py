"""Template schemas - expected fields of one document type."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class FieldType(str, Enum):
    """Type of a template field."""

    STRING = "STRING"
    NUMBER = "NUMBER"
    DATE = "DATE"
    BOOLEAN = "BOOLEAN"
    TABLE = "TABLE"


@dataclass
class TemplateField:
    """One field expected by a template.

    Attributes:
        key: Field key, unique within a template (used in extracted data)
        label: Human-readable label (used as CSV header)
        type: Field type
        required: Whether the field is expected on every document
        description: Hint for the extraction model
        columns: Column schemas, only for TABLE fields (order = CSV order)
    """
    key: str
    label: str
    type: FieldType = FieldType.STRING
    required: bool = False
    description: str = ""
    columns: Optional[List["TemplateField"]] = None

    def __post_init__(self) -> None:
        self.type = FieldType(self.type)

        if self.type is FieldType.TABLE:
            if self.columns is None:
                self.columns = []
            for col in self.columns:
                if col.type is FieldType.TABLE:
                    raise ValueError(
                        f"Table field '{self.key}' cannot contain nested table '{col.key}'"
                    )
            _check_unique_keys(self.columns, f"table '{self.key}'")
        elif self.columns:
            raise ValueError(
                f"Field '{self.key}' of type {self.type.value} cannot have columns"
            )

    @property
    def is_table(self) -> bool:
        return self.type is FieldType.TABLE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to plain dict (YAML/JSON friendly)."""
        result: Dict[str, Any] = {
            "key": self.key,
            "label": self.label,
            "type": self.type.value,
            "required": self.required,
            "description": self.description,
        }
        if self.is_table:
            result["columns"] = [col.to_dict() for col in self.columns or []]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateField":
        """Build field from plain dict.

        Raises:
            ValueError: If the type is unknown or the table is nested
        """
        columns = data.get("columns")
        return cls(
            key=data["key"],
            label=data.get("label", data["key"]),
            type=FieldType(data.get("type", FieldType.STRING.value)),
            required=bool(data.get("required", False)),
            description=data.get("description", ""),
            columns=[cls.from_dict(c) for c in columns] if columns is not None else None,
        )


@dataclass
class Template:
    """Named schema of one class of source document.

    Attributes:
        id: Stable identifier (referenced by documents)
        name: Display name
        description: Free text fed to the classifier as disambiguation hints
        fields: Ordered field list
    """
    id: str
    name: str
    description: str = ""
    fields: List[TemplateField] = field(default_factory=list)

    def __post_init__(self) -> None:
        _check_unique_keys(self.fields, f"template '{self.id}'")

    @property
    def scalar_fields(self) -> List[TemplateField]:
        return [f for f in self.fields if not f.is_table]

    @property
    def table_fields(self) -> List[TemplateField]:
        return [f for f in self.fields if f.is_table]

    def partition(self) -> Tuple[List[TemplateField], List[TemplateField]]:
        """Split fields into (scalar fields, table fields), keeping order."""
        return self.scalar_fields, self.table_fields

    def get_field(self, key: str) -> Optional[TemplateField]:
        for f in self.fields:
            if f.key == key:
                return f
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "fields": [f.to_dict() for f in self.fields],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Template":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            fields=[TemplateField.from_dict(f) for f in data.get("fields", [])],
        )


def _check_unique_keys(fields: List[TemplateField], owner: str) -> None:
    seen = set()
    for f in fields:
        if f.key in seen:
            raise ValueError(f"Duplicate field key '{f.key}' in {owner}")
        seen.add(f.key)
