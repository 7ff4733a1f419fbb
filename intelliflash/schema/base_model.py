from dataclasses import dataclass, field, fields
from typing import Dict, Any, TypeVar, Type

T = TypeVar('T')

@dataclass
class BaseModel:
    """
    Base model class that maps the array's camelCase JSON keys onto
    snake_case dataclass fields.

    Keys with no matching field are kept in _raw_data and otherwise ignored.
    """
    _raw_data: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @staticmethod
    def json_key(field_name: str) -> str:
        """API spelling of a field name: entity_name -> entityName"""
        head, *rest = field_name.split('_')
        return head + ''.join(part[:1].upper() + part[1:] for part in rest)

    @classmethod
    def from_api_response(cls: Type[T], data: Dict[str, Any]) -> T:
        """Create an instance from one JSON object of an API response"""
        values = {}
        for model_field in fields(cls):
            if model_field.name == '_raw_data':
                continue
            # The snake_case spelling wins if a payload carries both
            for key in (model_field.name, cls.json_key(model_field.name)):
                if key in data:
                    values[model_field.name] = data[key]
                    break

        return cls(_raw_data=dict(data), **values)

    def get_raw(self, key: str, default: Any = None) -> Any:
        """Access any field from the raw data"""
        return self._raw_data.get(key, default)
