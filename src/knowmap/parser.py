"""Map document parser for knowmap.

Reads and writes knowledge maps as JSON (the browser client's format) or
YAML (handy for hand-written maps).  Both use the same document shape:

    metadata:
      title: IELTS Preparation
    nodes:
      - id: reading
        label: Reading Skills
        type: concept
    edges:
      - id: e1
        source: start
        target: reading
        type: dependency
    territories:
      - id: skills
        name: Core Skills
        nodeIds: [reading]
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from .models import KnowledgeMap


@dataclass
class ValidationResult:
    """Outcome of ``validate_map``."""
    success: bool
    data: Optional[KnowledgeMap] = None
    errors: list[dict[str, Any]] = field(default_factory=list)


def parse_map(data: Any) -> KnowledgeMap:
    """Build a ``KnowledgeMap`` from already-decoded data."""
    if not data:
        raise ValueError("Empty map input")
    if not isinstance(data, dict):
        raise ValueError(f"Map input must be an object, got {type(data).__name__}")
    return KnowledgeMap.model_validate(data)


def parse_yaml(yaml_str: str) -> KnowledgeMap:
    """Parse a YAML string into a KnowledgeMap."""
    return parse_map(yaml.safe_load(yaml_str))


def parse_json(json_str: str) -> KnowledgeMap:
    """Parse a JSON string into a KnowledgeMap."""
    if not json_str.strip():
        raise ValueError("Empty map input")
    return parse_map(json.loads(json_str))


def parse_text(text: str) -> KnowledgeMap:
    """Parse a map that may be either JSON or YAML."""
    if text.lstrip().startswith("{"):
        return parse_json(text)
    return parse_yaml(text)


def parse_file(path: str) -> KnowledgeMap:
    """Parse a map file; ``.json`` files are read as JSON, anything else as YAML."""
    file_path = Path(path)
    content = file_path.read_text()
    if file_path.suffix.lower() == ".json":
        return parse_json(content)
    return parse_yaml(content)


def validate_map(data: Any) -> ValidationResult:
    """Check a decoded document against the map schema without raising."""
    try:
        return ValidationResult(success=True, data=parse_map(data))
    except ValidationError as e:
        errors = [
            {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in e.errors()
        ]
        return ValidationResult(success=False, errors=errors)
    except ValueError as e:
        return ValidationResult(success=False, errors=[{"loc": [], "msg": str(e), "type": "value_error"}])


def map_to_json(knowledge_map: KnowledgeMap, indent: Optional[int] = 2) -> str:
    """Serialize a KnowledgeMap to JSON using the client's field names."""
    return json.dumps(knowledge_map.to_wire(), indent=indent)


def map_to_yaml(knowledge_map: KnowledgeMap) -> str:
    """Serialize a KnowledgeMap to YAML using the client's field names."""
    return yaml.dump(knowledge_map.to_wire(), default_flow_style=False, sort_keys=False)
